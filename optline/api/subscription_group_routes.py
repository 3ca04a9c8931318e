"""OPTLINE — Subscription Group Admin Routes."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from optline.core.errors import ChannelNotFoundError, SubscriptionGroupConflictError
from optline.core.logging import get_logger
from optline.database import SessionFactory, get_session_factory
from optline.models.resources import (
    SubscriptionGroupResource,
    SubscriptionLinkRequest,
    UpsertSubscriptionGroupResource,
)
from optline.subscriptions.links import build_subscription_change_url_for_user
from optline.subscriptions.registry import (
    get_subscription_groups,
    subscription_group_to_resource,
    upsert_subscription_group,
)

logger = get_logger("api.subscription_groups")

router = APIRouter(prefix="/subscription-groups", tags=["Subscription Groups"])


@router.put("", response_model=SubscriptionGroupResource)
async def put_subscription_group(
    request: UpsertSubscriptionGroupResource,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Create or update a subscription group and its internal segment."""
    try:
        group = await upsert_subscription_group(session_factory, request)
    except ChannelNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SubscriptionGroupConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return subscription_group_to_resource(group)


@router.get("", response_model=List[SubscriptionGroupResource])
async def list_subscription_groups(
    workspace_id: str = Query(..., description="Workspace to list groups for"),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    return await get_subscription_groups(session_factory, workspace_id)


@router.post("/links")
async def create_subscription_link(
    request: SubscriptionLinkRequest,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Build the subscription management link for a known user.

    Used when rendering outgoing messages; the user id is folded into the
    link's hash and never appears in the URL.
    """
    url = await build_subscription_change_url_for_user(
        session_factory,
        workspace_id=request.workspace_id,
        user_id=request.user_id,
        identifier=request.identifier,
        identifier_key=request.identifier_key,
        changed_subscription=request.changed_subscription,
        subscription_change=request.subscription_change,
    )
    return {"status": "success", "url": url}
