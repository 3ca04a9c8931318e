"""OPTLINE — Public Subscription Management Routes.

These endpoints are reached from links in outgoing messages and are
authenticated only by the link hash. Every verification failure produces the
same response so the endpoint cannot be used to probe which identifiers exist.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from optline.core.errors import SubscriptionError
from optline.core.logging import get_logger
from optline.database import SessionFactory, get_session_factory
from optline.models.resources import SubscriptionChange, UserSubscriptionsUpdate
from optline.subscriptions.links import parse_subscription_params
from optline.subscriptions.lookup import lookup_user_for_subscriptions
from optline.subscriptions.updates import (
    get_user_subscriptions,
    update_user_subscriptions,
)

logger = get_logger("api.subscription_management")

router = APIRouter(prefix="/subscription-management", tags=["Subscription Management"])

UNABLE_TO_PROCESS = "Unable to process subscription request."


def _reject(e: SubscriptionError, endpoint: str) -> HTTPException:
    logger.warning(
        f"Rejected subscription request: {e}",
        extra={"workspace_id": e.workspace_id, "reason": e.reason, "endpoint": endpoint},
    )
    return HTTPException(status_code=400, detail=UNABLE_TO_PROCESS)


@router.get("")
async def get_subscription_management(
    request: Request,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Verify a subscription link and return the user's subscriptions.

    When the link carries ``s`` and ``sub`` the single change is applied
    first. Without them the full list is shown.
    """
    params = parse_subscription_params(request.query_params)
    if params is None:
        raise HTTPException(status_code=400, detail=UNABLE_TO_PROCESS)

    try:
        user_id = await lookup_user_for_subscriptions(
            session_factory,
            workspace_id=params.workspace_id,
            identifier=params.identifier,
            identifier_key=params.identifier_key,
            hash=params.hash,
        )
    except SubscriptionError as e:
        raise _reject(e, "GET /subscription-management")

    if params.changed_subscription and params.subscription_change:
        await update_user_subscriptions(
            session_factory,
            workspace_id=params.workspace_id,
            user_id=user_id,
            changes={
                params.changed_subscription: params.subscription_change
                == SubscriptionChange.SUBSCRIBE
            },
        )

    subscriptions = await get_user_subscriptions(
        session_factory, workspace_id=params.workspace_id, user_id=user_id
    )
    return {
        "status": "success",
        "changed_subscription": params.changed_subscription,
        "subscription_change": params.subscription_change,
        "subscriptions": [s.model_dump() for s in subscriptions],
    }


@router.put("/user-subscriptions")
async def put_user_subscriptions(
    request: UserSubscriptionsUpdate,
    session_factory: SessionFactory = Depends(get_session_factory),
):
    """Apply a batch of subscription changes from the management page."""
    try:
        user_id = await lookup_user_for_subscriptions(
            session_factory,
            workspace_id=request.workspace_id,
            identifier=request.identifier,
            identifier_key=request.identifier_key,
            hash=request.hash,
        )
    except SubscriptionError as e:
        raise _reject(e, "PUT /subscription-management/user-subscriptions")

    await update_user_subscriptions(
        session_factory,
        workspace_id=request.workspace_id,
        user_id=user_id,
        changes=request.changes,
    )
    return {"status": "success"}
