"""OPTLINE — Subscription Lookup & Verification.

Resolves the (identifier, identifier_key, hash) carried by a subscription link
to a user id. The hash is the only authentication: there is no session.
"""

import asyncio

from optline.config import settings
from optline.core.crypto import hashes_match
from optline.core.errors import (
    HashMismatchError,
    SubscriptionSecretMissingError,
    UserNotFoundError,
)
from optline.core.logging import get_logger
from optline.database import SessionFactory
from optline.store.secrets import get_secret
from optline.store.user_properties import find_property_assignment
from optline.subscriptions.links import generate_subscription_hash

logger = get_logger("subscriptions.lookup")


async def lookup_user_for_subscriptions(
    session_factory: SessionFactory,
    workspace_id: str,
    identifier: str,
    identifier_key: str,
    hash: str,
) -> str:
    """Return the user id the link was issued for.

    Raises:
        UserNotFoundError: no user has ``identifier`` as its ``identifier_key`` value.
        HashMismatchError: the link was forged, altered, or signed with another secret.
        SubscriptionSecretMissingError: the workspace was never provisioned.
    """

    async def _fetch_secret():
        async with session_factory() as session:
            return await get_secret(
                session, workspace_id, settings.subscription_secret_name
            )

    async def _fetch_assignment():
        async with session_factory() as session:
            return await find_property_assignment(
                session, workspace_id, identifier_key, identifier
            )

    subscription_secret, assignment = await asyncio.gather(
        _fetch_secret(), _fetch_assignment()
    )

    if not assignment:
        logger.info(
            "Subscription lookup failed: user not found",
            extra={"workspace_id": workspace_id, "reason": UserNotFoundError.reason},
        )
        raise UserNotFoundError("User not found", workspace_id=workspace_id)

    if not subscription_secret:
        logger.error(
            "Subscription secret not found",
            extra={"workspace_id": workspace_id},
        )
        raise SubscriptionSecretMissingError(workspace_id)

    user_id = assignment.user_id
    expected_hash = generate_subscription_hash(
        workspace_id=workspace_id,
        user_id=user_id,
        identifier=identifier,
        identifier_key=identifier_key,
        subscription_secret=subscription_secret.value,
    )

    if not hashes_match(expected_hash, hash):
        logger.warning(
            "Subscription lookup failed: hash mismatch",
            extra={
                "workspace_id": workspace_id,
                "user_id": user_id,
                "reason": HashMismatchError.reason,
            },
        )
        raise HashMismatchError("Hash mismatch", workspace_id=workspace_id)

    return user_id
