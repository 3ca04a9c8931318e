"""OPTLINE — Subscription Link Codec.

Builds the hash-authenticated links placed in outgoing messages and parses
them back when a recipient lands on the subscription management page.

The user id is only ever an input to the hash; the query string carries the
workspace-scoped identifier (e.g. the email address) and its key instead.
"""

from typing import Mapping, Optional
from urllib.parse import urlencode

from optline.config import settings
from optline.core.crypto import generate_secure_hash
from optline.core.errors import SubscriptionSecretMissingError
from optline.database import SessionFactory
from optline.models.resources import SubscriptionChange, SubscriptionParams
from optline.store.secrets import get_secret

REQUIRED_PARAMS = ("w", "i", "ik", "h")


def generate_subscription_hash(
    workspace_id: str,
    user_id: str,
    identifier: str,
    identifier_key: str,
    subscription_secret: str,
) -> str:
    to_hash = {
        "u": user_id,
        "w": workspace_id,
        "i": identifier,
        "k": identifier_key,
    }
    return generate_secure_hash(key=subscription_secret, value=to_hash)


def generate_subscription_change_url(
    workspace_id: str,
    user_id: str,
    identifier: str,
    identifier_key: str,
    subscription_secret: str,
    changed_subscription: Optional[str] = None,
    subscription_change: Optional[SubscriptionChange] = None,
) -> str:
    """Return the relative URL of the subscription management page for a user.

    When ``changed_subscription`` is given the link also carries the group id
    (``s``) and the requested state (``sub``: "1" subscribe, "0" unsubscribe),
    so that following it applies that single change.
    """
    hash_ = generate_subscription_hash(
        workspace_id=workspace_id,
        user_id=user_id,
        identifier=identifier,
        identifier_key=identifier_key,
        subscription_secret=subscription_secret,
    )

    params = {
        "w": workspace_id,
        "i": identifier,
        "ik": identifier_key,
        "h": hash_,
    }
    if changed_subscription:
        params["s"] = changed_subscription
        params["sub"] = "1" if subscription_change == SubscriptionChange.SUBSCRIBE else "0"

    return (
        f"{settings.dashboard_url_prefix}{settings.subscription_management_page}"
        f"?{urlencode(params)}"
    )


def parse_subscription_params(query: Mapping[str, str]) -> Optional[SubscriptionParams]:
    """Parse link query parameters.

    Returns None when any required parameter is missing or empty. An absent
    or malformed ``s``/``sub`` pair yields "show full list" mode, i.e. no
    pending change.
    """
    if any(not query.get(key) for key in REQUIRED_PARAMS):
        return None

    changed_subscription = query.get("s") or None
    sub = query.get("sub")
    if changed_subscription and sub in ("0", "1"):
        subscription_change = (
            SubscriptionChange.SUBSCRIBE if sub == "1" else SubscriptionChange.UNSUBSCRIBE
        )
    else:
        changed_subscription = None
        subscription_change = None

    return SubscriptionParams(
        w=query["w"],
        i=query["i"],
        ik=query["ik"],
        h=query["h"],
        s=changed_subscription,
        subscription_change=subscription_change,
    )


async def build_subscription_change_url_for_user(
    session_factory: SessionFactory,
    workspace_id: str,
    user_id: str,
    identifier: str,
    identifier_key: str,
    changed_subscription: Optional[str] = None,
    subscription_change: Optional[SubscriptionChange] = None,
) -> str:
    """Fetch the workspace's subscription secret and build a link for ``user_id``."""
    async with session_factory() as session:
        secret = await get_secret(session, workspace_id, settings.subscription_secret_name)
    if not secret:
        raise SubscriptionSecretMissingError(workspace_id)

    return generate_subscription_change_url(
        workspace_id=workspace_id,
        user_id=user_id,
        identifier=identifier,
        identifier_key=identifier_key,
        subscription_secret=secret.value,
        changed_subscription=changed_subscription,
        subscription_change=subscription_change,
    )
