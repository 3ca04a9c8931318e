import pytest

from conftest import EMAIL, SECRET, USER_ID
from optline.core.errors import (
    HashMismatchError,
    SubscriptionError,
    SubscriptionSecretMissingError,
    UserNotFoundError,
)
from optline.store.user_properties import assign_user_property
from optline.subscriptions.links import generate_subscription_hash
from optline.subscriptions.lookup import lookup_user_for_subscriptions


def _hash(**overrides):
    args = dict(
        workspace_id="ws1",
        user_id=USER_ID,
        identifier=EMAIL,
        identifier_key="email",
        subscription_secret=SECRET,
    )
    args.update(overrides)
    return generate_subscription_hash(**args)


async def test_lookup_recovers_user_id(session_factory, workspace):
    user_id = await lookup_user_for_subscriptions(
        session_factory,
        workspace_id=workspace,
        identifier=EMAIL,
        identifier_key="email",
        hash=_hash(),
    )
    assert user_id == USER_ID


@pytest.mark.parametrize(
    "overrides",
    [
        {"subscription_secret": "other"},
        {"user_id": "u2"},
        {"workspace_id": "ws2"},
        {"identifier_key": "phone"},
    ],
)
async def test_lookup_rejects_hash_built_from_other_inputs(session_factory, workspace, overrides):
    with pytest.raises(HashMismatchError):
        await lookup_user_for_subscriptions(
            session_factory,
            workspace_id=workspace,
            identifier=EMAIL,
            identifier_key="email",
            hash=_hash(**overrides),
        )


async def test_lookup_unknown_identifier(session_factory, workspace):
    with pytest.raises(UserNotFoundError) as exc_info:
        await lookup_user_for_subscriptions(
            session_factory,
            workspace_id=workspace,
            identifier="nobody@b.com",
            identifier_key="email",
            hash=_hash(identifier="nobody@b.com"),
        )
    assert not isinstance(exc_info.value, HashMismatchError)


def test_hash_mismatch_is_not_a_not_found_error():
    assert not issubclass(HashMismatchError, UserNotFoundError)
    assert issubclass(HashMismatchError, SubscriptionError)
    assert not issubclass(SubscriptionSecretMissingError, SubscriptionError)


async def test_lookup_without_secret_raises_configuration_fault(session_factory):
    async with session_factory() as session:
        await assign_user_property(session, "unprovisioned", "email", "u9", EMAIL)

    with pytest.raises(SubscriptionSecretMissingError):
        await lookup_user_for_subscriptions(
            session_factory,
            workspace_id="unprovisioned",
            identifier=EMAIL,
            identifier_key="email",
            hash="anything",
        )


async def test_lookup_is_workspace_scoped(session_factory, workspace):
    async with session_factory() as session:
        await assign_user_property(session, "ws2", "email", "u2", EMAIL)

    user_id = await lookup_user_for_subscriptions(
        session_factory,
        workspace_id=workspace,
        identifier=EMAIL,
        identifier_key="email",
        hash=_hash(),
    )
    assert user_id == USER_ID
