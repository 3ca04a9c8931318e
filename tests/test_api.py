import httpx
import pytest

from conftest import EMAIL, SECRET, USER_ID
from optline.config import settings
from optline.database import get_session_factory
from optline.main import app
from optline.models.resources import SubscriptionChange
from optline.store.channels import upsert_channel
from optline.subscriptions.links import (
    generate_subscription_change_url,
    generate_subscription_hash,
)

GENERIC_DETAIL = "Unable to process subscription request."


@pytest.fixture
async def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def _link(**kwargs) -> str:
    url = generate_subscription_change_url(
        workspace_id="ws1",
        user_id=USER_ID,
        identifier=EMAIL,
        identifier_key="email",
        subscription_secret=SECRET,
        **kwargs,
    )
    # Dashboard page path -> API route
    return "/subscription-management?" + url.split("?", 1)[1]


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_put_subscription_group(client, workspace):
    resp = await client.put(
        "/subscription-groups",
        json={"id": "g1", "workspace_id": workspace, "name": "Alpha", "type": "OptIn"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"id": "g1", "workspace_id": workspace, "name": "Alpha", "type": "OptIn"}

    listed = await client.get("/subscription-groups", params={"workspace_id": workspace})
    assert [g["id"] for g in listed.json()] == ["g1"]


async def test_put_subscription_group_without_channel(client):
    resp = await client.put(
        "/subscription-groups",
        json={"id": "g1", "workspace_id": "nowhere", "name": "Alpha", "type": "OptOut"},
    )
    assert resp.status_code == 404


async def test_create_link_then_follow_it(client, make_group, workspace):
    await make_group("g1", "Alpha")

    resp = await client.post(
        "/subscription-groups/links",
        json={
            "workspace_id": workspace,
            "user_id": USER_ID,
            "identifier": EMAIL,
            "identifier_key": "email",
            "changed_subscription": "g1",
            "subscription_change": "Subscribe",
        },
    )
    assert resp.status_code == 200
    url = resp.json()["url"]
    assert url.startswith("/dashboard/public/subscription-management?")
    assert USER_ID not in url

    followed = await client.get("/subscription-management?" + url.split("?", 1)[1])
    assert followed.status_code == 200
    body = followed.json()
    assert body["changed_subscription"] == "g1"
    assert body["subscriptions"] == [{"id": "g1", "name": "Alpha", "is_subscribed": True}]


async def test_manage_link_full_list_mode(client, make_group):
    await make_group("g1", "Alpha")
    await make_group("g2", "Beta")

    resp = await client.get(_link())
    assert resp.status_code == 200
    body = resp.json()
    assert body["changed_subscription"] is None
    assert [s["is_subscribed"] for s in body["subscriptions"]] == [False, False]


async def test_unsubscribe_link(client, make_group):
    await make_group("g1", "Alpha")
    await client.get(_link(changed_subscription="g1", subscription_change=SubscriptionChange.SUBSCRIBE))

    resp = await client.get(
        _link(changed_subscription="g1", subscription_change=SubscriptionChange.UNSUBSCRIBE)
    )
    assert resp.json()["subscriptions"][0]["is_subscribed"] is False


async def test_forged_and_unknown_links_look_the_same(client, workspace):
    forged = await client.get(
        "/subscription-management",
        params={"w": workspace, "i": EMAIL, "ik": "email", "h": "0" * 64},
    )
    unknown = await client.get(
        "/subscription-management",
        params={"w": workspace, "i": "nobody@b.com", "ik": "email", "h": "0" * 64},
    )
    assert forged.status_code == unknown.status_code == 400
    assert forged.json() == unknown.json() == {"detail": GENERIC_DETAIL}


async def test_manage_link_missing_params(client):
    resp = await client.get("/subscription-management", params={"w": "ws1"})
    assert resp.status_code == 400
    assert resp.json() == {"detail": GENERIC_DETAIL}


async def test_put_user_subscriptions(client, make_group, workspace):
    await make_group("g1", "Alpha")
    await make_group("g2", "Beta")
    hash_ = generate_subscription_hash(
        workspace_id=workspace,
        user_id=USER_ID,
        identifier=EMAIL,
        identifier_key="email",
        subscription_secret=SECRET,
    )

    resp = await client.put(
        "/subscription-management/user-subscriptions",
        json={
            "workspace_id": workspace,
            "identifier": EMAIL,
            "identifier_key": "email",
            "hash": hash_,
            "changes": {"g1": True, "g2": False},
        },
    )
    assert resp.status_code == 200
    assert resp.json() == {"status": "success"}

    listed = await client.get(_link())
    assert {s["id"]: s["is_subscribed"] for s in listed.json()["subscriptions"]} == {
        "g1": True,
        "g2": False,
    }


async def test_put_user_subscriptions_rejects_bad_hash(client, workspace):
    resp = await client.put(
        "/subscription-management/user-subscriptions",
        json={
            "workspace_id": workspace,
            "identifier": EMAIL,
            "identifier_key": "email",
            "hash": "bad",
            "changes": {"g1": True},
        },
    )
    assert resp.status_code == 400
    assert resp.json() == {"detail": GENERIC_DETAIL}


async def test_put_subscription_group_owned_by_other_workspace(client, make_group, session_factory):
    await make_group("g1", "Alpha")
    async with session_factory() as session:
        await upsert_channel(session, "ws-other", settings.email_channel_name)

    resp = await client.put(
        "/subscription-groups",
        json={"id": "g1", "workspace_id": "ws-other", "name": "Renamed", "type": "OptIn"},
    )
    assert resp.status_code == 409

    listed = await client.get("/subscription-groups", params={"workspace_id": "ws1"})
    assert [g["name"] for g in listed.json()] == ["Alpha"]
