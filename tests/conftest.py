import pytest
from sqlmodel import select

from optline.config import settings
from optline.database import build_engine, build_session_factory, init_db
from optline.models.db_models import Segment, SubscriptionGroup
from optline.models.resources import SubscriptionGroupType, UpsertSubscriptionGroupResource
from optline.store.channels import find_channel, upsert_channel
from optline.store.secrets import ensure_secret
from optline.store.user_properties import assign_user_property
from optline.subscriptions.registry import upsert_subscription_group

WORKSPACE_ID = "ws1"
USER_ID = "u1"
EMAIL = "a@b.com"
SECRET = "s3cr3t"


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'optline.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def workspace(session_factory):
    """Workspace with an email channel, a subscription secret and one user."""
    async with session_factory() as session:
        await upsert_channel(session, WORKSPACE_ID, settings.email_channel_name)
        await ensure_secret(
            session, WORKSPACE_ID, settings.subscription_secret_name, value=SECRET
        )
        await assign_user_property(session, WORKSPACE_ID, "email", USER_ID, EMAIL)
    return WORKSPACE_ID


@pytest.fixture
def make_group(session_factory, workspace):
    async def _make(group_id: str, name: str, type=SubscriptionGroupType.OPT_OUT):
        return await upsert_subscription_group(
            session_factory,
            UpsertSubscriptionGroupResource(
                id=group_id, workspace_id=workspace, name=name, type=type
            ),
        )

    return _make


@pytest.fixture
def make_orphan_group(session_factory, workspace):
    """Insert a group directly, without its internal segment."""

    async def _make(group_id: str, name: str):
        async with session_factory() as session:
            channel = await find_channel(session, workspace, settings.email_channel_name)
            session.add(
                SubscriptionGroup(
                    id=group_id,
                    workspace_id=workspace,
                    name=name,
                    type=SubscriptionGroupType.OPT_OUT.value,
                    channel_id=channel.id,
                )
            )
            await session.commit()

    return _make


async def segment_for_group(session_factory, group_id: str) -> Segment:
    async with session_factory() as session:
        result = await session.exec(
            select(Segment).where(Segment.subscription_group_id == group_id)
        )
        return result.one()
