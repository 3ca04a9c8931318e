"""OPTLINE — Workspace secret store."""

from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from optline.core.crypto import generate_secret
from optline.core.logging import get_logger
from optline.models.db_models import Secret

logger = get_logger("store.secrets")


async def get_secret(
    session: AsyncSession, workspace_id: str, name: str
) -> Optional[Secret]:
    result = await session.exec(
        select(Secret).where(
            Secret.workspace_id == workspace_id,
            Secret.name == name,
        )
    )
    return result.first()


async def ensure_secret(
    session: AsyncSession,
    workspace_id: str,
    name: str,
    value: Optional[str] = None,
) -> Secret:
    """Return the named secret, creating it (random unless given) when absent.

    An existing secret is never rotated here: rotating the subscription secret
    invalidates every link already sent.
    """
    existing = await get_secret(session, workspace_id, name)
    if existing:
        return existing
    secret = Secret(
        workspace_id=workspace_id,
        name=name,
        value=value if value is not None else generate_secret(),
    )
    session.add(secret)
    await session.commit()
    logger.info(f"Provisioned secret {name}", extra={"workspace_id": workspace_id})
    return secret
