"""OPTLINE — User property store.

Assignment values are stored as canonical JSON so an identifier written by
ingestion matches the identifier carried in a subscription link.
"""

from typing import Any, Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from optline.core.crypto import canonical_json
from optline.models.db_models import UserProperty, UserPropertyAssignment


def encode_property_value(value: Any) -> str:
    return canonical_json(value)


async def get_user_property(
    session: AsyncSession, workspace_id: str, name: str
) -> Optional[UserProperty]:
    result = await session.exec(
        select(UserProperty).where(
            UserProperty.workspace_id == workspace_id,
            UserProperty.name == name,
        )
    )
    return result.first()


async def upsert_user_property(
    session: AsyncSession,
    workspace_id: str,
    name: str,
    definition: Optional[dict] = None,
) -> UserProperty:
    existing = await get_user_property(session, workspace_id, name)
    if existing:
        if definition is not None:
            existing.definition = definition
            session.add(existing)
            await session.commit()
        return existing
    prop = UserProperty(
        workspace_id=workspace_id,
        name=name,
        definition=definition or {"type": "Trait", "path": name},
    )
    session.add(prop)
    await session.commit()
    return prop


async def assign_user_property(
    session: AsyncSession,
    workspace_id: str,
    property_name: str,
    user_id: str,
    value: Any,
) -> UserPropertyAssignment:
    """Set a user's value for a property, creating the property if needed."""
    prop = await upsert_user_property(session, workspace_id, property_name)
    encoded = encode_property_value(value)

    result = await session.exec(
        select(UserPropertyAssignment).where(
            UserPropertyAssignment.user_property_id == prop.id,
            UserPropertyAssignment.user_id == user_id,
        )
    )
    existing = result.first()
    if existing:
        existing.value = encoded
        session.add(existing)
        await session.commit()
        return existing

    assignment = UserPropertyAssignment(
        workspace_id=workspace_id,
        user_property_id=prop.id,
        user_id=user_id,
        value=encoded,
    )
    session.add(assignment)
    await session.commit()
    return assignment


async def find_property_assignment(
    session: AsyncSession,
    workspace_id: str,
    property_name: str,
    value: Any,
) -> Optional[UserPropertyAssignment]:
    """Find the assignment of ``property_name`` whose value equals ``value`` exactly."""
    result = await session.exec(
        select(UserPropertyAssignment)
        .join(UserProperty, UserProperty.id == UserPropertyAssignment.user_property_id)
        .where(
            UserProperty.workspace_id == workspace_id,
            UserProperty.name == property_name,
            UserPropertyAssignment.value == encode_property_value(value),
        )
    )
    return result.first()
