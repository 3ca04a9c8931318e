"""OPTLINE — Resource Schemas (API + engine boundary types)."""

from enum import Enum
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class SubscriptionGroupType(str, Enum):
    """Default consent posture of a subscription group."""

    OPT_IN = "OptIn"
    OPT_OUT = "OptOut"


class SubscriptionChange(str, Enum):
    """Action recorded on a SubscriptionChange event."""

    SUBSCRIBE = "Subscribe"
    UNSUBSCRIBE = "UnSubscribe"


class SegmentNodeType(str, Enum):
    SUBSCRIPTION_GROUP = "SubscriptionGroup"


class SegmentResourceType(str, Enum):
    DECLARATIVE = "Declarative"
    INTERNAL = "Internal"


class InternalEventType(str, Enum):
    SUBSCRIPTION_CHANGE = "SubscriptionChange"


# ─────────────────────────────────────────────
# SEGMENT DEFINITIONS — subscription-group kind only
# ─────────────────────────────────────────────


class SubscriptionGroupSegmentNode(BaseModel):
    """Entry node matching members of a subscription group."""

    type: Literal[SegmentNodeType.SUBSCRIPTION_GROUP] = SegmentNodeType.SUBSCRIPTION_GROUP
    id: str = "1"
    subscription_group_id: str


class SegmentDefinition(BaseModel):
    entry_node: SubscriptionGroupSegmentNode
    nodes: List[SubscriptionGroupSegmentNode] = []


# ─────────────────────────────────────────────
# SUBSCRIPTION GROUPS
# ─────────────────────────────────────────────


class UpsertSubscriptionGroupResource(BaseModel):
    """Request body for PUT /subscription-groups."""

    id: Optional[str] = None
    """Stable caller-supplied id. Generated when omitted."""
    workspace_id: str
    name: str
    type: SubscriptionGroupType


class SubscriptionGroupResource(BaseModel):
    id: str
    workspace_id: str
    name: str
    type: SubscriptionGroupType


class UserSubscriptionResource(BaseModel):
    """One row of a user's subscription list."""

    id: str
    name: str
    is_subscribed: bool


# ─────────────────────────────────────────────
# SUBSCRIPTION MANAGEMENT (public, hash-authenticated)
# ─────────────────────────────────────────────


class SubscriptionParams(BaseModel):
    """Parsed query parameters of a subscription management link."""

    workspace_id: str = Field(alias="w")
    identifier: str = Field(alias="i")
    identifier_key: str = Field(alias="ik")
    hash: str = Field(alias="h")
    changed_subscription: Optional[str] = Field(default=None, alias="s")
    subscription_change: Optional[SubscriptionChange] = None

    model_config = {"populate_by_name": True}


class UserSubscriptionLookup(BaseModel):
    workspace_id: str
    identifier: str
    identifier_key: str
    hash: str


class UserSubscriptionsUpdate(UserSubscriptionLookup):
    """Request body for PUT /subscription-management/user-subscriptions."""

    changes: Dict[str, bool]
    """Subscription group id -> desired subscribed state."""

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "workspace_id": "ws1",
                    "identifier": "a@b.com",
                    "identifier_key": "email",
                    "hash": "9f2c…",
                    "changes": {"product-updates": False},
                }
            ]
        }
    }


class SubscriptionLinkRequest(BaseModel):
    """Request body for POST /subscription-groups/links."""

    workspace_id: str
    user_id: str
    identifier: str
    identifier_key: str = "email"
    changed_subscription: Optional[str] = None
    subscription_change: Optional[SubscriptionChange] = None
