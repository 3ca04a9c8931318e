"""OPTLINE — Subscription Engine Errors.

SubscriptionError subclasses are recoverable outcomes the caller is expected
to handle (and, at the HTTP edge, translate into a response). A missing
subscription secret is a deployment fault and deliberately sits outside that
hierarchy so it is never handled as user input.
"""


class SubscriptionError(Exception):
    """Base class for recoverable subscription engine errors."""

    reason = "subscription_error"

    def __init__(self, message: str, workspace_id: str | None = None):
        self.workspace_id = workspace_id
        super().__init__(message)


class ChannelNotFoundError(SubscriptionError):
    """Raised when the workspace has no email channel."""

    reason = "channel_not_found"


class UserNotFoundError(SubscriptionError):
    """Raised when no user property assignment matches the identifier."""

    reason = "user_not_found"


class HashMismatchError(SubscriptionError):
    """Raised when a link's hash does not match the recomputed hash."""

    reason = "hash_mismatch"


class SubscriptionSecretMissingError(RuntimeError):
    """Raised when a workspace has no subscription secret provisioned."""

    def __init__(self, workspace_id: str):
        self.workspace_id = workspace_id
        super().__init__(f"Subscription secret not found for workspace {workspace_id}")


class SubscriptionGroupConflictError(SubscriptionError):
    """Raised when a group id already belongs to another workspace."""

    reason = "subscription_group_conflict"
