"""
Exceptions raised by the access control engine.

Read paths never raise: unknown keys and unreadable stored configuration
degrade to the catalog defaults. Only mutations and commits report errors.
"""
from typing import Dict, List


class AccessControlError(Exception):
    """Base class for access engine errors."""


class MalformedConfiguration(AccessControlError):
    """A stored configuration blob could not be decoded into the expected shape."""


class UnknownKey(AccessControlError, ValueError):
    """A mutation named a role, feature, action, registry or section outside the catalog."""

    def __init__(self, kind: str, value):
        self.kind = kind
        self.value = value
        super().__init__(f"Unknown {kind}: {value!r}")


class EditSessionClosed(AccessControlError):
    """A staging operation was attempted while no edit session is open."""

    def __init__(self, message: str = "No edit session is open"):
        super().__init__(message)


class PartialCommitFailure(AccessControlError):
    """
    Some configuration keys failed to persist during a commit.

    The keys in `saved` are live; the keys in `failed` still hold their
    previous committed value. Nothing is retried or compensated.
    """

    def __init__(self, failed: Dict[str, Exception], saved: List[str]):
        self.failed = failed
        self.saved = saved
        super().__init__(
            f"Failed to persist {len(failed)} of {len(failed) + len(saved)} "
            f"configuration keys: {', '.join(failed)}"
        )
