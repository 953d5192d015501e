"""
Edit session over the access configuration.

An administrator enters a session, stages changes on a working copy, then
either commits them through the ConfigurationStore or rolls back to the
baseline captured on entry. Nothing staged is visible to the evaluator until
a commit lands.
"""
from enum import Enum
from typing import Any, Optional

from app.features.access.catalog import EDITOR_ROLES, default_permission_snapshot, parse_role
from app.features.access.errors import EditSessionClosed, PartialCommitFailure, UnknownKey
from app.features.access.store import ConfigurationSnapshot, ConfigurationStore
from app.utils import get_logger


log = get_logger(__name__)


class SessionState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class EditSession:
    """
    Staged edits for one administering user.

    working and baseline are independent deep copies of the committed
    configuration; only working is ever mutated before a commit.
    """

    def __init__(self, store: ConfigurationStore, owner_id: str):
        self.store = store
        self.owner_id = owner_id
        self.state = SessionState.CLOSED
        self.working: Optional[ConfigurationSnapshot] = None
        self.baseline: Optional[ConfigurationSnapshot] = None

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.OPEN

    @property
    def dirty(self) -> bool:
        """True while there are staged edits that differ from the baseline."""
        return self.is_open and self.working != self.baseline

    def enter(self, role: Any) -> bool:
        """
        Open the session for an editor role.

        Re-entering an open session keeps what is already staged.

        Returns:
            False if role may not edit the configuration (nothing happens)
        """
        role_key = parse_role(role)
        if role_key not in EDITOR_ROLES:
            log.info(f"Refused access edit session for user {self.owner_id} with role {role!r}")
            return False
        if self.is_open:
            return True

        committed = self.store.committed
        self.working = committed.copy()
        self.baseline = committed.copy()
        self.state = SessionState.OPEN
        log.info(f"User {self.owner_id} opened an access edit session")
        return True

    def _require_open(self) -> ConfigurationSnapshot:
        if not self.is_open or self.working is None:
            raise EditSessionClosed()
        return self.working

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def set_permission(self, role: Any, feature: Any, action: Any, value: bool) -> None:
        self._require_open().matrix.set(role, feature, action, value)

    def toggle_permission(self, role: Any, feature: Any, action: Any) -> bool:
        return self._require_open().matrix.toggle(role, feature, action)

    def set_all_for_role(self, role: Any, value: bool) -> None:
        self._require_open().matrix.set_all_for_role(role, value)

    def set_view_only_for_role(self, role: Any) -> None:
        self._require_open().matrix.set_view_only_for_role(role)

    def set_section(self, registry: Any, role: Any, key: Any, value: bool) -> None:
        self._require_open().registry(registry).set(role, key, value)

    def toggle_section(self, registry: Any, role: Any, key: Any) -> bool:
        return self._require_open().registry(registry).toggle(role, key)

    def restore_defaults_for_role(self, role: Any) -> None:
        """
        Reset one role to the shipped catalog in the matrix and every registry.

        Other roles keep their staged edits, and the baseline is untouched so a
        later rollback still undoes this.
        """
        working = self._require_open()
        role_key = parse_role(role)
        if role_key is None:
            raise UnknownKey("role", role)
        working.matrix.replace_role(role_key, default_permission_snapshot(role_key))
        for registry in working.registries.values():
            registry.reset_role(role_key)
        log.debug(f"User {self.owner_id} restored defaults for role {role_key.value}")

    # ------------------------------------------------------------------
    # Commit / rollback
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        """
        Persist the working copy and close the session.

        Raises:
            EditSessionClosed: If no session is open
            PartialCommitFailure: If some keys failed to save; the session
                stays open with the working copy intact so it can be retried
        """
        working = self._require_open()
        try:
            await self.store.persist(working)
        except PartialCommitFailure:
            log.error(f"Access configuration commit by user {self.owner_id} only partially saved")
            raise
        self.baseline = working.copy()
        self.state = SessionState.CLOSED
        log.info(f"User {self.owner_id} committed access configuration")

    def rollback(self) -> None:
        """Discard staged edits and close the session. No persistence happens."""
        self._require_open()
        self.working = self.baseline.copy()
        self.state = SessionState.CLOSED
        log.info(f"User {self.owner_id} discarded access edits")

    def __repr__(self) -> str:
        return f"<EditSession(owner_id={self.owner_id!r}, state={self.state.value})>"
