"""
Committed access configuration and its persistence.

Lifecycle: init() loads and merges defaults once, the committed snapshot is
then read by every evaluation, persist() writes it back when an edit session
commits, and close() tears the store down.
"""
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from app.features.access.catalog import (
    PERMISSIONS_STORAGE_KEY,
    REGISTRIES,
    REGISTRY_NAMES,
    RegistryName,
    parse_registry,
)
from app.features.access.errors import MalformedConfiguration, PartialCommitFailure, UnknownKey
from app.features.access.matrix import PermissionMatrix
from app.features.access.storage import KeyValueStore
from app.features.access.visibility import VisibilityRegistry, load_with_defaults
from app.utils import get_logger

if TYPE_CHECKING:
    from app.features.access.session import EditSession


log = get_logger(__name__)


def _default_registries() -> Dict[RegistryName, VisibilityRegistry]:
    return {name: VisibilityRegistry(REGISTRIES[name]) for name in REGISTRY_NAMES}


@dataclass
class ConfigurationSnapshot:
    """The permission matrix plus all five section registries."""
    matrix: PermissionMatrix = field(default_factory=PermissionMatrix.defaults)
    registries: Dict[RegistryName, VisibilityRegistry] = field(default_factory=_default_registries)

    @classmethod
    def defaults(cls) -> "ConfigurationSnapshot":
        return cls()

    def registry(self, name) -> VisibilityRegistry:
        registry_name = parse_registry(name)
        if registry_name is None:
            raise UnknownKey("registry", name)
        return self.registries[registry_name]

    def copy(self) -> "ConfigurationSnapshot":
        """Deep clone; edits to the copy never reach this snapshot."""
        return ConfigurationSnapshot(
            matrix=self.matrix.copy(),
            registries={name: registry.copy() for name, registry in self.registries.items()},
        )

    def blobs(self) -> Dict[str, str]:
        """JSON payloads keyed by storage key, matrix first."""
        payloads = {PERMISSIONS_STORAGE_KEY: json.dumps(self.matrix.to_snapshot())}
        for name in REGISTRY_NAMES:
            payloads[name.value] = json.dumps(self.registries[name].to_snapshot())
        return payloads


class ConfigurationStore:
    """
    Holds the committed configuration on top of a KeyValueStore.

    Passed explicitly to the evaluator and edit sessions; in the web app it
    lives on app.state.
    """

    def __init__(self, backend: KeyValueStore):
        self.backend = backend
        self.loaded = False
        self._committed = ConfigurationSnapshot.defaults()
        self._sessions: Dict[str, "EditSession"] = {}

    @property
    def committed(self) -> ConfigurationSnapshot:
        return self._committed

    async def init(self) -> None:
        """Load stored configuration, filling anything missing from the shipped catalog."""
        matrix = await self._load_matrix()
        registries = {}
        for name in REGISTRY_NAMES:
            blob = await self.backend.load(name.value)
            registries[name] = load_with_defaults(name, blob)
        self._committed = ConfigurationSnapshot(matrix=matrix, registries=registries)
        self.loaded = True
        log.info("Access configuration loaded")

    async def _load_matrix(self) -> PermissionMatrix:
        blob = await self.backend.load(PERMISSIONS_STORAGE_KEY)
        if blob is None:
            log.info("No stored permission matrix, using shipped defaults")
            return PermissionMatrix.defaults()
        try:
            return PermissionMatrix.from_snapshot(json.loads(blob))
        except (TypeError, ValueError, MalformedConfiguration) as e:
            log.warning(f"Stored permission matrix is malformed, using shipped defaults: {e}")
            return PermissionMatrix.defaults()

    async def persist(self, snapshot: ConfigurationSnapshot) -> None:
        """
        Write every configuration key, one independent save per key.

        A key that saves successfully becomes live immediately, whatever
        happens to the others.

        Raises:
            PartialCommitFailure: After all keys were attempted, if any failed
        """
        failed: Dict[str, Exception] = {}
        saved: List[str] = []
        for key, payload in snapshot.blobs().items():
            try:
                await self.backend.save(key, payload)
            except Exception as e:
                log.error(f"Failed to persist access configuration key {key!r}: {e}")
                failed[key] = e
                continue
            saved.append(key)
            self._apply(key, snapshot)

        if failed:
            raise PartialCommitFailure(failed, saved)
        log.info(f"Committed access configuration ({len(saved)} keys)")

    def _apply(self, key: str, snapshot: ConfigurationSnapshot) -> None:
        if key == PERMISSIONS_STORAGE_KEY:
            self._committed.matrix = snapshot.matrix.copy()
            return
        name = RegistryName(key)
        self._committed.registries[name] = snapshot.registries[name].copy()

    def session_for(self, user_id: str) -> "EditSession":
        """The single edit session belonging to user_id, created closed on first use."""
        from app.features.access.session import EditSession

        session = self._sessions.get(user_id)
        if session is None:
            session = EditSession(self, owner_id=user_id)
            self._sessions[user_id] = session
        return session

    def open_sessions(self) -> List["EditSession"]:
        return [session for session in self._sessions.values() if session.is_open]

    async def close(self) -> None:
        for session in self.open_sessions():
            log.warning(f"Discarding uncommitted access edits of user {session.owner_id}")
            session.rollback()
        self._sessions.clear()
        self.loaded = False
