"""
Editable role × module × action permission matrix.

The matrix starts from the policy defaults and accepts per-cell overrides.
It lives in process memory until it is explicitly saved as a snapshot.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from app.core.store import DocumentStore
from app.features.permissions.catalog import Action, Module, Role
from app.features.permissions.policy import evaluate
from app.utils import get_logger


log = get_logger(__name__)

SNAPSHOT_COLLECTION = "permission_matrix_snapshots"

Cell = Tuple[Module, Action, Role]


@dataclass
class RoleStats:
    total: int = 0
    granted: int = 0


@dataclass
class MatrixStats:
    total: int = 0
    granted: int = 0
    by_role: Dict[Role, RoleStats] = field(default_factory=dict)


class PermissionMatrix:
    """
    Full permission table, one cell per (module, action, role).

    Usage:
        matrix = PermissionMatrix()
        matrix.toggle(Module.FINANCE_MANAGEMENT, Action.READ, Role.VISITOR_MEMBER, True)
        matrix.stats().granted
    """

    def __init__(self):
        self.roles: List[Role] = list(Role)
        self.modules: List[Module] = list(Module)
        self.actions: List[Action] = list(Action)
        self._cells: Dict[Cell, bool] = {}
        self.build()

    def build(self) -> None:
        """Populate every cell from the policy, dropping any overrides."""
        self._cells = {
            (module, action, role): evaluate(role, module, action)
            for module in self.modules
            for action in self.actions
            for role in self.roles
        }

    def reset(self) -> None:
        self.build()
        log.info("Permission matrix reset to policy defaults")

    def restore(self, other: "PermissionMatrix") -> None:
        """Replace every cell with the values of ``other``."""
        self._cells = other.cells()

    def toggle(self, module: Module, action: Action, role: Role, value: bool) -> None:
        """
        Set a single cell.

        Raises:
            ValueError: ``module``, ``action`` or ``role`` is not in the catalog.
        """
        self._cells[(Module(module), Action(action), Role(role))] = bool(value)

    def is_allowed(self, module: Module, action: Action, role: Role) -> bool:
        return self._cells.get((module, action, role), False)

    def allows_any(self, roles, module: Module, action: Action) -> bool:
        return any(self.is_allowed(module, action, role) for role in roles)

    def cells(self) -> Dict[Cell, bool]:
        return dict(self._cells)

    def overrides(self) -> Dict[Cell, bool]:
        """Cells whose value differs from the policy default."""
        return {
            (module, action, role): value
            for (module, action, role), value in self._cells.items()
            if value != evaluate(role, module, action)
        }

    def stats(self) -> MatrixStats:
        stats = MatrixStats(by_role={role: RoleStats() for role in self.roles})
        for (_module, _action, role), value in self._cells.items():
            stats.total += 1
            stats.by_role[role].total += 1
            if value:
                stats.granted += 1
                stats.by_role[role].granted += 1
        return stats

    def as_nested(self) -> Dict[str, Dict[str, Dict[str, bool]]]:
        """module -> action -> role -> allowed, in catalog order."""
        return {
            module.value: {
                action.value: {
                    role.value: self._cells[(module, action, role)]
                    for role in self.roles
                }
                for action in self.actions
            }
            for module in self.modules
        }

    def to_document(self) -> Dict[str, Any]:
        return {
            "roles": [role.value for role in self.roles],
            "modules": [module.value for module in self.modules],
            "actions": [action.value for action in self.actions],
            "matrix": self.as_nested(),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "PermissionMatrix":
        """
        Rebuild a matrix from a saved snapshot.

        Cells for roles, modules or actions the snapshot does not know about,
        and cells whose saved value is not a boolean, keep their policy
        default, so coverage stays total after the catalog grows.
        """
        matrix = cls()
        saved = doc.get("matrix", {})
        for module in matrix.modules:
            for action in matrix.actions:
                row = saved.get(module.value, {}).get(action.value, {})
                for role in matrix.roles:
                    value = row.get(role.value)
                    if isinstance(value, bool):
                        matrix.toggle(module, action, role, value)
                    elif value is not None:
                        log.warning(
                            f"Ignoring non-boolean snapshot cell {module.value}/{action.value}/{role.value}: {value!r}"
                        )
        return matrix


async def save_snapshot(
    store: DocumentStore,
    matrix: PermissionMatrix,
    saved_by: Optional[str] = None,
) -> str:
    doc = matrix.to_document()
    doc["saved_by"] = saved_by
    doc["saved_at"] = datetime.now(timezone.utc).isoformat()
    snapshot_id = await store.create(SNAPSHOT_COLLECTION, doc)
    log.info(f"Saved permission matrix snapshot {snapshot_id} by {saved_by}")
    return snapshot_id


async def load_latest_snapshot(store: DocumentStore) -> Optional[Tuple[str, PermissionMatrix]]:
    """Return the most recently saved snapshot, or ``None`` if none exist."""
    docs = await store.query(SNAPSHOT_COLLECTION)
    if not docs:
        return None
    latest = max(docs, key=lambda doc: (doc.get("saved_at") or "", doc["id"]))
    return latest["id"], PermissionMatrix.from_document(latest)


async def load_snapshot(store: DocumentStore, snapshot_id: str) -> Optional[PermissionMatrix]:
    doc = await store.get(SNAPSHOT_COLLECTION, snapshot_id)
    if doc is None:
        return None
    return PermissionMatrix.from_document(doc)
