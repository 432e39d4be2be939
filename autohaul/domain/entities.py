"""
Domain errors and value objects.

Error kinds
-----------
- ``NotFound``: a referenced id does not resolve.
- ``InvalidTransition``: the requested primary action violates a
  precondition (e.g. deleting a truck that is in use).
- ``PersistenceFailure``: the store rejected a write.

Checklists and photos are stored as JSON on their owning row; the
dataclasses below are the typed view of one entry.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


class StatusEngineError(Exception):
    """Base class for errors raised by the status engine."""


class NotFound(StatusEngineError):
    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidTransition(StatusEngineError):
    """Raised when a primary action violates its preconditions."""


class PersistenceFailure(StatusEngineError):
    """Raised when the store fails to persist the primary change."""


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass
class ChecklistItem:
    item: str
    checked: bool = False
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None

    def mark(self, checked: bool = True, when: Optional[datetime] = None) -> None:
        self.checked = checked
        self.completed_at = (when or datetime.now(timezone.utc)) if checked else None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.completed_at is not None:
            data["completed_at"] = self.completed_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ChecklistItem":
        completed_at = data.get("completed_at")
        if isinstance(completed_at, str):
            completed_at = datetime.fromisoformat(completed_at)
        return cls(
            item=data["item"],
            checked=bool(data.get("checked", False)),
            notes=data.get("notes"),
            completed_at=completed_at,
        )


@dataclass(frozen=True)
class Photo:
    url: str
    taken_at: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.taken_at is not None:
            data["taken_at"] = self.taken_at.isoformat()
        return data


@dataclass
class Checklist:
    items: list[ChecklistItem] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return bool(self.items) and all(i.checked for i in self.items)

    def to_json(self) -> list[dict]:
        return [i.to_dict() for i in self.items]

    @classmethod
    def from_json(cls, raw: Optional[list[dict]]) -> "Checklist":
        return cls([ChecklistItem.from_dict(d) for d in raw or []])
