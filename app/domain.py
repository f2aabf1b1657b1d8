"""
Domain types shared by the logic and store layers.

This module contains:
- Message: the persisted entity
- MessageDraft: title/content input for create and update
- Result / ResultKind / FieldError: the outcome of every logic operation
- MessageStore: the narrow interface the logic layer consumes
- Store errors raised by store implementations
"""

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# Entity
# =============================================================================

@dataclass
class Message:
    """A message owned by one organization."""
    id: str
    organization_id: str
    title: str
    content: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    def copy(self) -> "Message":
        return replace(self)


@dataclass(frozen=True)
class MessageDraft:
    """Caller-supplied title/content for a create or update, not yet validated."""
    title: Optional[str] = None
    content: Optional[str] = None


# =============================================================================
# Result variant
# =============================================================================

class ResultKind(str, enum.Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION_ERROR = "validation_error"


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass(frozen=True)
class Result:
    """
    Outcome of a logic operation.

    Exactly one kind is set. Payload fields are only meaningful for their kind:
    - SUCCESS: value (may be None for acknowledgement-only operations)
    - NOT_FOUND / CONFLICT: detail
    - VALIDATION_ERROR: errors (at least one) and detail
    """
    kind: ResultKind
    value: Any = None
    detail: Optional[str] = None
    errors: tuple[FieldError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(kind=ResultKind.SUCCESS, value=value)

    @classmethod
    def not_found(cls, detail: str = "message not found") -> "Result":
        return cls(kind=ResultKind.NOT_FOUND, detail=detail)

    @classmethod
    def conflict(cls, detail: str) -> "Result":
        return cls(kind=ResultKind.CONFLICT, detail=detail)

    @classmethod
    def invalid(cls, *errors: FieldError) -> "Result":
        if not errors:
            raise ValueError("a validation result needs at least one field error")
        return cls(
            kind=ResultKind.VALIDATION_ERROR,
            detail="; ".join(e.message for e in errors),
            errors=tuple(errors),
        )

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.SUCCESS


# =============================================================================
# Store contract
# =============================================================================

class StoreError(Exception):
    """Base class for store failures. These are never business outcomes."""


class DuplicateIdError(StoreError):
    """Insert was given an id that already exists."""


class DuplicateTitleError(StoreError):
    """The store's own title constraint rejected the write."""


class MessageStore(Protocol):
    def find_by_title(self, organization_id: str, title: str) -> Optional[Message]:
        ...

    def get_by_id(self, organization_id: str, message_id: str) -> Optional[Message]:
        ...

    def list_by_organization(self, organization_id: str) -> list[Message]:
        ...

    def insert(self, message: Message) -> None:
        ...

    def update(self, message: Message) -> Optional[Message]:
        ...

    def delete(self, organization_id: str, message_id: str) -> bool:
        ...
