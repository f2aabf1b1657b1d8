"""
Message business rules.

MessageLogic validates input, checks existence, title uniqueness and the
active flag, then performs at most one mutating store call. Every expected
condition comes back as a Result; anything raised out of here is fatal.
"""

import logging
import uuid
from typing import Callable, Optional

from app.domain import (
    Clock,
    DuplicateTitleError,
    FieldError,
    Message,
    MessageDraft,
    MessageStore,
    Result,
    utc_now,
)

logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
CONTENT_MIN_LENGTH = 10
CONTENT_MAX_LENGTH = 1000

DUPLICATE_TITLE = "a message with this title already exists for this organization"


def _new_id() -> str:
    return str(uuid.uuid4())


def validate_title(title: Optional[str]) -> Optional[FieldError]:
    if title is None or not title.strip():
        return FieldError("title", "title is required")
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        return FieldError(
            "title",
            f"title must be between {TITLE_MIN_LENGTH} and {TITLE_MAX_LENGTH} characters",
        )
    return None


def validate_content(content: Optional[str]) -> Optional[FieldError]:
    if content is None:
        return FieldError("content", "content is required")
    if not CONTENT_MIN_LENGTH <= len(content) <= CONTENT_MAX_LENGTH:
        return FieldError(
            "content",
            f"content must be between {CONTENT_MIN_LENGTH} and {CONTENT_MAX_LENGTH} characters",
        )
    return None


def _validate(draft: MessageDraft) -> list[FieldError]:
    errors = [validate_title(draft.title), validate_content(draft.content)]
    return [e for e in errors if e is not None]


class MessageLogic:
    """Create, update, delete, get and list messages of one organization at a time."""

    def __init__(
        self,
        store: MessageStore,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = _new_id,
    ):
        if store is None:
            raise ValueError("store is required")
        self.store = store
        self.clock = clock
        self.id_factory = id_factory

    def create(self, organization_id: str, draft: Optional[MessageDraft]) -> Result:
        if draft is None:
            return Result.invalid(FieldError("request", "request body is required"))

        errors = _validate(draft)
        if errors:
            logger.info(f"Create rejected for organization {organization_id}: invalid input")
            return Result.invalid(*errors)

        if self.store.find_by_title(organization_id, draft.title) is not None:
            logger.info(f"Create rejected for organization {organization_id}: duplicate title")
            return Result.conflict(DUPLICATE_TITLE)

        now = self.clock()
        message = Message(
            id=self.id_factory(),
            organization_id=organization_id,
            title=draft.title,
            content=draft.content,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        try:
            self.store.insert(message)
        except DuplicateTitleError:
            logger.warning(f"Store rejected duplicate title for organization {organization_id}")
            return Result.conflict(DUPLICATE_TITLE)

        logger.info(f"Message created: id={message.id}, organization={organization_id}")
        return Result.success(message)

    def update(
        self,
        organization_id: str,
        message_id: str,
        draft: Optional[MessageDraft],
    ) -> Result:
        if draft is None:
            return Result.invalid(FieldError("request", "request body is required"))

        stored = self.store.get_by_id(organization_id, message_id)
        if stored is None:
            return Result.not_found()
        if not stored.is_active:
            return Result.invalid(FieldError("is_active", "cannot update an inactive message"))

        errors = _validate(draft)
        if errors:
            return Result.invalid(*errors)

        duplicate = self.store.find_by_title(organization_id, draft.title)
        if duplicate is not None and duplicate.id != stored.id:
            logger.info(f"Update of {message_id} rejected: title taken by {duplicate.id}")
            return Result.conflict(DUPLICATE_TITLE)

        stored.title = draft.title
        stored.content = draft.content
        stored.updated_at = self.clock()
        try:
            updated = self.store.update(stored)
        except DuplicateTitleError:
            logger.warning(f"Store rejected duplicate title for organization {organization_id}")
            return Result.conflict(DUPLICATE_TITLE)

        if updated is None:
            # Removed between lookup and write
            logger.warning(f"Message {message_id} vanished before update was applied")
            return Result.not_found()

        logger.info(f"Message updated: id={message_id}, organization={organization_id}")
        return Result.success()

    def delete(self, organization_id: str, message_id: str) -> Result:
        stored = self.store.get_by_id(organization_id, message_id)
        if stored is None:
            return Result.not_found()
        if not stored.is_active:
            return Result.invalid(FieldError("is_active", "cannot delete an inactive message"))

        if not self.store.delete(organization_id, message_id):
            logger.warning(f"Message {message_id} vanished before delete was applied")
            return Result.not_found()

        logger.info(f"Message deleted: id={message_id}, organization={organization_id}")
        return Result.success()

    def get(self, organization_id: str, message_id: str) -> Result:
        stored = self.store.get_by_id(organization_id, message_id)
        if stored is None:
            return Result.not_found()
        return Result.success(stored)

    def list(self, organization_id: str) -> Result:
        messages = self.store.list_by_organization(organization_id)
        return Result.success(list(messages or []))
