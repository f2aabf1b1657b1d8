"""
Process-local message store.

Each call is atomic under a lock, but nothing spans calls, and no title
constraint is enforced: uniqueness is left entirely to the logic layer's
check-then-act sequence.
"""

import logging
import threading
from typing import Optional

from app.domain import DuplicateIdError, Message

logger = logging.getLogger(__name__)


class InMemoryMessageStore:
    def __init__(self):
        self._messages: dict[tuple[str, str], Message] = {}
        self._lock = threading.Lock()

    def find_by_title(self, organization_id: str, title: str) -> Optional[Message]:
        with self._lock:
            for (org, _), message in self._messages.items():
                if org == organization_id and message.is_active and message.title == title:
                    return message.copy()
        return None

    def get_by_id(self, organization_id: str, message_id: str) -> Optional[Message]:
        with self._lock:
            message = self._messages.get((organization_id, message_id))
            return message.copy() if message else None

    def list_by_organization(self, organization_id: str) -> list[Message]:
        with self._lock:
            messages = [m.copy() for (org, _), m in self._messages.items() if org == organization_id]
        return sorted(messages, key=lambda m: (m.created_at, m.id))

    def insert(self, message: Message) -> None:
        key = (message.organization_id, message.id)
        with self._lock:
            # ids are global, not per organization
            if any(mid == message.id for _, mid in self._messages):
                raise DuplicateIdError(message.id)
            self._messages[key] = message.copy()
        logger.debug(f"Inserted message {message.id}")

    def update(self, message: Message) -> Optional[Message]:
        key = (message.organization_id, message.id)
        with self._lock:
            if key not in self._messages:
                return None
            self._messages[key] = message.copy()
        return message.copy()

    def delete(self, organization_id: str, message_id: str) -> bool:
        with self._lock:
            return self._messages.pop((organization_id, message_id), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
