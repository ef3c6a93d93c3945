"""Write path for conversational memory."""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from weaviate.classes.data import DataObject

from .collection import CollectionManager
from .errors import PersistenceError

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant")
# Identifier field the store reserves for its own object UUID.
RESERVED_ID_FIELD = "id"
EXTERNAL_ID_FIELD = "messageID"


@dataclass(frozen=True)
class DialogueEntry:
    timestamp: str
    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}, got {self.role!r}")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def strip_nulls(value: Any) -> Any:
    """Return a copy of ``value`` with every ``None`` removed, at any depth.

    The store's write path rejects explicit nulls but accepts missing
    fields, so ``{"a": None, "b": {"c": None}}`` becomes ``{"b": {}}``.
    ``None`` items inside lists are dropped as well, so later items shift
    down: ``[1, None, 3]`` is stored as ``[1, 3]``.  List positions are not
    preserved because the store cannot hold a null placeholder either.
    """
    if isinstance(value, Mapping):
        return {key: strip_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [strip_nulls(item) for item in value if item is not None]
    return value


class MemoryStore:
    """Append dialogue turns and structured payloads to the open collection."""

    def __init__(self, manager: CollectionManager) -> None:
        self.manager = manager

    def append_turn(self, role: str, content: str) -> str:
        """Store one turn and return its generated identifier."""
        collection = self.manager.collection
        entry = DialogueEntry(timestamp=utc_timestamp(), role=role, content=content)
        entry_id = uuid.uuid4()
        try:
            inserted = collection.data.insert(properties=asdict(entry), uuid=entry_id)
        except Exception as exc:
            logger.exception("Failed to insert %s turn into %s", role, self.manager.name)
            raise PersistenceError("Error adding message to history", cause=exc) from exc
        logger.debug("Stored %s turn %s in %s", role, inserted, self.manager.name)
        return str(inserted)

    def append_pair(self, user_content: str, assistant_content: str) -> bool:
        """Store a user/assistant pair in one batch.

        Returns ``True`` when the batch reported errors.  Entries that did
        succeed stay persisted; nothing is rolled back or retried.
        """
        collection = self.manager.collection
        timestamp = utc_timestamp()
        objects = [
            DataObject(properties=asdict(DialogueEntry(timestamp, "user", user_content)), uuid=uuid.uuid4()),
            DataObject(properties=asdict(DialogueEntry(timestamp, "assistant", assistant_content)), uuid=uuid.uuid4()),
        ]
        try:
            result = collection.data.insert_many(objects)
        except Exception as exc:
            logger.exception("Batch insert into %s failed", self.manager.name)
            raise PersistenceError("Error adding message pair to history", cause=exc) from exc

        if result.has_errors:
            logger.warning(
                "Batch insert into %s reported %d failed object(s)",
                self.manager.name,
                len(getattr(result, "errors", None) or {}),
            )
        return bool(result.has_errors)

    def append_structured(self, role: str, payload: Any) -> str:
        """Store an arbitrary transport payload tagged with ``role``.

        The payload's own ``id`` is kept as ``messageID`` and a fresh UUID is
        used as the object identifier.  ``None`` values are removed at every
        depth.
        """
        collection = self.manager.collection
        properties = self._prepare_payload(role, payload)
        entry_id = uuid.uuid4()
        try:
            inserted = collection.data.insert(properties=properties, uuid=entry_id)
        except Exception as exc:
            logger.exception("Failed to insert %s payload into %s", role, self.manager.name)
            raise PersistenceError("Error storing message payload", cause=exc) from exc
        logger.debug("Stored %s payload %s in %s", role, inserted, self.manager.name)
        return str(inserted)

    def count(self) -> int:
        """Total number of objects in the collection."""
        collection = self.manager.collection
        response = collection.aggregate.over_all(total_count=True)
        return int(response.total_count or 0)

    @staticmethod
    def _prepare_payload(role: str, payload: Any) -> Dict[str, Any]:
        if isinstance(payload, Mapping):
            properties: Dict[str, Any] = dict(payload)
        else:
            properties = {"content": payload if isinstance(payload, str) else str(payload)}
        if RESERVED_ID_FIELD in properties:
            properties[EXTERNAL_ID_FIELD] = properties.pop(RESERVED_ID_FIELD)
        properties["role"] = role
        return strip_nulls(properties)


def entries_from_objects(objects: List[Any]) -> List[Dict[str, Any]]:
    """Property dicts of query results, in the order the store ranked them."""
    return [dict(getattr(obj, "properties", obj) or {}) for obj in objects]
