"""
HistoryStore: Persisted list of completed analysis runs.

Each completed pipeline run becomes one HistoryEntry:
- the project description and location it was run with
- the finished analysis result
- optionally a conceptual design and a simulation attached later

Entries are kept most-recent-first. Persistence is an injected storage
boundary (load/save of the whole list), read once at construction and
written after every mutation.

A store is shared by the HTTP handlers, which run in a threadpool, so each
mutation and the save that follows it happen under one lock.
"""

import copy
import json
import os
import tempfile
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional, Protocol

from logging_utils import get_logger
from state import InvalidInputError, PipelineState

logger = get_logger(__name__)

# Sub-results that may be attached to an entry after it was appended
ATTACHABLE_FIELDS = frozenset({"conceptualDesign", "simulation"})


def generate_entry_id() -> str:
    """Generate a unique, time-derived entry ID."""
    millis = int(datetime.now().timestamp() * 1000)
    return f"{millis}-{uuid.uuid4().hex[:6]}"


@dataclass(frozen=True)
class HistoryEntry:
    """One completed analysis run."""
    id: str
    project_description: str
    project_location: str
    created_at: str
    analysis: dict[str, Any] = field(default_factory=dict)
    conceptual_design: Optional[dict[str, Any]] = None
    simulation: Optional[dict[str, Any]] = None

    @classmethod
    def from_pipeline(cls, state: PipelineState, entry_id: str | None = None) -> "HistoryEntry":
        """
        Freeze a finished pipeline run into an entry.

        Raises:
            InvalidInputError: If the pipeline has not reached its terminal state.
        """
        if not state.is_complete:
            raise InvalidInputError("Only completed analyses can be added to history")
        return cls(
            id=entry_id or generate_entry_id(),
            project_description=state.description,
            project_location=state.location,
            created_at=datetime.now().isoformat(),
            analysis=dict(state.result),
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "projectDescription": self.project_description,
            "projectLocation": self.project_location,
            "createdAt": self.created_at,
            "analysis": self.analysis,
        }
        if self.conceptual_design is not None:
            data["conceptualDesign"] = self.conceptual_design
        if self.simulation is not None:
            data["simulation"] = self.simulation
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        return cls(
            id=str(data["id"]),
            project_description=data.get("projectDescription", ""),
            project_location=data.get("projectLocation", ""),
            created_at=data.get("createdAt", ""),
            analysis=data.get("analysis", {}),
            conceptual_design=data.get("conceptualDesign"),
            simulation=data.get("simulation"),
        )


class HistoryStorage(Protocol):
    """Durable slot holding the serialized history list."""

    def load(self) -> list[dict]:
        ...

    def save(self, entries: list[dict]) -> None:
        ...


class MemoryStorage:
    """In-process storage; contents are lost with the process."""

    def __init__(self, entries: list[dict] | None = None):
        self.entries = list(entries or [])
        self.save_count = 0

    def load(self) -> list[dict]:
        return copy.deepcopy(self.entries)

    def save(self, entries: list[dict]) -> None:
        self.entries = copy.deepcopy(entries)
        self.save_count += 1


class JsonFileStorage:
    """
    One named slot inside a JSON document on disk.

    File layout:
        {
            "<slot>": [ {entry}, {entry}, ... ],
            ...other slots are preserved...
        }
    """

    def __init__(self, path: str, slot: str = "analysisHistory"):
        self.path = path
        self.slot = slot
        self._lock = threading.Lock()

    def _read_document(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            try:
                document = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"History file {self.path} is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise ValueError(f"History file {self.path} must contain a JSON object")
        return document

    def load(self) -> list[dict]:
        entries = self._read_document().get(self.slot, [])
        if not isinstance(entries, list):
            logger.warning(f"Slot '{self.slot}' in {self.path} is not a list; ignoring it")
            return []
        return entries

    def save(self, entries: list[dict]) -> None:
        with self._lock:
            document = self._read_document()
            document[self.slot] = entries

            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)

            # Write to a sibling temp file, then swap it in
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".history_", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise


class HistoryStore:
    """
    Owns the ordered list of completed runs.

    Usage:
        store = HistoryStore(JsonFileStorage("data/structura_store.json"))

        store.append(HistoryEntry.from_pipeline(final_state))
        store.update_entry(entry_id, {"conceptualDesign": design})

        for entry in store.list():
            print(f"{entry.id}: {entry.project_description[:40]}")
    """

    def __init__(self, storage: HistoryStorage):
        """
        Initialize the store from its storage slot.

        Args:
            storage: Load/save boundary. Read once here.
        """
        self.storage = storage
        self._entries: list[HistoryEntry] = []
        self._lock = threading.Lock()

        for raw in storage.load():
            try:
                self._entries.append(HistoryEntry.from_dict(raw))
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping unreadable history entry: {e}")

        logger.debug(f"Loaded {len(self._entries)} history entries")

    def __len__(self) -> int:
        return len(self._entries)

    def _persist(self) -> None:
        self.storage.save([entry.to_dict() for entry in self._entries])

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        """Add an entry at the front (most-recent-first) and persist."""
        with self._lock:
            self._entries.insert(0, copy.deepcopy(entry))
            self._persist()
        logger.info(f"Added history entry {entry.id}")
        return entry

    def update_entry(self, entry_id: str, patch: dict[str, Any]) -> Optional[HistoryEntry]:
        """
        Attach sub-results to an existing entry.

        Args:
            entry_id: Entry to update.
            patch: camelCase keys from ATTACHABLE_FIELDS mapped to their values.

        Returns:
            The updated entry, or None if no entry has this id (nothing
            changes and nothing is raised in that case, whatever the patch).

        Raises:
            InvalidInputError: If the entry exists and patch names a field
                that can't be attached.
        """
        with self._lock:
            index = self._index_of(entry_id)
            if index is None:
                logger.debug(f"update_entry: no history entry with id {entry_id}")
                return None

            unknown = set(patch) - ATTACHABLE_FIELDS
            if unknown:
                raise InvalidInputError(
                    f"Cannot update fields: {', '.join(sorted(unknown))}. "
                    f"Allowed: {', '.join(sorted(ATTACHABLE_FIELDS))}"
                )

            changes = {}
            if "conceptualDesign" in patch:
                changes["conceptual_design"] = copy.deepcopy(patch["conceptualDesign"])
            if "simulation" in patch:
                changes["simulation"] = copy.deepcopy(patch["simulation"])

            updated = replace(self._entries[index], **changes)
            self._entries[index] = updated
            self._persist()

        logger.info(f"Updated history entry {entry_id}: {', '.join(sorted(patch))}")
        return copy.deepcopy(updated)

    def _index_of(self, entry_id: str) -> Optional[int]:
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return i
        return None

    def list(self) -> list[HistoryEntry]:
        """
        Entries, most-recent-first.

        The list and the entries' result dicts are copies; changing them
        does not touch the store.
        """
        with self._lock:
            return copy.deepcopy(self._entries)

    def select(self, entry_id: str) -> Optional[HistoryEntry]:
        """Get a copy of an entry by id, or None if not found."""
        with self._lock:
            index = self._index_of(entry_id)
            if index is None:
                return None
            return copy.deepcopy(self._entries[index])

    def clear(self) -> int:
        """
        Remove all entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            count = len(self._entries)
            self._entries = []
            self._persist()
        logger.info(f"Cleared {count} history entries")
        return count
