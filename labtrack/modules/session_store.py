"""
Session Store Module - Lab Room Usage Tracker

Holds the list of room usage entries (check-in / check-out records). The whole
list is persisted under one storage key and rewritten on every mutation.

Features:
- UsageEntry record with JSON (camelCase) serialization
- Whole-collection load with empty default on absence or parse failure
- Whole-collection save with an in-process cache replaced on every write
  and revalidated against the stored version on every load
- Open-entry lookup by (teacher, building, room)
- Write-time guard against a second open entry for the same triple
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from labtrack.modules.database_manager import CollectionDecodeError


class DuplicateOpenEntryError(ValueError):
    """Raised when adding an open entry for a triple that already has one."""


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into a naive local datetime.

    Accepts ISO 8601 strings (including a trailing 'Z') and datetime objects.
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format as a naive local ISO string, the same form parse_timestamp returns."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.isoformat()


@dataclass
class UsageEntry:
    """Data class for one room usage record. No end_time means the entry is open."""
    teacher_id: str
    teacher_name: str
    building_number: str
    room_number: str
    start_time: datetime
    end_time: Optional[datetime] = None
    num_students: int = 1
    purpose: str = ''
    equipment: List[str] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def room_label(self) -> str:
        return f"{self.building_number}-{self.room_number}"

    def matches(self, teacher_id: str, building_number: str, room_number: str) -> bool:
        return (self.teacher_id == teacher_id
                and self.building_number == building_number
                and self.room_number == room_number)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'teacherId': self.teacher_id,
            'teacherName': self.teacher_name,
            'buildingNumber': self.building_number,
            'roomNumber': self.room_number,
            'startTime': format_timestamp(self.start_time),
            'numStudents': self.num_students,
            'purpose': self.purpose,
            'equipment': list(self.equipment),
        }
        if self.end_time is not None:
            data['endTime'] = format_timestamp(self.end_time)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UsageEntry':
        return cls(
            teacher_id=str(data.get('teacherId', '')),
            teacher_name=str(data.get('teacherName', '')),
            building_number=str(data.get('buildingNumber', '')),
            room_number=str(data.get('roomNumber', '')),
            start_time=parse_timestamp(data['startTime']),
            end_time=parse_timestamp(data.get('endTime')),
            num_students=int(data.get('numStudents') or 0),
            purpose=str(data.get('purpose') or ''),
            equipment=[str(item) for item in data.get('equipment') or []],
        )


def serialize_entries(entries: List[UsageEntry]) -> List[Dict[str, Any]]:
    return [entry.to_dict() for entry in entries]


def deserialize_entries(documents: List[Dict[str, Any]]) -> List[UsageEntry]:
    return [UsageEntry.from_dict(document) for document in documents]


class SessionStore:
    """
    Whole-collection store for usage entries.

    Every read returns a private copy of the cached list. The cache is checked
    against the collection's stored version on each load, so writes made by
    other workers or processes are picked up. Every write persists the
    complete list and replaces the cache. Concurrent writers are
    last-write-wins.
    """

    def __init__(self, database_manager, storage_key: str = 'usageEntries'):
        self.db = database_manager
        self.storage_key = storage_key
        self.logger = logging.getLogger(__name__)
        self._cache: Optional[List[UsageEntry]] = None
        self._cache_version: Optional[int] = None

    def load(self) -> List[UsageEntry]:
        """
        Load the usage collection.

        Returns:
            List[UsageEntry]: Entries in insertion order; empty when the
            collection is missing or cannot be parsed.
        """
        version = self.db.get_collection_version(self.storage_key)
        if self._cache is None or version != self._cache_version:
            self._cache, self._cache_version = self._read()
        return copy.deepcopy(self._cache)

    def _read(self) -> Tuple[List[UsageEntry], Optional[int]]:
        try:
            documents, version = self.db.read_versioned_collection(self.storage_key)
        except CollectionDecodeError as e:
            self.logger.warning(f"Discarding unreadable usage collection: {str(e)}")
            return [], self.db.get_collection_version(self.storage_key)

        if documents is None:
            return [], None

        if not isinstance(documents, list):
            self.logger.warning(f"Usage collection {self.storage_key!r} is not a list, ignoring it")
            return [], version

        try:
            return deserialize_entries(documents), version
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            self.logger.warning(f"Discarding malformed usage collection: {str(e)}")
            return [], version

    def save(self, entries: List[UsageEntry]) -> None:
        """Persist the whole collection and replace the cache."""
        version = self.db.write_collection(self.storage_key, serialize_entries(entries))
        self._cache = copy.deepcopy(entries)
        self._cache_version = version
        self.logger.debug(f"Persisted {len(entries)} usage entries (version {version})")

    def find_open_entry(self, teacher_id: str, building_number: str,
                        room_number: str) -> Optional[Tuple[int, UsageEntry]]:
        """
        Find the first open entry for a (teacher, building, room) triple.

        Returns:
            Tuple of (index, entry) or None
        """
        for index, entry in enumerate(self.load()):
            if entry.is_open and entry.matches(teacher_id, building_number, room_number):
                return index, entry
        return None

    def add_entry(self, entry: UsageEntry) -> int:
        """
        Append an entry and persist.

        Returns:
            int: Index of the new entry

        Raises:
            DuplicateOpenEntryError: if the entry is open and its triple
            already has an open entry
        """
        entries = self.load()
        if entry.is_open:
            for existing in entries:
                if existing.is_open and existing.matches(
                        entry.teacher_id, entry.building_number, entry.room_number):
                    raise DuplicateOpenEntryError(
                        f"An open entry already exists for {entry.teacher_id} in {entry.room_label}"
                    )

        entries.append(entry)
        self.save(entries)
        return len(entries) - 1

    def update_entry(self, index: int, entry: UsageEntry) -> None:
        entries = self.load()
        if index < 0 or index >= len(entries):
            raise IndexError(f"No usage entry at position {index}")
        entries[index] = entry
        self.save(entries)

    def delete_entry(self, index: int) -> Optional[UsageEntry]:
        """
        Remove the entry at a position.

        Returns:
            UsageEntry: The removed entry, or None if the index is out of range
        """
        entries = self.load()
        if index < 0 or index >= len(entries):
            return None
        removed = entries.pop(index)
        self.save(entries)
        return removed

    def count(self) -> int:
        return len(self.load())
