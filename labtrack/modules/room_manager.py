"""
Room Manager Module - Lab Room Usage Tracker

This module handles the registry of laboratory rooms configured by
administrators. The registry is a single persisted list that is rewritten on
every change.

Features:
- Room creation, update, deletion and listing
- Deterministic room ids and QR payloads ("room-{number}")
- Duplicate room number rejection
- Seeding of the default laboratory rooms
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union
import logging

from labtrack.modules.database_manager import CollectionDecodeError


def room_id_for(number: str) -> str:
    return f"room-{number}"


def split_equipment(value: Union[str, Iterable[str], None]) -> List[str]:
    """Split a comma-separated equipment field, dropping blanks."""
    if value is None:
        return []
    items = value.split(',') if isinstance(value, str) else value
    return [str(item).strip() for item in items if str(item).strip()]


def parse_positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass
class Room:
    """Data structure for a registered room."""
    id: str
    number: str
    name: str
    capacity: int
    equipment: List[str] = field(default_factory=list)
    qr_code: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'number': self.number,
            'name': self.name,
            'capacity': self.capacity,
            'equipment': list(self.equipment),
            'qrCode': self.qr_code,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Room':
        number = str(data['number'])
        return cls(
            id=data.get('id') or room_id_for(number),
            number=number,
            name=data.get('name', ''),
            capacity=int(data.get('capacity') or 0),
            equipment=split_equipment(data.get('equipment')),
            qr_code=data.get('qrCode') or room_id_for(number),
        )


class RoomManager:
    """
    Room registry backed by one persisted collection.
    """

    def __init__(self, database_manager, storage_key: str = 'labRooms',
                 default_rooms: Optional[List[Dict[str, Any]]] = None,
                 default_capacity: int = 20):
        """
        Initialize the room manager.

        Args:
            database_manager: Database manager instance
            storage_key (str): Collection key for the registry
            default_rooms: Rooms seeded when the registry has never been saved
            default_capacity (int): Capacity used when the form value is unusable
        """
        self.db = database_manager
        self.storage_key = storage_key
        self.default_rooms = default_rooms or []
        self.default_capacity = default_capacity
        self.logger = logging.getLogger(__name__)

        self.logger.info("Room manager initialized")

    def _load(self) -> List[Room]:
        try:
            documents = self.db.read_collection(self.storage_key)
        except CollectionDecodeError as e:
            self.logger.warning(f"Discarding unreadable room registry: {str(e)}")
            return []

        if documents is None:
            rooms = [self._build_room(**room) for room in self.default_rooms]
            if rooms:
                self._save(rooms)
                self.logger.info(f"Seeded {len(rooms)} default rooms")
            return rooms

        return [Room.from_dict(document) for document in documents]

    def _save(self, rooms: List[Room]) -> None:
        self.db.write_collection(self.storage_key, [room.to_dict() for room in rooms])

    def _build_room(self, number: str, name: str, capacity: Any = None,
                    equipment: Any = None) -> Room:
        number = str(number).strip()
        return Room(
            id=room_id_for(number),
            number=number,
            name=str(name).strip(),
            capacity=parse_positive_int(capacity, self.default_capacity),
            equipment=split_equipment(equipment),
            qr_code=room_id_for(number),
        )

    def get_all_rooms(self) -> List[Room]:
        return self._load()

    def get_room(self, room_id: str) -> Optional[Room]:
        for room in self._load():
            if room.id == room_id:
                return room
        return None

    def get_room_by_number(self, number: str) -> Optional[Room]:
        for room in self._load():
            if room.number == str(number):
                return room
        return None

    def get_room_count(self) -> int:
        return len(self._load())

    def create_room(self, number: str, name: str, capacity: Any = None,
                    equipment: Any = None) -> Dict[str, Any]:
        """
        Create a new room.

        Args:
            number (str): Room number, also the source of the room id
            name (str): Room name
            capacity: Capacity, defaulted when missing or not a positive integer
            equipment: Comma-separated string or list of equipment

        Returns:
            Dict[str, Any]: Creation result
        """
        if not number or not str(number).strip() or not name or not str(name).strip():
            return {
                'success': False,
                'error': 'Room number and name are required'
            }

        rooms = self._load()
        room = self._build_room(number, name, capacity, equipment)

        if any(existing.number == room.number for existing in rooms):
            self.logger.warning(f"Rejected duplicate room number {room.number}")
            return {
                'success': False,
                'error': f'Room {room.number} already exists'
            }

        rooms.append(room)
        self._save(rooms)

        self.logger.info(f"Room created successfully: {room.number} (ID: {room.id})")
        return {
            'success': True,
            'room': room,
            'message': 'Room created successfully'
        }

    def update_room(self, room_id: str, room_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a room's number, name, capacity or equipment.

        The id and QR payload keep the value assigned at creation.
        """
        rooms = self._load()
        index = next((i for i, room in enumerate(rooms) if room.id == room_id), None)

        if index is None:
            return {
                'success': False,
                'error': 'Room not found'
            }

        current = rooms[index]
        number = str(room_data.get('number', current.number)).strip()
        name = str(room_data.get('name', current.name)).strip()

        if not number or not name:
            return {
                'success': False,
                'error': 'Room number and name are required'
            }

        if any(room.number == number for i, room in enumerate(rooms) if i != index):
            return {
                'success': False,
                'error': f'Room {number} already exists'
            }

        rooms[index] = Room(
            id=current.id,
            number=number,
            name=name,
            capacity=parse_positive_int(room_data.get('capacity', current.capacity), self.default_capacity),
            equipment=split_equipment(room_data.get('equipment', current.equipment)),
            qr_code=current.qr_code,
        )
        self._save(rooms)

        self.logger.info(f"Room {room_id} updated successfully")
        return {
            'success': True,
            'room': rooms[index],
            'message': 'Room updated successfully'
        }

    def delete_room(self, room_id: str) -> bool:
        rooms = self._load()
        remaining = [room for room in rooms if room.id != room_id]

        if len(remaining) == len(rooms):
            return False

        self._save(remaining)
        self.logger.info(f"Room {room_id} deleted")
        return True
