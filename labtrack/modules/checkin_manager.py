"""
Check-in Manager Module - Lab Room Usage Tracker

This module decides what a usage form submission means. A teacher who has no
open entry for the submitted building and room is checked in; a teacher who
does is checked out of that entry.

Features:
- Form validation (scanned teacher, building, room number)
- Form defaults (student count, purpose, equipment list)
- Check-in / check-out toggling on the first open match
"""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional
import logging

from labtrack.modules.qr_generator import ScannedIdentity
from labtrack.modules.room_manager import parse_positive_int, split_equipment
from labtrack.modules.session_store import DuplicateOpenEntryError, UsageEntry

ACTION_CHECK_IN = 'check_in'
ACTION_CHECK_OUT = 'check_out'


class CheckInManager:
    """
    Check-in / check-out matcher over the usage session store.
    """

    def __init__(self, session_store, buildings: Mapping[str, str],
                 default_purpose: str = 'General use', default_num_students: int = 1):
        """
        Args:
            session_store: SessionStore holding the usage entries
            buildings: Known building codes mapped to display names
            default_purpose (str): Purpose recorded when the form leaves it empty
            default_num_students (int): Student count used when the form value is unusable
        """
        self.store = session_store
        self.buildings = dict(buildings)
        self.default_purpose = default_purpose
        self.default_num_students = default_num_students
        self.logger = logging.getLogger(__name__)

    def validate_submission(self, teacher: Optional[ScannedIdentity],
                            form: Mapping[str, Any]) -> Optional[str]:
        """Return an error message for an unusable submission, or None."""
        if teacher is None or not teacher.id:
            return 'Scan your Teacher ID before logging room usage'
        if not isinstance(form, Mapping):
            return 'Submission must be a set of form fields'

        building = str(form.get('buildingNumber') or '').strip()
        room = str(form.get('roomNumber') or '').strip()

        if not building:
            return 'Building is required'
        if building not in self.buildings:
            return f'Unknown building: {building}'
        if not room:
            return 'Room number is required'

        return None

    def process_submission(self, teacher: Optional[ScannedIdentity], form: Mapping[str, Any],
                           now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Check the teacher in or out of the submitted room.

        Args:
            teacher (ScannedIdentity): Identity from the last scan
            form: Submitted fields (buildingNumber, roomNumber, numStudents,
                purpose, equipment)
            now (datetime): Submission time, defaults to the current time

        Returns:
            Dict[str, Any]: Result with the action taken and the affected entry
        """
        error = self.validate_submission(teacher, form)
        if error:
            return {
                'success': False,
                'error': error,
                'error_type': 'validation_error'
            }

        now = now or datetime.now()
        building = str(form['buildingNumber']).strip()
        room = str(form['roomNumber']).strip()

        match = self.store.find_open_entry(teacher.id, building, room)

        if match:
            index, entry = match
            entry.end_time = max(now, entry.start_time)
            self.store.update_entry(index, entry)

            self.logger.info(f"Check-out: teacher {teacher.id}, room {entry.room_label}")
            return {
                'success': True,
                'action': ACTION_CHECK_OUT,
                'index': index,
                'entry': entry,
                'message': f"{teacher.name} checked out of {entry.room_label}"
            }

        entry = UsageEntry(
            teacher_id=teacher.id,
            teacher_name=teacher.name,
            building_number=building,
            room_number=room,
            start_time=now,
            num_students=parse_positive_int(form.get('numStudents'), self.default_num_students),
            purpose=str(form.get('purpose') or '').strip() or self.default_purpose,
            equipment=split_equipment(form.get('equipment')),
        )

        try:
            index = self.store.add_entry(entry)
        except DuplicateOpenEntryError as e:
            # Another writer opened the same triple between lookup and append
            self.logger.warning(f"Check-in rejected: {str(e)}")
            return {
                'success': False,
                'error': str(e),
                'error_type': 'duplicate_open_entry'
            }

        self.logger.info(f"Check-in: teacher {teacher.id}, room {entry.room_label}")
        return {
            'success': True,
            'action': ACTION_CHECK_IN,
            'index': index,
            'entry': entry,
            'message': f"{teacher.name} checked in to {entry.room_label}"
        }
