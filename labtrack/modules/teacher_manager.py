"""
Teacher Manager Module - Lab Room Usage Tracker

Registry of teacher accounts managed by administrators. Accounts are separate
from signed-in users: a professor who signs in without a matching account is
registered automatically with a generated id.

Status flags (active, blocked, hidden) only affect how lists are filtered for
display.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging
import secrets

from labtrack.modules.database_manager import CollectionDecodeError

STATUS_ACTIVE = 'active'
STATUS_BLOCKED = 'blocked'
STATUS_HIDDEN = 'hidden'
VALID_STATUSES = (STATUS_ACTIVE, STATUS_BLOCKED, STATUS_HIDDEN)


@dataclass
class TeacherAccount:
    """Data structure for a teacher account."""
    id: str
    name: str
    department: str
    status: str = STATUS_ACTIVE
    email: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'department': self.department,
            'status': self.status,
        }
        if self.email:
            data['email'] = self.email
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TeacherAccount':
        status = data.get('status', STATUS_ACTIVE)
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            department=data.get('department', ''),
            status=status if status in VALID_STATUSES else STATUS_ACTIVE,
            email=data.get('email'),
        )


class TeacherManager:
    """
    Teacher account registry backed by one persisted collection.
    """

    def __init__(self, database_manager, storage_key: str = 'teachers',
                 default_teachers: Optional[List[Dict[str, Any]]] = None,
                 default_department: str = 'Unassigned',
                 id_prefix: str = 'T-'):
        self.db = database_manager
        self.storage_key = storage_key
        self.default_teachers = default_teachers or []
        self.default_department = default_department
        self.id_prefix = id_prefix
        self.logger = logging.getLogger(__name__)

    def _load(self) -> List[TeacherAccount]:
        try:
            documents = self.db.read_collection(self.storage_key)
        except CollectionDecodeError as e:
            self.logger.warning(f"Discarding unreadable teacher registry: {str(e)}")
            return []

        if documents is None:
            teachers = [TeacherAccount.from_dict(teacher) for teacher in self.default_teachers]
            if teachers:
                self._save(teachers)
                self.logger.info(f"Seeded {len(teachers)} default teacher accounts")
            return teachers

        return [TeacherAccount.from_dict(document) for document in documents]

    def _save(self, teachers: List[TeacherAccount]) -> None:
        self.db.write_collection(self.storage_key, [teacher.to_dict() for teacher in teachers])

    def get_all_teachers(self, include_hidden: bool = True,
                         include_blocked: bool = True) -> List[TeacherAccount]:
        """
        List teacher accounts.

        Args:
            include_hidden (bool): Keep accounts flagged hidden
            include_blocked (bool): Keep accounts flagged blocked
        """
        teachers = self._load()
        return [
            teacher for teacher in teachers
            if (include_hidden or teacher.status != STATUS_HIDDEN)
            and (include_blocked or teacher.status != STATUS_BLOCKED)
        ]

    def get_teacher(self, teacher_id: str) -> Optional[TeacherAccount]:
        return next((t for t in self._load() if t.id == teacher_id), None)

    def find_teacher(self, name: Optional[str] = None,
                     email: Optional[str] = None) -> Optional[TeacherAccount]:
        """Find an account by email or by name, whichever matches first."""
        for teacher in self._load():
            if email and teacher.email and teacher.email.lower() == email.lower():
                return teacher
            if name and teacher.name == name:
                return teacher
        return None

    def get_teacher_count(self, include_hidden: bool = False) -> int:
        return len(self.get_all_teachers(include_hidden=include_hidden))

    def create_teacher(self, teacher_id: str, name: str, department: str,
                       email: Optional[str] = None) -> Dict[str, Any]:
        """
        Create an active teacher account.

        Returns:
            Dict[str, Any]: Creation result
        """
        teacher_id = (teacher_id or '').strip()
        name = (name or '').strip()
        department = (department or '').strip()

        if not teacher_id or not name or not department:
            return {
                'success': False,
                'error': 'Teacher id, name and department are required'
            }

        teachers = self._load()
        if any(t.id == teacher_id for t in teachers):
            self.logger.warning(f"Rejected duplicate teacher id {teacher_id}")
            return {
                'success': False,
                'error': f'Teacher {teacher_id} already exists'
            }

        teacher = TeacherAccount(id=teacher_id, name=name, department=department, email=email)
        teachers.append(teacher)
        self._save(teachers)

        self.logger.info(f"Teacher created: {teacher_id}")
        return {
            'success': True,
            'teacher': teacher,
            'message': 'Teacher account created successfully'
        }

    def update_teacher(self, teacher_id: str, update_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Edit an account's id, name or department. Status has its own operation.
        """
        teachers = self._load()
        index = next((i for i, t in enumerate(teachers) if t.id == teacher_id), None)

        if index is None:
            return {
                'success': False,
                'error': 'Teacher not found'
            }

        current = teachers[index]
        new_id = str(update_data.get('id', current.id)).strip()
        name = str(update_data.get('name', current.name)).strip()
        department = str(update_data.get('department', current.department)).strip()

        if not new_id or not name or not department:
            return {
                'success': False,
                'error': 'Teacher id, name and department are required'
            }

        if new_id != teacher_id and any(t.id == new_id for t in teachers):
            return {
                'success': False,
                'error': f'Teacher {new_id} already exists'
            }

        teachers[index] = TeacherAccount(
            id=new_id,
            name=name,
            department=department,
            status=current.status,
            email=current.email,
        )
        self._save(teachers)

        self.logger.info(f"Teacher {teacher_id} updated")
        return {
            'success': True,
            'teacher': teachers[index],
            'message': 'Teacher account updated successfully'
        }

    def set_status(self, teacher_id: str, status: str) -> Dict[str, Any]:
        """
        Flip an account's status flag.

        Args:
            teacher_id (str): Account id
            status (str): One of active, blocked, hidden
        """
        if status not in VALID_STATUSES:
            return {
                'success': False,
                'error': f'Invalid status: {status}'
            }

        teachers = self._load()
        for teacher in teachers:
            if teacher.id == teacher_id:
                previous = teacher.status
                teacher.status = status
                self._save(teachers)
                self.logger.info(f"Teacher {teacher_id} status changed from {previous} to {status}")
                return {
                    'success': True,
                    'teacher': teacher
                }

        return {
            'success': False,
            'error': 'Teacher not found'
        }

    def _generate_teacher_id(self, existing_ids) -> str:
        while True:
            candidate = f"{self.id_prefix}{secrets.randbelow(9000) + 1000}"
            if candidate not in existing_ids:
                return candidate

    def ensure_registered(self, name: str, email: Optional[str] = None) -> TeacherAccount:
        """
        Return the account for a signed-in professor, creating it on first sign-in.

        A new account gets a random display id and the placeholder department.
        """
        existing = self.find_teacher(name=name, email=email)
        if existing:
            return existing

        teachers = self._load()
        teacher = TeacherAccount(
            id=self._generate_teacher_id({t.id for t in teachers}),
            name=name,
            department=self.default_department,
            email=email,
        )
        teachers.append(teacher)
        self._save(teachers)

        self.logger.info(f"Auto-registered teacher {teacher.id} for {email or name}")
        return teacher
