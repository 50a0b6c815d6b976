# Lab Room Usage Tracker - Modules Package
"""
Core modules: persistence, identity, usage matching, registries, reports and
QR codes.
"""

from .database_manager import DatabaseManager
from .session_store import SessionStore, UsageEntry
from .identity_resolver import IdentityResolver, DemoAuthenticator, Role, User
from .checkin_manager import CheckInManager
from .room_manager import RoomManager, Room
from .teacher_manager import TeacherManager, TeacherAccount
from .report_generator import ReportGenerator
from .qr_generator import QRGenerator, ScannedIdentity

__all__ = [
    'DatabaseManager',
    'SessionStore',
    'UsageEntry',
    'IdentityResolver',
    'DemoAuthenticator',
    'Role',
    'User',
    'CheckInManager',
    'RoomManager',
    'Room',
    'TeacherManager',
    'TeacherAccount',
    'ReportGenerator',
    'QRGenerator',
    'ScannedIdentity',
]
