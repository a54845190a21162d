"""
Database modules for Face Attendance Kiosk
"""

from .face_store import FaceStore
from .attendance_log import AttendanceLogger
from .attendance_client import AttendanceClient

__all__ = [
    'FaceStore',
    'AttendanceLogger',
    'AttendanceClient',
]
