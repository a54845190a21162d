"""
Core modules for Face Attendance Kiosk

The MediaPipe detector and the embedding backends are imported lazily by
FaceExtractor when the models are first loaded.
"""

from .camera import CameraSession
from .comparator import FaceComparator
from .extractor import FaceExtractor, get_extractor
from .orchestrator import AttendanceOrchestrator
from .types import (
    AttendanceDecision,
    CameraState,
    CapturedFace,
    CaptureMode,
    CaptureResult,
    CaptureState,
    VerificationOutcome,
)

__all__ = [
    'CameraSession',
    'FaceComparator',
    'FaceExtractor',
    'get_extractor',
    'AttendanceOrchestrator',
    'AttendanceDecision',
    'CameraState',
    'CapturedFace',
    'CaptureMode',
    'CaptureResult',
    'CaptureState',
    'VerificationOutcome',
]
