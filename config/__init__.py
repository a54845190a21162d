"""
Configuration package for Face Attendance Kiosk
"""

from .settings import *
from .thresholds import *
from .logging_config import setup_logging

__all__ = [
    # Camera
    'CAMERA_DEFAULT',
    'CAMERA_WIDTH',
    'CAMERA_HEIGHT',
    'CAMERA_FPS',
    'CAMERA_WARMUP_FRAMES',

    # Face Detection
    'DETECTION_CONFIDENCE',
    'OUTPUT_SIZE',

    # Embedding
    'EMBEDDING_BACKEND',
    'DLIB_NUM_JITTERS',
    'SNAPSHOT_JPEG_QUALITY',

    # Thresholds
    'DESCRIPTOR_SIZE',
    'MATCH_THRESHOLD',
    'MAX_VERIFY_ATTEMPTS',

    # Timeouts
    'CAMERA_OPEN_TIMEOUT',
    'MODEL_LOAD_TIMEOUT',
    'INFERENCE_TIMEOUT',
    'SUBMISSION_TIMEOUT',

    # Paths
    'FACE_STORE_PATH',
    'FACE_IMAGES_PATH',
    'ATTENDANCE_LOG_FILE',
    'ATTENDANCE_IMAGE_DIR',

    # Logging
    'LOG_LEVEL',
    'LOG_FORMAT',
    'LOG_DIR',
    'setup_logging',

    # Server
    'SERVER_HOST',
    'SERVER_PORT',
    'load_env_config',
]
