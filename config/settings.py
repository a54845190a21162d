"""
Global settings for Face Attendance Kiosk
"""
import os

# ============================================================================
# CAMERA SETTINGS
# ============================================================================
CAMERA_DEFAULT = "0"  # Index of the forward-facing (user) camera
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 480
CAMERA_FPS = 30
CAMERA_WARMUP_FRAMES = 3  # Frames dropped after open so exposure settles

# ============================================================================
# FACE DETECTION
# ============================================================================
DETECTION_CONFIDENCE = 0.6  # MediaPipe detection confidence
OUTPUT_SIZE = 160  # Face crop size (160 for FaceNet)

# ============================================================================
# FACE EMBEDDING
# ============================================================================
EMBEDDING_BACKEND = "dlib"  # 'dlib' (128-d) or 'facenet' (512-d)
DLIB_NUM_JITTERS = 1

# ============================================================================
# SNAPSHOT
# ============================================================================
SNAPSHOT_JPEG_QUALITY = 80

# ============================================================================
# TIMEOUTS (seconds)
# ============================================================================
CAMERA_OPEN_TIMEOUT = 10.0
MODEL_LOAD_TIMEOUT = 120.0
INFERENCE_TIMEOUT = 15.0
SUBMISSION_TIMEOUT = 10.0

# ============================================================================
# DATABASE PATHS
# ============================================================================
FACE_STORE_PATH = 'data/faces.json'
FACE_IMAGES_PATH = 'data/faces'
ATTENDANCE_LOG_FILE = 'data/attendance.csv'
ATTENDANCE_IMAGE_DIR = 'data/attendance_images'

# ============================================================================
# LOGGING
# ============================================================================
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DIR = 'logs'

# ============================================================================
# SERVER
# ============================================================================
SERVER_HOST = '0.0.0.0'
SERVER_PORT = 8000


def load_env_config(env_path='.env.local'):
    """Backend endpoint and API token from .env.local, overridden by the environment"""
    config = {
        "BACKEND_URL": "http://localhost:5000/api",
        "API_TOKEN": "",
    }
    if os.path.exists(env_path):
        with open(env_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' in line:
                    key, val = line.split('=', 1)
                    config[key.strip()] = val.strip().strip('"').strip("'")
    for key in list(config):
        if key in os.environ:
            config[key] = os.environ[key]
    return config
