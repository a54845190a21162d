"""
Recognition thresholds
"""

# Length of a face descriptor produced by the embedding backend
# (128 for dlib / face_recognition, 512 for FaceNet)
DESCRIPTOR_SIZE = 128

# Euclidean distance below which two descriptors are the same person.
# Fixed, not calibrated per camera or lighting.
MATCH_THRESHOLD = 0.6

# Explicit re-verification attempts allowed per student per day
MAX_VERIFY_ATTEMPTS = 3
