"""
Error taxonomy for the capture pipeline

Every error carries a machine-readable ``kind`` and a ``user_message`` that
the orchestrator hands back to the kiosk user.
"""


class AttendanceError(Exception):
    """Base exception for the attendance pipeline."""
    kind = "attendance_error"
    default_message = "Attendance could not be recorded."

    def __init__(self, message=None, user_message=None):
        super().__init__(message or self.default_message)
        self.user_message = user_message or self.default_message


class CameraError(AttendanceError):
    """Raised when the camera cannot deliver frames."""
    kind = "camera_error"
    default_message = "Camera error. Please check the camera and try again."


class PermissionDenied(CameraError):
    """Raised when camera access is refused or no camera exists."""
    kind = "permission_denied"
    default_message = "Cannot access the camera. Allow camera access and try again."


class FaceEngineError(AttendanceError):
    """Raised when face detection or descriptor extraction fails."""
    kind = "face_engine_error"
    default_message = "Face recognition failed due to a technical error."


class ModelLoadError(FaceEngineError):
    """Raised when the face models cannot be loaded."""
    kind = "model_load_error"
    default_message = "Failed to load face recognition models."


class NoFaceDetected(FaceEngineError):
    """Raised when no usable face is found in the frame."""
    kind = "no_face_detected"
    default_message = "No face detected. Please face the camera and retake the photo."


class VerificationMismatch(AttendanceError):
    """Captured face does not match the registered face."""
    kind = "verification_mismatch"
    default_message = "Face does not match. Attendance marked as absent."

    def __init__(self, outcome, message=None):
        super().__init__(message or f"distance {outcome.distance:.4f} >= threshold {outcome.threshold}")
        self.outcome = outcome


class FaceNotRegistered(AttendanceError):
    """Raised when verification is requested for a student without face data."""
    kind = "face_not_registered"
    default_message = "Student does not have registered face data. Please contact administrator."


class SubmissionFailure(AttendanceError):
    """Raised when the attendance or registration backend rejects a request."""
    kind = "submission_failure"
    default_message = "Failed to submit to the attendance server."

    def __init__(self, message=None, status_code=None):
        # Server message is passed through verbatim
        super().__init__(message, user_message=message)
        self.status_code = status_code


class CaptureTimeout(AttendanceError):
    """Raised when a camera, model or inference step takes too long."""
    kind = "timeout"
    default_message = "The operation timed out. Please try again."


class RetryLimitExceeded(AttendanceError):
    """Raised when a student has used all explicit verification retries."""
    kind = "retry_limit"
    default_message = "Too many verification attempts. Please contact a teacher."


class DescriptorLengthError(ValueError):
    """Two descriptors of different length were compared."""
