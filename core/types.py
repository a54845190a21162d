"""
Value types shared by the capture pipeline
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from config import thresholds
from .exceptions import FaceEngineError

FaceDescriptor = Tuple[float, ...]


def as_descriptor(values: Iterable[float], size: int = thresholds.DESCRIPTOR_SIZE) -> FaceDescriptor:
    """Freeze raw embedding values into a descriptor of exactly ``size`` floats"""
    try:
        descriptor = tuple(float(v) for v in values)
    except (TypeError, ValueError) as e:
        raise FaceEngineError(f"Invalid face descriptor: {e}") from e
    if len(descriptor) != size:
        raise FaceEngineError(f"Invalid face descriptor length: {len(descriptor)}, expected {size}")
    if not all(math.isfinite(v) for v in descriptor):
        raise FaceEngineError("Invalid face descriptor: non-finite values")
    return descriptor


class CameraState(str, Enum):
    CLOSED = "closed"
    STREAMING = "streaming"


class CaptureMode(str, Enum):
    REGISTER = "register"
    VERIFY = "verify"
    MANUAL = "manual"


class CaptureState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    CAPTURED = "captured"
    VERIFIED = "verified"
    REJECTED = "rejected"
    SUBMITTED = "submitted"
    FAILED = "failed"


class AttendanceDecision(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


@dataclass(frozen=True)
class CapturedFace:
    descriptor: FaceDescriptor
    image: str  # data:image/jpeg;base64,...


@dataclass(frozen=True)
class VerificationOutcome:
    match: bool
    distance: float
    threshold: float


@dataclass
class CaptureResult:
    """Summary of one capture attempt, safe to hand to the UI"""
    student_id: str
    mode: CaptureMode
    state: CaptureState
    message: str
    decision: Optional[AttendanceDecision] = None
    outcome: Optional[VerificationOutcome] = None
    captured: Optional[CapturedFace] = None
    error: Optional[str] = None
    response: Optional[Dict[str, Any]] = field(default=None, repr=False)

    @property
    def ok(self):
        return self.error is None

    def to_dict(self, include_image=False):
        data = {
            "student_id": self.student_id,
            "mode": self.mode.value,
            "state": self.state.value,
            "message": self.message,
            "decision": self.decision.value if self.decision else None,
            "error": self.error,
            "match": None,
            "distance": None,
            "response": self.response,
        }
        if self.outcome is not None:
            data["match"] = self.outcome.match
            data["distance"] = round(self.outcome.distance, 4)
        if self.captured is not None:
            data["descriptor_length"] = len(self.captured.descriptor)
            if include_image:
                data["image"] = self.captured.image
        return data
