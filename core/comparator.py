"""
Descriptor comparison with a fixed Euclidean distance threshold
"""
import numpy as np

from config import thresholds
from .exceptions import DescriptorLengthError
from .types import AttendanceDecision, VerificationOutcome


class FaceComparator:
    """Same-person decision: distance < threshold (lower = stricter)"""

    def __init__(self, threshold=thresholds.MATCH_THRESHOLD):
        if threshold <= 0:
            raise ValueError(f"threshold must be positive, got {threshold}")
        self.threshold = float(threshold)

    def distance(self, a, b):
        if len(a) != len(b):
            raise DescriptorLengthError(f"Descriptor lengths differ: {len(a)} != {len(b)}")
        return float(np.linalg.norm(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)))

    def compare(self, a, b):
        distance = self.distance(a, b)
        return VerificationOutcome(
            match=distance < self.threshold,
            distance=distance,
            threshold=self.threshold
        )

    @staticmethod
    def decision_for(outcome):
        return AttendanceDecision.PRESENT if outcome.match else AttendanceDecision.ABSENT
