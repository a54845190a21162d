"""Shared fakes: camera device, detector/embedder backends, backend client."""

from __future__ import annotations

import numpy as np
import pytest

from core.camera import CameraSession
from core.comparator import FaceComparator
from core.exceptions import SubmissionFailure
from core.extractor import FaceExtractor
from core.orchestrator import AttendanceOrchestrator

DESCRIPTOR = [0.1] * 128


class FakeCapture:
    """Stands in for cv2.VideoCapture."""

    def __init__(self, source, opened=True, readable=True):
        self.source = source
        self.opened = opened
        self.readable = readable
        self.released = False
        self.reads = 0
        self.props = {}

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        self.reads += 1
        if not self.readable:
            return False, None
        return True, np.full((480, 640, 3), 127, dtype=np.uint8)

    def release(self):
        self.released = True
        self.opened = False


class CaptureFactory:
    """Builds FakeCaptures and remembers them."""

    def __init__(self, opened=True, readable=True):
        self.opened = opened
        self.readable = readable
        self.captures: list[FakeCapture] = []

    def __call__(self, source):
        cap = FakeCapture(source, opened=self.opened, readable=self.readable)
        self.captures.append(cap)
        return cap


class CameraRecorder:
    """camera_factory for the orchestrator that keeps every session it hands out."""

    def __init__(self, opened=True, readable=True):
        self.devices = CaptureFactory(opened=opened, readable=readable)
        self.sessions: list[CameraSession] = []

    def __call__(self):
        session = CameraSession(source=0, capture_factory=self.devices, warmup_frames=0)
        self.sessions.append(session)
        return session

    @property
    def all_released(self):
        return all(not s.is_streaming for s in self.sessions) and all(
            c.released for c in self.devices.captures
        )


class FakeDetector:
    def __init__(self, faces=None):
        self.faces = [((100, 80, 200, 200), 0.98)] if faces is None else faces
        self.calls = 0

    def detect(self, image):
        self.calls += 1
        return list(self.faces)

    def crop_face(self, image, bbox, output_size=160):
        return image[:output_size, :output_size]


class FakeEmbedder:
    descriptor_size = 128

    def __init__(self, values=None):
        self.values = list(DESCRIPTOR) if values is None else values

    def extract(self, image, bbox):
        return None if self.values is None else list(self.values)


class FakeClient:
    """In-memory attendance / registration collaborator."""

    def __init__(self, registered=None, fail_with=None):
        self.registered = dict(registered or {})
        self.fail_with = fail_with
        self.submissions: list[dict] = []
        self.registrations: list[dict] = []

    async def submit(self, student_id, status, attendance_date, descriptor=None):
        if self.fail_with:
            raise SubmissionFailure(self.fail_with, status_code=400)
        payload = {
            "studentId": student_id,
            "status": status.value,
            "attendanceDate": attendance_date.isoformat(),
        }
        if descriptor is not None:
            payload["capturedFaceDescriptor"] = list(descriptor)
        self.submissions.append(payload)
        return {"success": True, "data": payload, "message": "Attendance marked successfully"}

    async def register_face(self, student_id, captured, face_id=None):
        if self.fail_with:
            raise SubmissionFailure(self.fail_with, status_code=400)
        payload = {
            "studentId": student_id,
            "facialData": {
                "faceId": face_id or "face_1_abcdefghi",
                "faceDescriptor": list(captured.descriptor),
                "faceImage": captured.image,
            },
        }
        self.registrations.append(payload)
        self.registered[student_id] = list(captured.descriptor)
        return {"success": True, "faceId": payload["facialData"]["faceId"], "message": None}

    async def fetch_face_descriptor(self, student_id):
        return self.registered.get(student_id)


def make_extractor(faces=None, values=None, detector_factory=None):
    return FaceExtractor(
        detector_factory=detector_factory or (lambda: FakeDetector(faces)),
        embedder_factory=lambda detector: FakeEmbedder(values),
    )


@pytest.fixture
def frame():
    return np.full((480, 640, 3), 127, dtype=np.uint8)


@pytest.fixture
def camera():
    return CameraRecorder()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def extractor():
    return make_extractor()


@pytest.fixture
def orchestrator(extractor, client, camera):
    return AttendanceOrchestrator(extractor, FaceComparator(), client, camera_factory=camera)
