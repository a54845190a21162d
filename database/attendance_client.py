"""
HTTP client for the school backend: attendance submission and face registration
"""
import logging
import secrets
import string
import time
from datetime import date
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from config import settings
from core.exceptions import SubmissionFailure
from core.types import AttendanceDecision

logger = logging.getLogger(__name__)

_FACE_ID_ALPHABET = string.ascii_lowercase + string.digits


# ============================================================================
# PAYLOADS
# ============================================================================
class AttendanceSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(alias="studentId")
    status: AttendanceDecision
    attendance_date: date = Field(alias="attendanceDate")
    captured_face_descriptor: Optional[List[float]] = Field(default=None, alias="capturedFaceDescriptor")


class FacialData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    face_id: str = Field(alias="faceId")
    face_descriptor: List[float] = Field(alias="faceDescriptor")
    face_image: str = Field(alias="faceImage")


class FaceRegistration(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    student_id: str = Field(alias="studentId")
    facial_data: FacialData = Field(alias="facialData")


def new_face_id():
    """face_<epoch ms>_<9 base36 chars>"""
    suffix = ''.join(secrets.choice(_FACE_ID_ALPHABET) for _ in range(9))
    return f"face_{int(time.time() * 1000)}_{suffix}"


# ============================================================================
# CLIENT
# ============================================================================
class AttendanceClient:
    def __init__(self, base_url=None, token=None, timeout=settings.SUBMISSION_TIMEOUT, transport=None):
        conf = settings.load_env_config()
        self.base_url = (base_url or conf["BACKEND_URL"]).rstrip('/')
        token = conf["API_TOKEN"] if token is None else token

        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False

    async def _request(self, method, path, payload=None):
        try:
            resp = await self._client.request(method, path, json=payload)
        except httpx.TimeoutException as e:
            raise SubmissionFailure("Attendance server did not respond in time") from e
        except httpx.HTTPError as e:
            raise SubmissionFailure(f"Attendance server unreachable: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if resp.is_error or body.get("success") is False:
            message = body.get("message") or f"Attendance server returned {resp.status_code}"
            logger.warning("%s %s failed (%d): %s", method, path, resp.status_code, message)
            raise SubmissionFailure(message, status_code=resp.status_code)

        return body

    async def submit(self, student_id, status, attendance_date, descriptor=None):
        """Mark attendance; returns the server body {success, data, message}"""
        submission = AttendanceSubmission(
            student_id=student_id,
            status=AttendanceDecision(status),
            attendance_date=attendance_date,
            captured_face_descriptor=list(descriptor) if descriptor is not None else None
        )
        body = await self._request(
            "POST", "/attendance/mark",
            submission.model_dump(mode="json", by_alias=True, exclude_none=True)
        )
        logger.info("Attendance %s submitted for %s on %s", submission.status.value, student_id,
                    submission.attendance_date.isoformat())
        return body

    async def register_face(self, student_id, captured, face_id=None):
        """Store a captured face as the student's registered facial data"""
        registration = FaceRegistration(
            student_id=student_id,
            facial_data=FacialData(
                face_id=face_id or new_face_id(),
                face_descriptor=list(captured.descriptor),
                face_image=captured.image
            )
        )
        body = await self._request(
            "POST", f"/students/{student_id}/register-face",
            registration.model_dump(mode="json", by_alias=True)
        )
        logger.info("Face %s registered for %s", registration.facial_data.face_id, student_id)
        body.setdefault("faceId", registration.facial_data.face_id)
        return body

    async def fetch_face_descriptor(self, student_id):
        """Registered descriptor from the student record, or None"""
        body = await self._request("GET", f"/students/{student_id}")
        data = body.get("data") or {}
        facial = data.get("facialData") or {}
        descriptor = facial.get("faceDescriptor")
        return list(descriptor) if descriptor else None
