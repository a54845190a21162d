"""
Attendance marking: camera -> snapshot + descriptor -> compare -> submit

One attempt per call, attempts strictly sequential. The camera is always
released before the backend is called, and on every failure path.
"""
import asyncio
import logging
from datetime import date

import cv2

from config import thresholds
from .camera import CameraSession
from .exceptions import (
    AttendanceError,
    FaceEngineError,
    FaceNotRegistered,
    RetryLimitExceeded,
    SubmissionFailure,
    VerificationMismatch,
)
from .types import (
    AttendanceDecision,
    CapturedFace,
    CaptureMode,
    CaptureResult,
    CaptureState,
    as_descriptor,
)

logger = logging.getLogger(__name__)

MSG_REGISTERED = "Face registered successfully."
MSG_PRESENT = "Face verified. Attendance marked as present."
MSG_MANUAL = "Attendance marked as {status}."
MSG_INVALID_REGISTRATION = "Registered face data is invalid. Please re-register the face."


class AttendanceOrchestrator:
    """
    Drives capture attempts through the state machine

        idle -> streaming -> captured -> verified -> submitted
                                      -> rejected -> failed (absent submitted)
                                      -> submitted (register)

    Any error returns the orchestrator to idle with the camera released.
    Mismatches are never retried automatically; ``retry()`` is the explicit,
    logged way to try again and is capped at ``max_attempts`` per day.
    """

    def __init__(self, extractor, comparator, client, camera_factory=None,
                 face_store=None, audit_log=None, trigger=None,
                 max_attempts=thresholds.MAX_VERIFY_ATTEMPTS):
        self.extractor = extractor
        self.comparator = comparator
        self.client = client
        self.camera_factory = camera_factory or CameraSession
        self.face_store = face_store
        self.audit_log = audit_log
        self.trigger = trigger  # awaited with the open camera before the frame is taken
        self.max_attempts = max_attempts

        self._state = CaptureState.IDLE
        self._lock = asyncio.Lock()
        self._attempts = {}

    @property
    def state(self):
        return self._state

    def _transition(self, student_id, new_state):
        logger.info("[%s] %s -> %s", student_id, self._state.value, new_state.value)
        self._state = new_state

    def attempts_used(self, student_id, attendance_date=None):
        return self._attempts.get((student_id, attendance_date or date.today()), 0)

    def _count_attempt(self, key):
        # Forget dates older than both today and the date being marked
        cutoff = min(date.today(), key[1])
        for old in [k for k in self._attempts if k[1] < cutoff]:
            del self._attempts[old]
        self._attempts[key] = self._attempts.get(key, 0) + 1

    # ---------------------------------------------------------
    # PIPELINE STEPS
    # ---------------------------------------------------------
    async def _capture(self, student_id):
        self._transition(student_id, CaptureState.IDLE)
        try:
            async with self.camera_factory() as camera:
                self._transition(student_id, CaptureState.STREAMING)
                if self.trigger is not None:
                    await self.trigger(camera)

                frame = await camera.read()
                image = self.extractor.snapshot(frame)
                descriptor = await self.extractor.detect(frame)
        except BaseException:
            self._state = CaptureState.IDLE
            raise

        self._transition(student_id, CaptureState.CAPTURED)
        return CapturedFace(descriptor=descriptor, image=image)

    async def _stored_descriptor(self, student_id, stored_descriptor):
        if stored_descriptor is None and self.face_store is not None:
            stored_descriptor = self.face_store.get_descriptor(student_id)
        if stored_descriptor is None:
            stored_descriptor = await self.client.fetch_face_descriptor(student_id)
        if stored_descriptor is None or len(stored_descriptor) == 0:
            raise FaceNotRegistered(f"No face registered for {student_id}")

        try:
            return as_descriptor(stored_descriptor, self.extractor.descriptor_size)
        except FaceEngineError as e:
            raise FaceNotRegistered(
                f"Registered descriptor for {student_id} is unusable: {e}",
                user_message=MSG_INVALID_REGISTRATION
            ) from e

    def _record_locally(self, student_id, what, write, *args, **kwargs):
        # Backend already accepted the request
        try:
            write(*args, **kwargs)
        except (OSError, cv2.error):
            logger.exception("[%s] failed to write %s locally", student_id, what)

    def _audit(self, student_id, mode, status, outcome=None, captured=None):
        if self.audit_log is None:
            return
        self._record_locally(
            student_id, "audit log entry", self.audit_log.log,
            student_id, mode.value, status,
            outcome=outcome,
            face_image=captured.image if captured else None
        )

    def _failed(self, student_id, mode, error, **extra):
        if isinstance(error, (SubmissionFailure, FaceNotRegistered, RetryLimitExceeded)):
            logger.warning("[%s] %s failed: %s", student_id, mode.value, error)
        else:
            logger.warning("[%s] %s capture failed (%s): %s", student_id, mode.value, error.kind, error)
        self._transition(student_id, CaptureState.IDLE)
        return CaptureResult(
            student_id=student_id,
            mode=mode,
            state=CaptureState.IDLE,
            message=error.user_message,
            error=error.kind,
            **extra
        )

    # ---------------------------------------------------------
    # REGISTRATION
    # ---------------------------------------------------------
    async def register(self, student_id):
        """Capture a face and store it as the student's registered face"""
        mode = CaptureMode.REGISTER
        async with self._lock:
            try:
                captured = await self._capture(student_id)
            except AttendanceError as e:
                return self._failed(student_id, mode, e)

            try:
                response = await self.client.register_face(student_id, captured)
            except SubmissionFailure as e:
                return self._failed(student_id, mode, e, captured=captured)

            self._transition(student_id, CaptureState.SUBMITTED)
            if self.face_store is not None:
                self._record_locally(
                    student_id, "registered face", self.face_store.add_face,
                    student_id, response.get("faceId"), captured.descriptor, captured.image
                )
            self._audit(student_id, mode, "registered", captured=captured)

            return CaptureResult(
                student_id=student_id,
                mode=mode,
                state=CaptureState.SUBMITTED,
                message=response.get("message") or MSG_REGISTERED,
                captured=captured,
                response=response
            )

    # ---------------------------------------------------------
    # VERIFICATION
    # ---------------------------------------------------------
    async def verify(self, student_id, stored_descriptor=None, attendance_date=None):
        """Capture a face, compare with the registered one, submit present/absent"""
        async with self._lock:
            return await self._verify(student_id, stored_descriptor, attendance_date)

    async def retry(self, student_id, stored_descriptor=None, attendance_date=None):
        """Explicit re-verification requested by the user"""
        attendance_date = attendance_date or date.today()
        async with self._lock:
            logger.warning("[%s] explicit verification retry (%d/%d attempts used)",
                           student_id, self.attempts_used(student_id, attendance_date), self.max_attempts)
            return await self._verify(student_id, stored_descriptor, attendance_date)

    async def _verify(self, student_id, stored_descriptor, attendance_date):
        mode = CaptureMode.VERIFY
        attendance_date = attendance_date or date.today()
        key = (student_id, attendance_date)

        try:
            if self._attempts.get(key, 0) >= self.max_attempts:
                raise RetryLimitExceeded(f"{student_id} used {self.max_attempts} attempts on {attendance_date}")
            stored = await self._stored_descriptor(student_id, stored_descriptor)
            captured = await self._capture(student_id)
        except AttendanceError as e:
            return self._failed(student_id, mode, e)

        outcome = self.comparator.compare(captured.descriptor, stored)
        self._count_attempt(key)
        decision = self.comparator.decision_for(outcome)
        logger.info("[%s] face distance %.4f (threshold %.2f) -> %s",
                    student_id, outcome.distance, outcome.threshold, decision.value)

        if outcome.match:
            self._transition(student_id, CaptureState.VERIFIED)
            descriptor = captured.descriptor
        else:
            self._transition(student_id, CaptureState.REJECTED)
            descriptor = None

        try:
            response = await self.client.submit(student_id, decision, attendance_date, descriptor)
        except SubmissionFailure as e:
            return self._failed(student_id, mode, e, decision=decision, outcome=outcome, captured=captured)

        self._audit(student_id, mode, decision.value, outcome=outcome, captured=captured)

        if outcome.match:
            self._transition(student_id, CaptureState.SUBMITTED)
            return CaptureResult(
                student_id=student_id,
                mode=mode,
                state=CaptureState.SUBMITTED,
                message=MSG_PRESENT,
                decision=decision,
                outcome=outcome,
                captured=captured,
                response=response
            )

        mismatch = VerificationMismatch(outcome)
        self._transition(student_id, CaptureState.FAILED)
        return CaptureResult(
            student_id=student_id,
            mode=mode,
            state=CaptureState.FAILED,
            message=mismatch.user_message,
            decision=decision,
            outcome=outcome,
            captured=captured,
            error=mismatch.kind,
            response=response
        )

    # ---------------------------------------------------------
    # ROSTER & MANUAL MARKING
    # ---------------------------------------------------------
    async def mark_roster(self, student_ids, attendance_date=None, descriptors=None):
        """Verify each student in turn; one result per student"""
        descriptors = descriptors or {}
        results = []
        for student_id in student_ids:
            results.append(await self.verify(student_id, descriptors.get(student_id), attendance_date))
        return results

    async def mark_manual(self, student_id, status, attendance_date=None):
        """Submit a decision without the camera"""
        mode = CaptureMode.MANUAL
        decision = AttendanceDecision(status)
        attendance_date = attendance_date or date.today()
        async with self._lock:
            try:
                response = await self.client.submit(student_id, decision, attendance_date)
            except SubmissionFailure as e:
                return self._failed(student_id, mode, e)

            self._audit(student_id, mode, decision.value)
            self._transition(student_id, CaptureState.SUBMITTED)
            return CaptureResult(
                student_id=student_id,
                mode=mode,
                state=CaptureState.SUBMITTED,
                message=MSG_MANUAL.format(status=decision.value),
                decision=decision,
                response=response
            )
