import base64
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

import cv2
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import settings, setup_logging
from core import AttendanceOrchestrator, CameraSession, FaceComparator, get_extractor
from core.exceptions import AttendanceError
from core.types import AttendanceDecision
from database import AttendanceClient, AttendanceLogger, FaceStore

logger = logging.getLogger(__name__)

# Error kind -> HTTP status. Mismatch is a business outcome, answered with 200.
STATUS_CODES = {
    "permission_denied": 503,
    "camera_error": 503,
    "model_load_error": 503,
    "face_engine_error": 500,
    "no_face_detected": 422,
    "face_not_registered": 404,
    "submission_failure": 502,
    "timeout": 504,
    "retry_limit": 429,
    "verification_mismatch": 200,
}


# ============================================================================
# DATA MODELS
# ============================================================================
class CaptureRequest(BaseModel):
    student_id: str
    attendance_date: Optional[date] = None


class ManualAttendanceRequest(BaseModel):
    student_id: str
    status: AttendanceDecision
    attendance_date: Optional[date] = None


# ============================================================================
# SYSTEM STATE
# ============================================================================
class SystemState:
    def __init__(self):
        self.extractor = None
        self.face_store = None
        self.attendance = None
        self.client = None
        self.orchestrator = None
        self.camera_factory = CameraSession

    def setup(self, extractor=None, client=None, face_store=None, attendance=None, camera_factory=None):
        self.extractor = extractor or get_extractor()
        self.client = client or AttendanceClient()
        self.face_store = face_store or FaceStore(settings.FACE_STORE_PATH, settings.FACE_IMAGES_PATH)
        self.attendance = attendance or AttendanceLogger(settings.ATTENDANCE_LOG_FILE, settings.ATTENDANCE_IMAGE_DIR)
        self.camera_factory = camera_factory or CameraSession
        self.orchestrator = AttendanceOrchestrator(
            self.extractor,
            FaceComparator(),
            self.client,
            camera_factory=self.camera_factory,
            face_store=self.face_store,
            audit_log=self.attendance
        )

    def require_ready(self):
        if self.orchestrator is None:
            raise HTTPException(503, "System not ready")
        return self.orchestrator

    def get_stats_dict(self):
        counts = self.attendance.get_today_count() if self.attendance else {}
        return {
            "today": counts,
            "total_today": sum(counts.values()),
            "registered": len(self.face_store.list_students()) if self.face_store else 0,
            "models_loaded": bool(self.extractor and self.extractor.loaded),
        }


state = SystemState()


def result_response(result):
    code = STATUS_CODES.get(result.error, 200) if result.error else 200
    return JSONResponse(status_code=code, content=result.to_dict())


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    state.setup()
    try:
        await state.extractor.ensure_loaded()
    except AttendanceError as e:
        # Keep serving; captures answer 503 until models load
        logger.error("Model preload failed: %s", e)
    yield
    await state.client.close()


app = FastAPI(title="Face Attendance Kiosk", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])


# ============================================================================
# API ENDPOINTS
# ============================================================================
@app.post("/api/capture/register")
async def capture_register(req: CaptureRequest):
    result = await state.require_ready().register(req.student_id)
    return result_response(result)


@app.post("/api/capture/verify")
async def capture_verify(req: CaptureRequest):
    result = await state.require_ready().verify(req.student_id, attendance_date=req.attendance_date)
    return result_response(result)


@app.post("/api/capture/retry")
async def capture_retry(req: CaptureRequest):
    result = await state.require_ready().retry(req.student_id, attendance_date=req.attendance_date)
    return result_response(result)


@app.post("/api/attendance/manual")
async def manual_attendance(req: ManualAttendanceRequest):
    result = await state.require_ready().mark_manual(req.student_id, req.status, req.attendance_date)
    return result_response(result)


@app.get("/api/camera/check")
async def camera_check():
    camera = state.camera_factory()
    try:
        async with camera:
            frame = await camera.read()
    except AttendanceError as e:
        return JSONResponse(status_code=STATUS_CODES.get(e.kind, 503),
                            content={"status": "error", "error": e.kind, "message": e.user_message})
    h, w = frame.shape[:2]
    return {"status": "ok", "width": int(w), "height": int(h)}


@app.get("/api/students")
async def get_students():
    state.require_ready()
    return state.face_store.list_students()


@app.delete("/api/students/{student_id}")
async def delete_student(student_id: str):
    state.require_ready()
    if state.face_store.remove_student(student_id):
        return {"status": "success"}
    raise HTTPException(404, "Student not found")


@app.get("/api/students/{student_id}/image")
async def get_student_image(student_id: str):
    state.require_ready()
    img = state.face_store.get_face_image(student_id)
    if img is None:
        raise HTTPException(404, "No face image")
    encoded = "data:image/jpeg;base64," + base64.b64encode(cv2.imencode('.jpg', img)[1]).decode()
    return {"image": encoded}


@app.get("/api/stats")
async def get_stats():
    state.require_ready()
    return state.get_stats_dict()


@app.get("/api/attendance/recent")
async def recent_attendance(n: int = 20):
    state.require_ready()
    return state.attendance.get_recent(n)


def main():
    uvicorn.run(app, host=settings.SERVER_HOST, port=settings.SERVER_PORT)


if __name__ == "__main__":
    main()
