"""
Face descriptor extraction: model loading, single-face detection, snapshots
"""
import asyncio
import base64
import logging
import threading

import cv2
import numpy as np

from config import settings, thresholds
from .exceptions import AttendanceError, CaptureTimeout, FaceEngineError, ModelLoadError, NoFaceDetected
from .types import as_descriptor

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/jpeg;base64,"


def encode_data_uri(frame, quality=settings.SNAPSHOT_JPEG_QUALITY):
    """JPEG-encode a BGR frame as a data URI"""
    ok, buf = cv2.imencode('.jpg', frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise FaceEngineError("Could not encode snapshot")
    return DATA_URI_PREFIX + base64.b64encode(buf.tobytes()).decode('ascii')


def decode_data_uri(data_uri):
    """Decode a base64 image (with or without data URI header) to a BGR frame"""
    payload = data_uri.split(',', 1)[1] if ',' in data_uri else data_uri
    arr = np.frombuffer(base64.b64decode(payload), np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def _default_detector_factory():
    from .detector import FaceDetector
    return FaceDetector()


def _default_embedder_factory(detector):
    from .embedder import load_embedder
    return load_embedder(settings.EMBEDDING_BACKEND, detector=detector)


class FaceExtractor:
    """
    Loads the detector and embedder once, then turns frames into descriptors.

    ``ensure_loaded()`` is safe to call from any number of tasks: they all
    wait on the same load, and a loaded extractor is never mutated again.
    """

    def __init__(self, detector_factory=None, embedder_factory=None,
                 descriptor_size=thresholds.DESCRIPTOR_SIZE,
                 load_timeout=settings.MODEL_LOAD_TIMEOUT,
                 inference_timeout=settings.INFERENCE_TIMEOUT):
        self.detector_factory = detector_factory or _default_detector_factory
        self.embedder_factory = embedder_factory or _default_embedder_factory
        self.descriptor_size = descriptor_size
        self.load_timeout = load_timeout
        self.inference_timeout = inference_timeout

        self._models = None
        self._lock = threading.Lock()
        self._load_future = None
        self._load_loop = None

    @property
    def loaded(self):
        return self._models is not None

    # ---------------------------------------------------------
    # MODEL LOADING
    # ---------------------------------------------------------
    def _load_sync(self):
        with self._lock:
            if self._models is not None:
                return self._models

            logger.info("Loading face models...")
            try:
                detector = self.detector_factory()
                embedder = self.embedder_factory(detector)
            except ModelLoadError:
                logger.exception("Face model load failed")
                raise
            except Exception as e:
                logger.exception("Face model load failed")
                raise ModelLoadError(f"Failed to load face recognition models: {e}") from e

            size = getattr(embedder, 'descriptor_size', self.descriptor_size)
            if size != self.descriptor_size:
                raise ModelLoadError(
                    f"Embedding backend produces {size}-d descriptors, expected {self.descriptor_size}"
                )

            self._models = (detector, embedder)
            logger.info("Face models loaded")
            return self._models

    async def ensure_loaded(self):
        """Load models once; later calls return immediately"""
        if self._models is not None:
            return

        loop = asyncio.get_running_loop()
        future = self._load_future
        if future is None or (self._load_loop is not loop and not future.done()):
            future = loop.run_in_executor(None, self._load_sync)
            self._load_future = future
            self._load_loop = loop

        try:
            await asyncio.wait_for(asyncio.shield(future), self.load_timeout)
        except asyncio.TimeoutError as e:
            raise CaptureTimeout(f"Models did not load within {self.load_timeout}s") from e
        except ModelLoadError:
            # Let a later explicit call try again
            if self._load_future is future:
                self._load_future = None
            raise

    load_models = ensure_loaded

    # ---------------------------------------------------------
    # EXTRACTION
    # ---------------------------------------------------------
    def _detect_sync(self, frame):
        detector, embedder = self._models

        faces = detector.detect(frame)
        if not faces:
            raise NoFaceDetected("No face detected in the frame")
        if len(faces) > 1:
            # Single-face semantics: strongest detection wins, others are ignored
            logger.warning("%d faces in frame, using the strongest detection", len(faces))

        bbox, score = faces[0]
        values = embedder.extract(frame, bbox)
        if values is None:
            raise NoFaceDetected(f"Face at {bbox} (score {score:.2f}) could not be encoded")
        return values

    async def detect(self, frame):
        """Single-face descriptor for a still frame"""
        if frame is None or getattr(frame, 'size', 0) == 0:
            raise FaceEngineError("Empty frame")

        await self.ensure_loaded()
        try:
            values = await asyncio.wait_for(
                asyncio.to_thread(self._detect_sync, frame),
                self.inference_timeout
            )
        except asyncio.TimeoutError as e:
            raise CaptureTimeout(f"Face inference exceeded {self.inference_timeout}s") from e
        except AttendanceError:
            raise
        except Exception as e:
            raise FaceEngineError(f"Face extraction error: {e}") from e

        return as_descriptor(values, self.descriptor_size)

    def snapshot(self, frame):
        """Still image of the frame for storage and audit"""
        if frame is None or getattr(frame, 'size', 0) == 0:
            raise FaceEngineError("Empty frame")
        return encode_data_uri(frame)


_shared_extractor = None
_shared_lock = threading.Lock()


def get_extractor():
    """Process-wide extractor so the models are loaded once"""
    global _shared_extractor
    with _shared_lock:
        if _shared_extractor is None:
            _shared_extractor = FaceExtractor()
        return _shared_extractor
