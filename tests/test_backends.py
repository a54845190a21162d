"""Detector and embedding backends against stand-in model modules."""

from __future__ import annotations

import importlib
import sys
from types import ModuleType, SimpleNamespace

import numpy as np
import pytest

from core.exceptions import ModelLoadError


def _detection(xmin, ymin, width, height, score):
    box = SimpleNamespace(xmin=xmin, ymin=ymin, width=width, height=height)
    return SimpleNamespace(location_data=SimpleNamespace(relative_bounding_box=box), score=[score])


@pytest.fixture
def detector_module(monkeypatch: pytest.MonkeyPatch):
    detections = []
    closed = []

    class FaceDetection:
        def __init__(self, model_selection, min_detection_confidence):
            self.model_selection = model_selection

        def process(self, image):
            return SimpleNamespace(detections=list(detections))

        def close(self):
            closed.append(True)

    mp = ModuleType("mediapipe")
    mp.solutions = SimpleNamespace(face_detection=SimpleNamespace(FaceDetection=FaceDetection))
    monkeypatch.setitem(sys.modules, "mediapipe", mp)
    monkeypatch.delitem(sys.modules, "core.detector", raising=False)
    module = importlib.import_module("core.detector")
    yield module, detections, closed
    sys.modules.pop("core.detector", None)


def test_detector_sorts_by_score_and_clamps(detector_module) -> None:
    module, detections, _ = detector_module
    detections.extend([
        _detection(0.1, 0.1, 0.2, 0.2, 0.55),
        _detection(-0.05, 0.5, 0.3, 0.8, 0.97),
    ])
    image = np.zeros((100, 200, 3), dtype=np.uint8)

    faces = module.FaceDetector().detect(image)

    assert [score for _, score in faces] == [pytest.approx(0.97), pytest.approx(0.55)]
    x, y, w, h = faces[0][0]
    assert (x, y) == (0, 50)
    assert y + h <= 100
    assert faces[1][0] == (20, 10, 40, 20)


def test_detector_skips_degenerate_boxes(detector_module) -> None:
    module, detections, _ = detector_module
    detections.append(_detection(0.99, 0.99, 0.0, 0.0, 0.9))

    faces = module.FaceDetector().detect(np.zeros((100, 100, 3), dtype=np.uint8))

    assert faces == []


def test_detector_crop_and_close(detector_module) -> None:
    module, _, closed = detector_module
    detector = module.FaceDetector()

    crop = detector.crop_face(np.zeros((480, 640, 3), dtype=np.uint8), (100, 100, 120, 150), output_size=112)
    detector.close()
    detector.close()

    assert crop.shape == (112, 112, 3)
    assert closed == [True]


def test_dlib_embedder_uses_known_location(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {}

    def face_encodings(image, known_face_locations=None, num_jitters=1):
        calls["locations"] = known_face_locations
        calls["jitters"] = num_jitters
        return [np.full(128, 0.2)]

    fake = ModuleType("face_recognition")
    fake.face_encodings = face_encodings
    monkeypatch.setitem(sys.modules, "face_recognition", fake)

    from core.embedder import DlibEmbedder, load_embedder

    embedder = load_embedder("dlib")
    values = embedder.extract(np.zeros((480, 640, 3), dtype=np.uint8), (100, 50, 80, 90))

    assert isinstance(embedder, DlibEmbedder)
    assert embedder.descriptor_size == 128
    assert calls["locations"] == [(50, 180, 140, 100)]
    assert len(values) == 128
    assert values[0] == pytest.approx(0.2)


def test_dlib_embedder_no_encoding(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = ModuleType("face_recognition")
    fake.face_encodings = lambda image, known_face_locations=None, num_jitters=1: []
    monkeypatch.setitem(sys.modules, "face_recognition", fake)

    from core.embedder import DlibEmbedder

    assert DlibEmbedder().extract(np.zeros((10, 10, 3), dtype=np.uint8), (0, 0, 5, 5)) is None


def test_unknown_backend() -> None:
    from core.embedder import load_embedder

    with pytest.raises(ModelLoadError):
        load_embedder("arcface")


def test_facenet_embedder_is_l2_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    torch = pytest.importorskip("torch")

    class InceptionResnetV1:
        def __init__(self, pretrained):
            self.pretrained = pretrained

        def eval(self):
            return self

        def to(self, device):
            return self

        def __call__(self, batch):
            assert tuple(batch.shape) == (1, 3, 160, 160)
            return torch.full((1, 512), 3.0)

    fake = ModuleType("facenet_pytorch")
    fake.InceptionResnetV1 = InceptionResnetV1
    monkeypatch.setitem(sys.modules, "facenet_pytorch", fake)

    from core.embedder import FaceNetEmbedder

    class Cropper:
        def crop_face(self, image, bbox, output_size):
            return np.zeros((output_size, output_size, 3), dtype=np.uint8)

    embedder = FaceNetEmbedder(detector=Cropper())
    values = embedder.extract(np.zeros((480, 640, 3), dtype=np.uint8), (0, 0, 100, 100))

    assert len(values) == 512
    assert float(np.linalg.norm(values)) == pytest.approx(1.0)
