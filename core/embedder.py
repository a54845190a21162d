"""
Face descriptor backends

dlib (via face_recognition) produces the 128-d descriptors the 0.6 Euclidean
threshold is calibrated for. FaceNet (VGGFace2) is kept as an alternative
512-d backend.
"""
import logging

import cv2
import numpy as np

from config import settings
from .exceptions import ModelLoadError

logger = logging.getLogger(__name__)


class DlibEmbedder:
    """128-d dlib ResNet descriptors through face_recognition"""
    descriptor_size = 128

    def __init__(self, num_jitters=settings.DLIB_NUM_JITTERS):
        import face_recognition

        self._fr = face_recognition
        self.num_jitters = num_jitters
        logger.info("dlib face encoder ready (jitters=%d)", num_jitters)

    def extract(self, image, bbox):
        """
        Descriptor for the face at bbox (x, y, w, h) in a BGR frame
        Returns: list of floats or None if the face cannot be encoded
        """
        x, y, w, h = bbox
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        # face_recognition wants (top, right, bottom, left)
        location = (y, x + w, y + h, x)
        encodings = self._fr.face_encodings(
            rgb,
            known_face_locations=[location],
            num_jitters=self.num_jitters
        )
        if not encodings:
            return None
        return np.asarray(encodings[0], dtype=np.float64).tolist()


class FaceNetEmbedder:
    """512-d FaceNet (InceptionResnetV1, VGGFace2) descriptors, L2-normalized"""
    descriptor_size = 512

    def __init__(self, detector=None, output_size=settings.OUTPUT_SIZE):
        import torch
        from facenet_pytorch import InceptionResnetV1

        self._torch = torch
        self.device = torch.device('cuda' if torch.cuda.is_available() else 'cpu')
        self.model = InceptionResnetV1(pretrained='vggface2').eval().to(self.device)
        self.detector = detector
        self.output_size = output_size
        logger.info("FaceNet loaded (device: %s)", self.device)

    def preprocess_face(self, face_image):
        """Resize to 160x160, BGR to RGB, normalize to [-1, 1], NCHW tensor"""
        if face_image.shape[:2] != (160, 160):
            face_image = cv2.resize(face_image, (160, 160))

        face = cv2.cvtColor(face_image, cv2.COLOR_BGR2RGB)
        face = self._torch.from_numpy(face).float()
        face = face.permute(2, 0, 1)
        face = (face - 127.5) / 128.0
        return face.unsqueeze(0).to(self.device)

    def extract(self, image, bbox):
        face = self.detector.crop_face(image, bbox, self.output_size)
        if face is None:
            return None

        with self._torch.no_grad():
            embedding = self.model(self.preprocess_face(face))
        embedding = embedding.cpu().numpy()[0]

        norm = np.linalg.norm(embedding)
        if norm <= 1e-6:
            return None
        return (embedding / norm).tolist()


def load_embedder(backend=settings.EMBEDDING_BACKEND, detector=None):
    """Instantiate the configured embedding backend"""
    if backend == "dlib":
        return DlibEmbedder()
    if backend == "facenet":
        return FaceNetEmbedder(detector=detector)
    raise ModelLoadError(f"Unknown embedding backend: {backend!r}")
