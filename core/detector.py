"""
MediaPipe face detector for single-subject capture
"""
import cv2
import mediapipe as mp

from config import settings


class FaceDetector:
    """MediaPipe-based face detector, strongest detection first"""

    def __init__(self, min_detection_confidence=settings.DETECTION_CONFIDENCE):
        self.mp_face_detection = mp.solutions.face_detection

        # model_selection=1: full-range model, subject may stand back from the kiosk
        self.face_detection = self.mp_face_detection.FaceDetection(
            model_selection=1,
            min_detection_confidence=min_detection_confidence
        )

    def detect(self, image):
        """
        Detect faces in a BGR frame
        Returns: list of ((x, y, w, h), score) sorted by score, best first
        """
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        results = self.face_detection.process(image_rgb)

        faces = []
        if results.detections:
            h, w = image.shape[:2]
            for detection in results.detections:
                bbox = detection.location_data.relative_bounding_box
                x = max(0, int(bbox.xmin * w))
                y = max(0, int(bbox.ymin * h))
                width = min(int(bbox.width * w), w - x)
                height = min(int(bbox.height * h), h - y)
                if width <= 0 or height <= 0:
                    continue

                score = float(detection.score[0]) if detection.score else 0.0
                faces.append(((x, y, width, height), score))

        faces.sort(key=lambda item: item[1], reverse=True)
        return faces

    def crop_face(self, image, bbox, output_size=settings.OUTPUT_SIZE):
        """Square crop around the box with 30% padding, resized to output_size"""
        x, y, w, h = bbox

        size = max(w, h)
        pad = int(size * 0.3)
        cx = x + w // 2
        cy = y + h // 2

        half_size = (size + 2 * pad) // 2
        x1 = max(0, cx - half_size)
        y1 = max(0, cy - half_size)
        x2 = min(image.shape[1], cx + half_size)
        y2 = min(image.shape[0], cy + half_size)

        face = image[y1:y2, x1:x2]
        if face.size == 0:
            return None

        return cv2.resize(face, (output_size, output_size))

    def close(self):
        if self.face_detection is not None:
            self.face_detection.close()
            self.face_detection = None
