import json
import logging
import os
import shutil
from datetime import datetime

import cv2

from core.extractor import decode_data_uri

logger = logging.getLogger(__name__)


class FaceStore:
    """Registered face descriptors per student, one JSON file plus snapshots"""

    def __init__(self, db_path='data/faces.json', img_dir='data/faces'):
        self.db_path = db_path
        self.img_dir = img_dir
        self.last_mtime = 0
        self.data = self.load()
        os.makedirs(self.img_dir, exist_ok=True)

    def load(self):
        if not os.path.exists(self.db_path):
            return {}
        self.last_mtime = os.path.getmtime(self.db_path)
        with open(self.db_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _reload_if_changed(self):
        # Another process (e.g. the admin tool) may have rewritten the file
        if os.path.exists(self.db_path) and os.path.getmtime(self.db_path) > self.last_mtime:
            logger.info("Face store changed on disk, reloading")
            self.data = self.load()

    def save(self):
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        if os.path.exists(self.db_path):
            backup_dir = os.path.join(db_dir, 'backups')
            os.makedirs(backup_dir, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            name, ext = os.path.splitext(os.path.basename(self.db_path))
            shutil.copy2(self.db_path, os.path.join(backup_dir, f"{name}_backup_{stamp}{ext}"))

        with open(self.db_path, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, indent=2, ensure_ascii=False)
        self.last_mtime = os.path.getmtime(self.db_path)

    def add_face(self, student_id, face_id, descriptor, face_image=None):
        """Register (or replace) a student's face"""
        self._reload_if_changed()
        self.data[student_id] = {
            "faceId": face_id,
            "descriptor": [float(v) for v in descriptor],
            "registeredAt": datetime.now().isoformat(timespec='seconds'),
        }
        self.save()

        if face_image:
            img = decode_data_uri(face_image)
            if img is not None:
                cv2.imwrite(self._image_path(student_id), img)

        logger.info("Stored face %s for %s", face_id, student_id)

    def get_descriptor(self, student_id):
        self._reload_if_changed()
        entry = self.data.get(student_id)
        return list(entry["descriptor"]) if entry else None

    def remove_student(self, student_id):
        self._reload_if_changed()
        if student_id not in self.data:
            return False
        del self.data[student_id]
        self.save()

        img_path = self._image_path(student_id)
        if os.path.exists(img_path):
            os.remove(img_path)
        return True

    def list_students(self):
        self._reload_if_changed()
        return list(self.data.keys())

    def get_face_image(self, student_id):
        img_path = self._image_path(student_id)
        if not os.path.exists(img_path):
            return None
        return cv2.imread(img_path)

    def _image_path(self, student_id):
        safe_id = student_id.replace("/", "_").replace("\\", "_")
        return os.path.join(self.img_dir, f"{safe_id}.jpg")
