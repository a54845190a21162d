import csv
import os
from datetime import datetime

import cv2

from core.extractor import decode_data_uri

HEADER = ['Timestamp', 'StudentId', 'Mode', 'Status', 'Distance', 'Match', 'Image']


class AttendanceLogger:
    """CSV audit trail of capture decisions"""

    def __init__(self, log_file='data/attendance.csv', img_dir='data/attendance_images'):
        self.log_file = log_file
        self.img_dir = img_dir
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        os.makedirs(img_dir, exist_ok=True)

        if not os.path.exists(log_file):
            with open(log_file, 'w', newline='', encoding='utf-8') as f:
                csv.writer(f).writerow(HEADER)

    def log(self, student_id, mode, status, outcome=None, face_image=None):
        now = datetime.now()
        timestamp = now.strftime('%Y-%m-%d %H:%M:%S')

        img_filename = None
        if face_image:
            img = decode_data_uri(face_image)
            if img is not None:
                img_filename = f"{student_id}_{now.strftime('%Y%m%d_%H%M%S_%f')}.jpg"
                cv2.imwrite(os.path.join(self.img_dir, img_filename), img)

        distance = f"{outcome.distance:.4f}" if outcome is not None else ''
        match = str(outcome.match) if outcome is not None else ''

        with open(self.log_file, 'a', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([timestamp, student_id, mode, status, distance, match, img_filename or ''])

        return timestamp

    def _rows(self):
        if not os.path.exists(self.log_file):
            return []
        with open(self.log_file, 'r', encoding='utf-8') as f:
            reader = csv.reader(f)
            next(reader, None)
            return [row for row in reader if row]

    def get_recent(self, n=10):
        rows = self._rows()
        return [dict(zip(HEADER, row)) for row in rows[-n:]]

    def get_today_count(self):
        """Entries logged today, per status"""
        today = datetime.now().strftime('%Y-%m-%d')
        counts = {}
        for row in self._rows():
            if len(row) >= 4 and row[0].startswith(today):
                counts[row[3]] = counts.get(row[3], 0) + 1
        return counts
