"""
File Storage - receipts, KYC files and property documents

Files live under ``settings.UPLOAD_DIR``; the database only keeps the
relative path returned by ``save``.
"""
from typing import Iterable, Optional
import logging
import os
import shutil
import time

from fastapi import UploadFile

from estatedesk.core.config import settings
from estatedesk.core.exceptions import ValidationFailedError

logger = logging.getLogger(__name__)


class FileStorage:
    def __init__(self, root: Optional[str] = None):
        self.root = root or settings.UPLOAD_DIR

    def _absolute(self, path: str) -> str:
        return os.path.join(self.root, path)

    def save(self, upload: UploadFile, folder: str, prefix: str) -> str:
        """Store an upload and return its path relative to the storage root"""
        filename = upload.filename or ""
        ext = os.path.splitext(filename)[1].lower().lstrip(".")
        if ext not in settings.allowed_extensions:
            raise ValidationFailedError(
                f"File type '{ext or 'unknown'}' is not allowed. "
                f"Allowed: {', '.join(settings.allowed_extensions)}"
            )

        relative = os.path.join(folder, f"{prefix}_{int(time.time() * 1000)}.{ext}")
        target = self._absolute(relative)
        os.makedirs(os.path.dirname(target), exist_ok=True)

        upload.file.seek(0)
        with open(target, "wb") as out:
            shutil.copyfileobj(upload.file, out)

        max_bytes = settings.MAX_UPLOAD_MB * 1024 * 1024
        if os.path.getsize(target) > max_bytes:
            os.remove(target)
            raise ValidationFailedError(f"File exceeds the {settings.MAX_UPLOAD_MB} MB limit")

        logger.info(f"Stored file {relative}")
        return relative

    def delete(self, path: Optional[str]) -> bool:
        if not path:
            return False
        target = self._absolute(path)
        if not os.path.exists(target):
            return False
        os.remove(target)
        logger.info(f"Deleted file {path}")
        return True

    def delete_many(self, paths: Iterable[Optional[str]]) -> int:
        return sum(1 for path in paths if self.delete(path))

    def exists(self, path: Optional[str]) -> bool:
        return bool(path) and os.path.exists(self._absolute(path))
