"""
Image storage for issue reports.

Images are streamed to `settings.upload_dir` under generated names and
served back from `/uploads/<filename>`. A request's images are written all
or nothing: if any file is rejected, the ones already written are removed.
"""

import logging
import re
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile

from config import Settings
from errors import ValidationError
from schemas import ImageInfo

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
URL_PREFIX = "/uploads"


def _safe_suffix(name: str) -> str:
    suffix = Path(name or "").suffix.lower()
    return suffix if re.fullmatch(r"\.[a-z0-9]{1,10}", suffix) else ""


class ImageStorage:
    def __init__(self, settings: Settings):
        self.root = Path(settings.upload_dir)
        self.max_files = settings.max_upload_files
        self.max_bytes = settings.max_upload_bytes

    def ensure_root(self):
        self.root.mkdir(parents=True, exist_ok=True)

    def check_count(self, files: Optional[List[UploadFile]]):
        if files and len(files) > self.max_files:
            raise ValidationError(f"Maximum {self.max_files} images allowed")

    def save_all(self, files: Optional[List[UploadFile]]) -> List[ImageInfo]:
        """Write every file or none of them."""
        files = [f for f in (files or []) if f.filename]
        self.check_count(files)
        if files:
            self.ensure_root()

        saved: List[ImageInfo] = []
        try:
            for upload in files:
                saved.append(self._save_one(upload))
        except Exception:
            self.discard(saved)
            raise
        return saved

    def _save_one(self, upload: UploadFile) -> ImageInfo:
        content_type = upload.content_type or ""
        if not content_type.startswith("image/"):
            raise ValidationError(f"File {upload.filename} is not an image")

        filename = f"{uuid.uuid4().hex}{_safe_suffix(upload.filename)}"
        target = self.root / filename
        size = 0
        try:
            with open(target, "wb") as out:
                while True:
                    chunk = upload.file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise ValidationError(
                            f"File {upload.filename} is too large (max {self.max_bytes // (1024 * 1024)}MB)"
                        )
                    out.write(chunk)
        except Exception:
            target.unlink(missing_ok=True)
            raise

        return ImageInfo(
            filename=filename,
            originalName=upload.filename,
            path=f"{URL_PREFIX}/{filename}",
            size=size,
        )

    def discard(self, images: List[ImageInfo]):
        for image in images:
            try:
                (self.root / image.filename).unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Could not remove uploaded image {image.filename}: {e}")
        if images:
            logger.info(f"Rolled back {len(images)} uploaded image(s)")
