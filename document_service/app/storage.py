import os
import secrets
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Iterator, Optional

from fastapi import UploadFile

from . import config
from .exceptions import PayloadTooLargeError, StorageError, UnsupportedMediaError
from .logger import get_logger

logger = get_logger(__name__)

# Extension -> MIME types a client may declare for it
ALLOWED_TYPES = {
    ".pdf": {"application/pdf"},
    ".doc": {"application/msword"},
    ".docx": {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"},
    ".jpg": {"image/jpeg", "image/jpg", "image/pjpeg"},
    ".jpeg": {"image/jpeg", "image/jpg", "image/pjpeg"},
    ".png": {"image/png"},
}

CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    path: str
    original_name: str
    size: int


def has_file(upload: Optional[UploadFile]) -> bool:
    # Browsers submit an empty part with no filename for an untouched file input
    return upload is not None and bool(upload.filename)


class UploadHandler:
    """Validates multipart uploads and keeps them on local disk."""

    def __init__(self, upload_dir: str, max_size: int):
        self.upload_dir = Path(upload_dir)
        self.max_size = max_size

    def validate(self, upload: UploadFile) -> str:
        ext = PurePath(upload.filename).suffix.lower()
        mimetype = (upload.content_type or "").split(";")[0].strip().lower()
        allowed = ALLOWED_TYPES.get(ext)
        if not allowed or mimetype not in allowed:
            logger.warning(f"Rejected upload {upload.filename!r} ({mimetype or 'no content type'})")
            raise UnsupportedMediaError()
        return ext

    def generate_name(self, field: str, ext: str) -> str:
        timestamp = int(time.time() * 1000)
        suffix = secrets.randbelow(10**9)
        return f"{field}-{timestamp}-{suffix}{ext}"

    def save(self, upload: UploadFile, field: str = "file") -> StoredFile:
        """Copy an accepted upload to disk, enforcing the size limit while streaming."""
        ext = self.validate(upload)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        dest = self.upload_dir / self.generate_name(field, ext)

        size = 0
        try:
            with open(dest, "wb") as out:
                while True:
                    chunk = upload.file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_size:
                        raise PayloadTooLargeError(self.max_size)
                    out.write(chunk)
        except PayloadTooLargeError:
            logger.warning(f"Rejected upload {upload.filename!r}: larger than {self.max_size} bytes")
            self.discard(str(dest))
            raise
        except OSError as e:
            self.discard(str(dest))
            raise StorageError("Error storing uploaded file", e)

        logger.info(f"Stored upload {upload.filename!r} as {dest} ({size} bytes)")
        return StoredFile(path=str(dest), original_name=PurePath(upload.filename).name, size=size)

    @contextmanager
    def guard(self, stored: Optional[StoredFile]) -> Iterator[Optional[StoredFile]]:
        """Remove ``stored`` unless the enclosed block completes."""
        try:
            yield stored
        except BaseException:
            if stored is not None:
                logger.info(f"Removing orphaned upload {stored.path}")
                self.discard(stored.path)
            raise

    def discard(self, path: Optional[str]) -> None:
        if not path:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove stored file {path}: {e}")

    def exists(self, path: Optional[str]) -> bool:
        return bool(path) and os.path.isfile(path)


def get_upload_handler() -> UploadHandler:
    return UploadHandler(config.UPLOAD_DIR, config.MAX_UPLOAD_SIZE)
