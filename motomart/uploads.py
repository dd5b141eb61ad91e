"""
Image upload storage for listing photos and profile pictures.
"""
import logging
import os
import random
import time
from typing import Iterable, List, Optional, Sequence

from fastapi import UploadFile

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png"}

LISTING_IMAGES = "motorcycle_images"
PROFILE_PICTURES = "profile_pictures"


class UploadRejected(ValueError):
    """One or more uploaded files broke the type, size or count limits."""

    def __init__(self, errors: List[str]):
        super().__init__("File upload failed")
        self.errors = list(errors)


def present_files(files: Optional[Sequence[UploadFile]]) -> List[UploadFile]:
    """Drop empty file inputs that browsers send when nothing was picked."""
    return [f for f in (files or []) if f is not None and f.filename]


class ImageStore:
    """Writes uploaded images below root_dir and serves them under url_prefix."""

    def __init__(self, root_dir: str, url_prefix: str = "/uploads",
                 max_bytes: int = 5_000_000, max_files: int = 5):
        self.root_dir = root_dir
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes
        self.max_files = max_files

    def ensure_dirs(self) -> None:
        for subdir in (LISTING_IMAGES, PROFILE_PICTURES):
            path = os.path.join(self.root_dir, subdir)
            if not os.path.isdir(path):
                os.makedirs(path, exist_ok=True)
                logger.info(f"Created directory: {path}")

    def _check_type(self, upload: UploadFile) -> Optional[str]:
        ext = os.path.splitext(upload.filename or "")[1].lower()
        content_type = (upload.content_type or "").lower()
        if ext not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_CONTENT_TYPES:
            return "Only .png, .jpg and .jpeg format allowed!"
        return None

    def _new_name(self, upload: UploadFile, prefix: str) -> str:
        ext = os.path.splitext(upload.filename or "")[1].lower()
        return f"{prefix}{int(time.time() * 1000)}-{random.randint(0, 10 ** 9)}{ext}"

    async def save(self, uploads: Sequence[UploadFile], subdir: str = LISTING_IMAGES,
                   prefix: str = "") -> List[str]:
        """
        Validate and store files, returning their public paths in upload order.

        Nothing is left on disk when any file is rejected.
        """
        if len(uploads) > self.max_files:
            raise UploadRejected([f"Maximum {self.max_files} images allowed"])

        errors = []
        payloads = []
        for upload in uploads:
            type_error = self._check_type(upload)
            if type_error:
                errors.append(type_error)
                continue
            data = await upload.read(self.max_bytes + 1)
            if len(data) > self.max_bytes:
                errors.append(f"Each image must be less than {self.max_bytes // 1_000_000}MB")
                continue
            payloads.append((upload, data))
        if errors:
            raise UploadRejected(sorted(set(errors), key=errors.index))

        directory = os.path.join(self.root_dir, subdir)
        os.makedirs(directory, exist_ok=True)
        saved: List[str] = []
        try:
            for upload, data in payloads:
                name = self._new_name(upload, prefix)
                with open(os.path.join(directory, name), "wb") as fh:
                    fh.write(data)
                saved.append(f"{self.url_prefix}/{subdir}/{name}")
        except OSError:
            self.remove(saved)
            raise
        logger.info(f"Stored {len(saved)} image(s) in {directory}")
        return saved

    async def save_one(self, upload: UploadFile, subdir: str = PROFILE_PICTURES,
                       prefix: str = "profile-") -> str:
        return (await self.save([upload], subdir=subdir, prefix=prefix))[0]

    def _disk_path(self, public_path: str) -> Optional[str]:
        if not public_path or not public_path.startswith(self.url_prefix + "/"):
            return None
        relative = public_path[len(self.url_prefix) + 1:]
        root = os.path.abspath(self.root_dir)
        path = os.path.abspath(os.path.join(root, relative))
        return path if path.startswith(root + os.sep) else None

    def remove(self, public_paths: Iterable[Optional[str]]) -> None:
        """Delete stored files; unknown or already-missing paths are skipped."""
        for public_path in public_paths:
            path = self._disk_path(public_path)
            if path and os.path.exists(path):
                os.remove(path)
                logger.debug(f"Removed {path}")
