"""
Vistagram Backend — Media Storage Service
============================================

What:  Validates, stores, serves and cleans up post images.
Why:   Centralizes all file system operations with security checks.
How:   Validates extension, size and MIME type, stores in date-organized
       directories under UUID filenames, hands back a public URL.
Who:   PostService (user uploads), SeedingService (re-hosting stock photos),
       routes/files.py (serving).

Security Model:
    1. Extension check:  fast rejection before content is inspected
    2. Size check:       bounds memory use for uploads and downloads alike
    3. MIME type check:  libmagic inspects the header bytes (renamed files fail)
    4. UUID filename:    no user input reaches the file system path
    5. resolve():        served paths must stay inside the storage root

Directory Structure:
    storage/
    └── 2024/
        └── 01/
            └── 15/
                ├── a1b2c3d4-5678.jpg
                └── e5f6g7h8-9012.png
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import httpx

from vistagram.config import settings
from vistagram.exceptions import ValidationError, FileStorageError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif"}

# Stored files are addressed as <PUBLIC_PREFIX>/<relative path>
PUBLIC_PREFIX = "/api/files"


class MediaService:
    """
    Lifecycle of an uploaded file:
        1. validate_and_store(): extension → size → MIME → write
        2. public_url() of the relative path is stored on the post
        3. On a failed insert: cleanup_file() removes the orphan
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("MediaService initialized with storage_root=%s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_extension(self, filename: str) -> str:
        """Returns the normalized extension; raises ValidationError otherwise."""
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="image",
                context={"extension": ext},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Checks the reported Content-Length (before reading) and the actual
        byte count (clients can misreport).
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"File size exceeds maximum of {max_mb:.0f}MB. Please upload a smaller image.",
                field="image",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size == 0:
            raise ValidationError(message="Image is empty", field="image")

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=f"File size ({actual_size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="image",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_mime_type(self, file_content: bytes) -> str:
        """
        Detects the real MIME type from the header bytes with python-magic.

        Raises:
            ValidationError: not an allowed image type
            FileStorageError: libmagic itself failed
        """
        import magic

        try:
            mime_type = magic.from_buffer(file_content, mime=True)
        except Exception as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify file type. Please try again.",
                context={"error": str(e)},
            )

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    f"The file must be a valid image."
                ),
                field="image",
                context={"detected_mime": mime_type},
            )
        return mime_type

    # ── Storage ───────────────────────────────────────────────────────────

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """Returns (absolute_path, relative_path) as YYYY/MM/DD/<uuid><ext>."""
        now = datetime.now(timezone.utc)
        relative_path = f"{now.strftime('%Y/%m/%d')}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Write validated bytes to disk with async I/O.

        Raises:
            FileStorageError if directory creation or the write fails.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
            logger.info("File stored: %s (%d bytes)", relative_path, len(content))
            return str(absolute_path), relative_path
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

    async def cleanup_file(self, file_path: str) -> None:
        """Best-effort removal of an orphaned file; never raises."""
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except Exception as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """
        Complete validation and storage pipeline, cheapest checks first.

        Returns:
            (absolute_path, relative_path)
        """
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        self.validate_mime_type(content)
        return await self.store_file(content, ext)

    async def store_remote_image(self, url: str) -> str:
        """
        Download an image and store a local copy.

        Returns:
            Public URL of the stored copy.

        Raises:
            FileStorageError: download failed or the body is not an allowed image
        """
        try:
            async with httpx.AsyncClient(
                timeout=settings.gemini_timeout, follow_redirects=True
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise FileStorageError(
                message="Could not download remote image.",
                context={"url": url, "error": str(e)},
            )

        content = response.content
        try:
            self.validate_size(None, len(content))
            mime_type = self.validate_mime_type(content)
        except ValidationError as e:
            raise FileStorageError(message=e.message, context={"url": url})

        _, relative_path = await self.store_file(content, ALLOWED_MIME_TYPES[mime_type])
        return self.public_url(relative_path)

    # ── Addressing ────────────────────────────────────────────────────────

    @staticmethod
    def public_url(relative_path: str) -> str:
        return f"{PUBLIC_PREFIX}/{relative_path}"

    def absolute_from_public_url(self, url: str) -> Optional[Path]:
        """Maps a public URL back to its file; None for anything not stored here."""
        prefix = PUBLIC_PREFIX + "/"
        if not url.startswith(prefix):
            return None
        return self.resolve(url[len(prefix):])

    def resolve(self, relative_path: str) -> Optional[Path]:
        """
        Absolute path of a stored file, or None when the path escapes the
        storage root or does not name an existing file.
        """
        candidate = (self.storage_root / relative_path).resolve()
        if not candidate.is_relative_to(self.storage_root):
            logger.warning("Rejected path outside storage root: %s", relative_path)
            return None
        if not candidate.is_file():
            return None
        return candidate


media_service = MediaService()
