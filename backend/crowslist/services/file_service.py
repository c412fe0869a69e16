"""
Crowslist Backend — Listing Image Storage
===========================================

What:  Validates and stores the images attached to a new listing.
Why:   The listing row only records an ordered list of stored filenames;
       everything about the files themselves (type, size, count, naming,
       cleanup) is handled here.
How:   Each upload is checked by extension and declared content type, read
       with a size bound, sniffed with python-magic, and written under
       `storage_root` with a random name via aiofiles. The returned
       references are the stored filenames, in upload order.
Who:   Called by the POST /api/listings route before the listing insert, and
       again (cleanup) if that insert fails.

Checks, cheapest first:
    1. Count        at most `max_images_per_listing` files per listing
    2. Extension    .png .jpg .jpeg .gif
    3. Content type image/png, image/jpeg, image/gif as declared by the client
    4. Size         at most `max_file_size` bytes (read stops one byte past it)
    5. Signature    libmagic must see a PNG, JPEG or GIF header in the bytes

    2, 3 and 5 must all pass: a .jpg declared as text/plain is rejected, so
    is an image/png upload named notes.txt, and so is a text file renamed
    to photo.png.

Naming:
    images-<32 hex chars><ext>. No part of the client's filename is kept
    except the lowercased extension, so stored names cannot collide or
    escape the storage directory.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import List, Optional, Sequence, Union

import aiofiles
from fastapi import UploadFile

from crowslist.config import settings
from crowslist.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif"}

ALLOWED_CONTENT_TYPES = {
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/gif",
}

# What libmagic reports for the accepted formats
SNIFFED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/gif"}

# libmagic only needs the file header
SNIFF_BYTES = 2048

ONLY_IMAGES_MESSAGE = "Only image files are allowed"


class FileService:
    """
    Stores listing images on local disk.

    One instance per application (`app.state.file_service`); tests build
    their own pointing at a temporary directory.
    """

    def __init__(
        self,
        storage_root: Optional[Union[str, Path]] = None,
        max_file_size: Optional[int] = None,
        max_files: Optional[int] = None,
    ):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.max_file_size = max_file_size or settings.max_file_size
        self.max_files = max_files or settings.max_images_per_listing

    # ── Validation ────────────────────────────────────────────────────────

    def validate_count(self, count: int) -> None:
        if count > self.max_files:
            raise ValidationError(
                message=f"You can upload at most {self.max_files} images per listing",
                field="images",
                context={"max_files": self.max_files, "received": count},
            )

    def validate_type(self, filename: str, content_type: Optional[str]) -> str:
        """Returns the normalized extension."""
        ext = Path(filename or "").suffix.lower()
        declared = (content_type or "").split(";")[0].strip().lower()
        if ext not in ALLOWED_EXTENSIONS or declared not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                message=ONLY_IMAGES_MESSAGE,
                field="images",
                context={"extension": ext, "content_type": declared},
            )
        return ext

    def validate_content(self, content: bytes) -> str:
        """
        Sniff the image type from the file's leading bytes.

        The extension and declared content type come from the client and are
        trivially faked; libmagic reads the real signature (PNG starts with
        89 50 4E 47, JPEG with FF D8 FF, GIF with "GIF8").

        Returns the detected MIME type.
        """
        try:
            import magic

            detected = magic.from_buffer(content[:SNIFF_BYTES], mime=True)
        except Exception as e:
            logger.error("Image type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify the image type. Please try again.",
                context={"error": str(e)},
            )

        if detected not in SNIFFED_IMAGE_TYPES:
            raise ValidationError(
                message=ONLY_IMAGES_MESSAGE,
                field="images",
                context={"detected_type": detected},
            )
        return detected

    def validate_size(self, size: int) -> None:
        if size > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise ValidationError(
                message=f"Each image must be {max_mb:.0f}MB or smaller",
                field="images",
                context={"max_size_bytes": self.max_file_size},
            )

    # ── Storage ───────────────────────────────────────────────────────────

    def path_for(self, reference: str) -> Path:
        return self.storage_root / Path(reference).name

    async def store_bytes(self, content: bytes, extension: str) -> str:
        """Write one validated image; returns its reference (stored filename)."""
        reference = f"images-{uuid.uuid4().hex}{extension}"
        path = self.path_for(reference)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store image at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            )
        logger.info("Image stored: %s (%d bytes)", reference, len(content))
        return reference

    async def store_uploads(self, uploads: Optional[Sequence[UploadFile]]) -> List[str]:
        """
        Validate and store every upload, all or nothing.

        Empty file parts (a form submitted with no file chosen) are ignored.
        If any file fails, the ones already written are removed before the
        error propagates.
        """
        files = [u for u in (uploads or []) if u is not None and u.filename]
        self.validate_count(len(files))

        stored: List[str] = []
        try:
            for upload in files:
                ext = self.validate_type(upload.filename, upload.content_type)
                content = await upload.read(self.max_file_size + 1)
                self.validate_size(len(content))
                self.validate_content(content)
                stored.append(await self.store_bytes(content, ext))
        except Exception:
            await self.cleanup(stored)
            raise
        return stored

    async def cleanup(self, references: Sequence[str]) -> None:
        """
        Best-effort removal of stored images (after a failed listing insert).

        Failures are logged, not raised: the request is already failing for
        another reason and a stray file is harmless.
        """
        for reference in references:
            path = self.path_for(reference)
            try:
                if path.exists():
                    os.remove(path)
                    logger.info("Cleaned up image: %s", reference)
            except OSError as e:
                logger.warning("Failed to clean up image %s: %s", reference, str(e))
