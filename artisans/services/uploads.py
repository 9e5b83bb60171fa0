"""File storage for project documents, images and timeline photos."""

import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

import aiofiles
from fastapi import UploadFile

from artisans.config import settings
from artisans.errors import ValidationFailed

logger = logging.getLogger(__name__)

FOLDER_DOCUMENTS = "documents"
FOLDER_IMAGES = "images"
FOLDER_TIMELINE = "timeline"

CHUNK_SIZE = 64 * 1024


@dataclass
class UploadResult:
    """Outcome of storing one file; exactly one of ``url`` / ``error`` is set."""
    filename: str
    url: Optional[str] = None
    error: Optional[str] = None
    size: int = 0
    content_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.url is not None


def _safe_name(filename: Optional[str]) -> str:
    name = os.path.basename(filename or "upload")
    for ch in (" ", "/", "\\"):
        name = name.replace(ch, "_")
    return name or "upload"


async def save_upload_file(
    file: UploadFile, project_id: int, sub_folder: str, images_only: bool = False
) -> UploadResult:
    """
    Stream one upload to ``UPLOAD_DIR/{project_id}/{sub_folder}/``.

    Raises ValidationFailed for a wrong content type or an oversized file;
    a partially written file is removed first.
    """
    if images_only and not (file.content_type or "").startswith("image/"):
        raise ValidationFailed(f"{file.filename} is not an image.")

    target_dir = os.path.join(settings.UPLOAD_DIR, str(project_id), sub_folder)
    os.makedirs(target_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    new_filename = f"{timestamp}_{secrets.token_hex(4)}_{_safe_name(file.filename)}"
    file_path = os.path.join(target_dir, new_filename)

    size = 0
    try:
        async with aiofiles.open(file_path, "wb") as out_file:
            while content := await file.read(CHUNK_SIZE):
                size += len(content)
                if size > settings.MAX_UPLOAD_BYTES:
                    break
                await out_file.write(content)
    except OSError:
        if os.path.exists(file_path):
            os.remove(file_path)
        raise

    if size > settings.MAX_UPLOAD_BYTES:
        os.remove(file_path)
        raise ValidationFailed(
            f"{file.filename} exceeds the {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit."
        )

    return UploadResult(
        filename=file.filename or new_filename,
        url=f"{settings.UPLOAD_URL_PREFIX.rstrip('/')}/{project_id}/{sub_folder}/{new_filename}",
        size=size,
        content_type=file.content_type,
    )


async def save_many(
    files: Sequence[UploadFile], project_id: int, sub_folder: str, images_only: bool = False
) -> List[UploadResult]:
    """Store each file independently; one failure never stops the rest."""
    results: List[UploadResult] = []
    for file in files:
        try:
            results.append(await save_upload_file(file, project_id, sub_folder, images_only))
        except (ValidationFailed, OSError) as e:
            detail = getattr(e, "detail", None) or str(e)
            logger.warning(f"Upload of {file.filename} to project {project_id} failed: {detail}")
            results.append(UploadResult(filename=file.filename or "upload", error=detail))
    return results


def delete_stored_file(url: str) -> None:
    """Remove the file behind a stored URL; a missing file is ignored."""
    prefix = settings.UPLOAD_URL_PREFIX.rstrip("/") + "/"
    if not url.startswith(prefix):
        return
    path = os.path.join(settings.UPLOAD_DIR, *url[len(prefix):].split("/"))
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.info(f"Stored file {path} was already gone")
