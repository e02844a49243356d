"""
Video storage and company-scoped video access.

Uploads are streamed to VIDEO_STORAGE_DIR/<company_id>/ first; the storage
quota check and the row insert then run in one transaction holding the
company lock (services.licensing.reserve_storage). The stored file is
removed whenever the row does not get committed.
"""
import logging
import uuid
from pathlib import Path
from typing import Callable, Optional

from fastapi import UploadFile
from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from app.config import settings
from app.core.errors import BadRequest, Conflict, Forbidden, NotFound
from app.models import User, Video
from app.services import licensing

logger = logging.getLogger("uvicorn.error")

CHUNK_SIZE = 1024 * 1024
MAX_NAME_ATTEMPTS = 1000


def _storage_root() -> Path:
    return Path(settings.video_storage_dir)


def _remove_file(rel_path: str) -> bool:
    path = _storage_root() / rel_path
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


async def save_upload(upload: UploadFile, company_id) -> tuple[str, int]:
    """
    Stream an upload to disk, enforcing the per-file size limit.

    Returns:
        (path relative to the storage root, size in bytes)
    """
    suffix = Path(upload.filename or "").suffix.lower()
    rel_path = f"{company_id}/{uuid.uuid4().hex}{suffix}"
    dest = _storage_root() / rel_path
    dest.parent.mkdir(parents=True, exist_ok=True)

    size = 0
    too_large = False
    with open(dest, "wb") as out:
        while chunk := await upload.read(CHUNK_SIZE):
            size += len(chunk)
            if size > settings.max_file_size_bytes:
                too_large = True
                break
            out.write(chunk)
    if too_large:
        _remove_file(rel_path)
        max_mb = settings.max_file_size_bytes // (1024 * 1024)
        raise BadRequest(f"File size too large. Maximum allowed size is {max_mb}MB", code="FILE_TOO_LARGE")
    return rel_path, size


async def _unique_file_name(connection: BaseDBAsyncClient, company_id, wanted: str) -> str:
    # Inactive rows still hold their name under the (company, file_name) constraint
    candidate = wanted
    for counter in range(1, MAX_NAME_ATTEMPTS + 1):
        taken = await Video.filter(company_id=company_id, file_name=candidate).using_db(connection).exists()
        if not taken:
            return candidate
        candidate = f"{wanted} ({counter})"
    raise BadRequest("Unable to generate unique filename. Please use a different name.", code="NAME_EXHAUSTED")


async def upload_video(
    company_id,
    user: User,
    upload: UploadFile,
    display_name: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> tuple[Video, bool]:
    """
    Store an uploaded file and create its Video row under the storage quota.

    Returns:
        (video, was_renamed) where was_renamed means the display name got a
        " (n)" suffix because the name was taken

    Raises:
        StorageQuotaExceeded / QuotaExceeded (no active license)
        BadRequest: Missing file or file over the per-file limit
        Conflict: Name collision with a concurrent upload
    """
    if upload is None or not upload.filename:
        raise BadRequest("No video file provided", code="NO_FILE")

    # Cheap pre-check before writing anything when the client declared a size
    declared = getattr(upload, "size", None)
    if declared is not None:
        await licensing.reserve_storage(None, company_id, declared)

    original = upload.filename
    wanted = (display_name or "").strip() or Path(original).stem
    rel_path, size = await save_upload(upload, company_id)
    try:
        async with in_transaction() as conn:
            await licensing.lock_company(conn, company_id)
            await licensing.reserve_storage(conn, company_id, size)
            file_name = await _unique_file_name(conn, company_id, wanted)
            video = await Video.create(
                company_id=company_id,
                uploaded_by=user,
                file_name=file_name,
                original_file_name=original,
                file_path=rel_path,
                file_size=size,
                mime_type=upload.content_type or "application/octet-stream",
                metadata=metadata or {},
                is_active=True,
                using_db=conn,
            )
    except IntegrityError as e:
        _remove_file(rel_path)
        raise Conflict("A video with this name already exists. Please use a different name.", code="VIDEO_NAME_EXISTS") from e
    except Exception:
        _remove_file(rel_path)
        raise

    logger.info("[videos] %s uploaded %r (%s bytes) to company %s", user.email, file_name, size, company_id)
    return video, file_name != wanted


async def get_company_video(video_id, company_id) -> Video:
    """
    Raises:
        NotFound: No active video with this id
        Forbidden: The video belongs to another company
    """
    video = await get_video(video_id)
    if str(video.company_id) != str(company_id):
        raise Forbidden("This video belongs to another company", code="CROSS_COMPANY_FORBIDDEN")
    return video


async def list_company_videos(company_id, offset: int = 0, limit: int = 50) -> tuple[list[Video], int]:
    qs = Video.filter(company_id=company_id, is_active=True).order_by("-created_at")
    total = await qs.count()
    rows = await qs.offset(offset).limit(limit)
    return rows, total


async def rename_video(video: Video, new_name: str) -> Video:
    new_name = new_name.strip()
    if not new_name:
        raise BadRequest("Display name cannot be empty", code="BAD_REQUEST")
    if new_name == video.file_name:
        return video
    taken = await Video.filter(company_id=video.company_id, file_name=new_name).exclude(id=video.id).exists()
    if taken:
        raise Conflict("A video with this name already exists", code="VIDEO_NAME_EXISTS")
    video.file_name = new_name
    try:
        await video.save(update_fields=["file_name"])
    except IntegrityError as e:
        raise Conflict("A video with this name already exists", code="VIDEO_NAME_EXISTS") from e
    return video


async def delete_video(video: Video) -> bool:
    """
    Soft-delete the row (frees quota) and remove the stored file.

    Returns:
        Whether a file was removed from disk
    """
    video.is_active = False
    await video.save(update_fields=["is_active"])
    return _remove_file(video.file_path)


async def bulk_delete(video_ids: list, company_id, can_modify: Callable[[Video], bool]) -> dict:
    """
    Delete several videos of one company.

    Ids that exist in another company reject the whole request before
    anything is deleted. Unknown ids and videos the caller may not modify
    end up in "failed".

    Raises:
        Forbidden: An id belongs to another company
        NotFound: None of the ids is an active video of the company
    """
    ids = list(dict.fromkeys(str(v) for v in video_ids))
    rows = await Video.filter(id__in=ids, is_active=True)
    if any(str(v.company_id) != str(company_id) for v in rows):
        raise Forbidden("One or more videos belong to another company", code="CROSS_COMPANY_FORBIDDEN")
    if not rows:
        raise NotFound("No videos found", code="VIDEO_NOT_FOUND")

    found = {str(v.id): v for v in rows}
    deleted, failed = [], []
    for video_id in ids:
        video = found.get(video_id)
        if video is None:
            failed.append({"id": video_id, "reason": "Video not found"})
        elif not can_modify(video):
            failed.append({"id": video_id, "displayName": video.file_name, "reason": "Insufficient permissions"})
        else:
            file_removed = await delete_video(video)
            deleted.append({"id": video_id, "displayName": video.file_name, "fileRemoved": file_removed})

    logger.info("[videos] bulk delete in %s: %d deleted, %d failed", company_id, len(deleted), len(failed))
    return {"deleted": deleted, "failed": failed}


async def list_all_videos(
    company_id=None, offset: int = 0, limit: int = 50
) -> tuple[list[Video], int]:
    """Active videos across companies, newest first (super admin view)."""
    qs = Video.filter(is_active=True)
    if company_id is not None:
        qs = qs.filter(company_id=company_id)
    total = await qs.count()
    rows = await qs.order_by("-created_at").offset(offset).limit(limit).prefetch_related("company", "uploaded_by")
    return rows, total


async def get_video(video_id) -> Video:
    video = await Video.get_or_none(id=video_id, is_active=True)
    if not video:
        raise NotFound("Video not found", code="VIDEO_NOT_FOUND")
    return video
