# app/api/v1/routers/videos.py
import json
import uuid

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from app.api.v1.deps import get_company_scope, require_role
from app.api.v1.serializers import video_to_dict
from app.core.errors import BadRequest, Forbidden
from app.models.video import Video
from app.schemas.video import BulkDeleteIn, VideoRenameIn
from app.services import licensing, sessions, videos
from app.services.sessions import CompanyScope

router = APIRouter(prefix="/videos", tags=["videos"])

UPLOAD_ROLES = ("owner", "admin", "manager", "member")
MODERATOR_ROLES = ("owner", "admin", "manager")


def _can_modify(scope: CompanyScope, video: Video) -> bool:
    # The uploader may always change their own video
    return str(video.uploaded_by_id) == str(scope.user.id) or sessions.has_role(scope, *MODERATOR_ROLES)


def _ensure_can_modify(scope: CompanyScope, video: Video) -> None:
    if not _can_modify(scope, video):
        raise Forbidden("Only the uploader or a manager can modify this video", code="ROLE_FORBIDDEN")


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_video(
    file: UploadFile = File(...),
    displayName: str | None = Form(default=None),
    metadata: str | None = Form(default=None, description="JSON object"),
    scope: CompanyScope = Depends(require_role(*UPLOAD_ROLES)),
):
    """
    Upload a video into the selected company.

    The file is streamed to disk, then the storage quota is checked and the
    row inserted in one transaction under the company lock. If the display
    name is taken it becomes "name (1)", "name (2)", ... The stored file is
    removed whenever the upload does not end up as a row.

    Returns:
        dict: success, the video and wasRenamed

    Error codes:
        - FILE_TOO_LARGE (400): over MAX_FILE_SIZE_MB
        - STORAGE_QUOTA_EXCEEDED (413): with currentUsage, fileSize, limit, availableSpace
        - NO_ACTIVE_LICENSE (403)
    """
    meta = None
    if metadata:
        try:
            meta = json.loads(metadata)
        except json.JSONDecodeError:
            raise BadRequest("metadata must be a JSON object", code="INVALID_METADATA")
        if not isinstance(meta, dict):
            raise BadRequest("metadata must be a JSON object", code="INVALID_METADATA")

    video, renamed = await videos.upload_video(scope.company.id, scope.user, file, displayName, meta)
    return {"success": True, "data": {"video": video_to_dict(video), "wasRenamed": renamed}}


@router.get("/storage")
async def storage(scope: CompanyScope = Depends(get_company_scope)):
    return {"success": True, "data": await licensing.storage_usage(scope.company.id)}


@router.get("")
async def list_videos(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    scope: CompanyScope = Depends(get_company_scope),
):
    rows, total = await videos.list_company_videos(scope.company.id, offset, limit)
    return {"success": True, "data": {
        "items": [video_to_dict(v) for v in rows],
        "offset": offset,
        "limit": limit,
        "total": total,
    }}


@router.get("/{video_id}")
async def get_video(video_id: uuid.UUID, scope: CompanyScope = Depends(get_company_scope)):
    """
    Error codes:
        - VIDEO_NOT_FOUND (404)
        - CROSS_COMPANY_FORBIDDEN (403): the id exists but belongs to another company
    """
    video = await videos.get_company_video(video_id, scope.company.id)
    return {"success": True, "data": {"video": video_to_dict(video)}}


@router.patch("/{video_id}")
async def rename_video(
    video_id: uuid.UUID,
    body: VideoRenameIn,
    scope: CompanyScope = Depends(get_company_scope),
):
    video = await videos.get_company_video(video_id, scope.company.id)
    _ensure_can_modify(scope, video)
    video = await videos.rename_video(video, body.displayName)
    return {"success": True, "data": {"video": video_to_dict(video)}}


@router.delete("/{video_id}")
async def delete_video(video_id: uuid.UUID, scope: CompanyScope = Depends(get_company_scope)):
    """
    Soft-delete a video and remove its file; the bytes stop counting against
    the storage quota right away.
    """
    video = await videos.get_company_video(video_id, scope.company.id)
    _ensure_can_modify(scope, video)
    file_removed = await videos.delete_video(video)
    return {"success": True, "data": {"ok": True, "fileRemoved": file_removed}}


@router.post("/bulk-delete")
async def bulk_delete_videos(
    body: BulkDeleteIn,
    scope: CompanyScope = Depends(require_role(*UPLOAD_ROLES)),
):
    """
    Delete up to 100 videos at once. Each video follows the same rule as a
    single delete (uploader or manager and above).

    Returns:
        dict: deleted (id, displayName, fileRemoved) and failed (id, reason)

    Error codes:
        - CROSS_COMPANY_FORBIDDEN (403): an id belongs to another company, nothing deleted
        - VIDEO_NOT_FOUND (404): none of the ids is a video of this company
    """
    result = await videos.bulk_delete(body.videoIds, scope.company.id, lambda v: _can_modify(scope, v))
    return {"success": True, "data": result}
