"""
Vistagram Backend — Media File Route
======================================

What:  GET /api/files/{path} serves images stored by MediaService.
Security:
    MediaService.resolve() refuses any path that resolves outside the
    storage root (../ traversal, absolute paths, symlinks out).
"""

import mimetypes

from fastapi import APIRouter
from fastapi.responses import FileResponse

from vistagram.exceptions import NotFoundError
from vistagram.services.media_service import media_service

router = APIRouter(prefix="/api", tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    summary="Serve a stored image",
    responses={
        200: {"description": "Image file"},
        404: {"description": "File not found"},
    },
)
async def serve_file(file_path: str) -> FileResponse:
    full_path = media_service.resolve(file_path)
    if full_path is None:
        raise NotFoundError(resource="file", resource_id=file_path)

    media_type = mimetypes.guess_type(full_path.name)[0] or "application/octet-stream"
    return FileResponse(
        path=str(full_path),
        media_type=media_type,
        # Stored files are immutable (UUID names)
        headers={"Cache-Control": "public, max-age=86400"},
    )
