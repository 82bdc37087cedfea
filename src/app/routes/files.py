"""
Files Routes: 로컬 백엔드 signed URL 서빙.

GET /files/<bucket>/<path>?expires=..&token=..

- 토큰(HMAC) + 만료 검증 실패 → 403 SIGNED_URL_INVALID
- 버킷 밖 경로 → 400 INVALID_PATH
- 심볼릭 링크 거절
"""

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse

from src.domain.constants import get_mime_type
from src.domain.errors import AuthDenied, ErrorCodes, ValidationError
from src.storage import LocalPhotoStorage

router = APIRouter()


@router.get("/{bucket}/{path:path}")
async def serve_file(
    request: Request,
    bucket: str,
    path: str,
    expires: int = 0,
    token: str = "",
) -> FileResponse:
    """signed URL 로 사진 다운로드."""
    storage = request.app.state.lifecycle.storage

    if not isinstance(storage, LocalPhotoStorage) or bucket != storage.bucket:
        raise AuthDenied(ErrorCodes.SIGNED_URL_INVALID, "Link ungültig", bucket=bucket)

    if not storage.verify_token(path, expires, token):
        raise AuthDenied(ErrorCodes.SIGNED_URL_INVALID, "Link ungültig oder abgelaufen")

    target = storage.resolve(path)
    if (storage.bucket_dir / path).is_symlink():
        raise ValidationError(ErrorCodes.INVALID_PATH, "Symbolic links are not allowed", path=path)
    if not target.is_file():
        raise ValidationError(ErrorCodes.FILE_NOT_FOUND, f"Datei nicht gefunden: {path}", path=path)

    return FileResponse(path=target, media_type=get_mime_type(target.name))
