"""
Domain Constants: 트래커 전역 상수.

설정 파일(default.yaml, workshop.yaml)이 없을 때의 기본값과
테이블/버킷 이름 등 시스템 전반에서 사용되는 값들.
"""

# =============================================================================
# Backend Tables / Bucket
# =============================================================================

JOBS_TABLE = "jobs"
TIME_ENTRIES_TABLE = "time_entries"
PHOTO_BUCKET = "job-photos"

# Local store 파일명 (data_dir 기준)
LOCAL_JOBS_FILENAME = "jobs.json"
LOCAL_ENTRIES_FILENAME = "time_entries.json"
LOCAL_PHOTOS_DIR = "photos"

# =============================================================================
# Job Status
# =============================================================================

STATUS_OPEN = "open"
STATUS_DONE = "done"

# =============================================================================
# Workshop Defaults (workshop.yaml 에서 오버라이드 가능)
# =============================================================================

DEFAULT_WORKERS = ("Esteban", "Eron", "Jeremie", "Tsvetan", "Mensel")
DEFAULT_TASKS = (
    "Service", "Diagnose", "Bremsen", "Reifen",
    "MFK", "Elektrik", "Klima", "Probefahrt",
)

DEFAULT_CHECKLIST = {
    "probefahrt": "Probefahrt gemacht",
    "fluids": "Öl-/Flüssigkeiten geprüft",
    "errors": "Fehler ausgelesen/gelöscht",
    "wheels": "Radmuttern kontrolliert",
    "cleanup": "Fahrzeug sauber / Werkstatt sauber",
    "invoice": "Rechnung erstellt",
    "handover": "Schlüssel / Abgabe erfolgt",
}

# =============================================================================
# Photo Kinds (사진 분류 정책)
# =============================================================================
# 파일명 prefix(대소문자 무시)로 분류:
# 예: km_20240115T093000_ab12cd.jpg → odometer
#     ausweis_....jpg → identity

KIND_IDENTITY = "identity"
KIND_ODOMETER = "odometer"
KIND_DAMAGE = "damage"
KIND_SIGNATURE = "signature"
KIND_OTHER = "other"

DEFAULT_PHOTO_KINDS = {
    KIND_IDENTITY: {"prefixes": ["ausweis", "id_"], "required": True, "label": "Ausweis-Foto"},
    KIND_ODOMETER: {"prefixes": ["km", "tacho"], "required": True, "label": "Kilometer-Foto"},
    KIND_DAMAGE: {"prefixes": ["schaden", "damage"], "required": False, "label": "Schaden-Foto"},
    KIND_SIGNATURE: {"prefixes": ["signature"], "required": False, "label": "Unterschrift"},
}

# Job 컬럼에 직접 저장되는 참조 (kind → 컬럼명)
ARTIFACT_COLUMNS = {
    KIND_ODOMETER: "odometer_photo_path",
    KIND_IDENTITY: "identity_photo_path",
    KIND_SIGNATURE: "signature_path",
}

SIGNATURE_FILENAME = "signature.png"

PHOTO_ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".heic", ".webp")
PHOTO_LIST_LIMIT = 200

# =============================================================================
# Misc Policy
# =============================================================================

VIN_LENGTH = 17
SIGNED_URL_TTL_SECONDS = 60 * 60
ADMIN_SESSION_HOURS = 24
JOB_LIST_LIMIT = 100
REPORT_MAX_PHOTOS = 6

# =============================================================================
# MIME Types
# =============================================================================

MIME_TYPES = {
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".pdf": "application/pdf",
    ".csv": "text/csv",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".heic": "image/heic",
    ".webp": "image/webp",
    ".json": "application/json",
}


def get_mime_type(filename: str) -> str:
    """
    파일명에서 MIME 타입 추출.

    Args:
        filename: 파일명 (확장자 포함)

    Returns:
        MIME 타입 문자열 (알 수 없으면 octet-stream)
    """
    import os

    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, "application/octet-stream")
