"""
Data schemas for the workshop tracker.

규칙:
- 필드명 통일: 백엔드 컬럼명과 동일하게 사용 (jobs, time_entries)
- 타임스탬프: timezone-aware datetime (UTC), 직렬화 시 ISO 8601
- closed_at 은 status == done 일 때만 non-null
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from src.domain.constants import STATUS_DONE, STATUS_OPEN


class JobStatus(str, Enum):
    """Job 상태."""
    OPEN = STATUS_OPEN
    DONE = STATUS_DONE


def parse_ts(value: Any) -> datetime | None:
    """ISO 문자열/datetime → datetime (None 허용)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    # PostgREST 는 "Z" 대신 "+00:00" 을 주지만, 둘 다 허용
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_ts(value: datetime | None) -> str | None:
    """datetime → ISO 문자열."""
    return value.isoformat() if value else None


# =============================================================================
# Job
# =============================================================================

@dataclass
class Job:
    """
    수리 작업 단위.

    odometer_photo_path / identity_photo_path 는 나중에 추가된 직접 참조 컬럼.
    예전 Job 은 비어 있고 파일명 규칙으로만 사진을 찾을 수 있음.
    """
    id: str
    title: str
    status: JobStatus = JobStatus.OPEN
    customer: str | None = None
    vehicle: str | None = None
    plate: str | None = None
    vin: str | None = None
    created_at: datetime | None = None
    closed_at: datetime | None = None

    odometer_photo_path: str | None = None
    identity_photo_path: str | None = None
    checklist: dict[str, bool] = field(default_factory=dict)

    signature_path: str | None = None
    signature_name: str | None = None
    signature_at: datetime | None = None

    @property
    def is_done(self) -> bool:
        return self.status == JobStatus.DONE

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Job":
        """백엔드 row(dict) → Job."""
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            status=JobStatus(row.get("status") or STATUS_OPEN),
            customer=row.get("customer"),
            vehicle=row.get("vehicle"),
            plate=row.get("plate"),
            vin=row.get("vin"),
            created_at=parse_ts(row.get("created_at")),
            closed_at=parse_ts(row.get("closed_at")),
            odometer_photo_path=row.get("odometer_photo_path"),
            identity_photo_path=row.get("identity_photo_path"),
            checklist=dict(row.get("checklist") or {}),
            signature_path=row.get("signature_path"),
            signature_name=row.get("signature_name"),
            signature_at=parse_ts(row.get("signature_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화용."""
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "customer": self.customer,
            "vehicle": self.vehicle,
            "plate": self.plate,
            "vin": self.vin,
            "created_at": format_ts(self.created_at),
            "closed_at": format_ts(self.closed_at),
            "odometer_photo_path": self.odometer_photo_path,
            "identity_photo_path": self.identity_photo_path,
            "checklist": dict(self.checklist),
            "signature_path": self.signature_path,
            "signature_name": self.signature_name,
            "signature_at": format_ts(self.signature_at),
        }


# =============================================================================
# Time Entry
# =============================================================================

@dataclass
class TimeEntry:
    """작업자 한 명의 연속 작업 구간. end_ts 가 None 이면 실행 중."""
    id: str
    job_id: str
    worker: str
    start_ts: datetime
    task: str | None = None
    end_ts: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.end_ts is None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "TimeEntry":
        start = parse_ts(row.get("start_ts"))
        if start is None:
            raise ValueError(f"time entry {row.get('id')!r} has no start_ts")
        return cls(
            id=str(row["id"]),
            job_id=str(row["job_id"]),
            worker=row["worker"],
            task=row.get("task"),
            start_ts=start,
            end_ts=parse_ts(row.get("end_ts")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "worker": self.worker,
            "task": self.task,
            "start_ts": format_ts(self.start_ts),
            "end_ts": format_ts(self.end_ts),
        }


# =============================================================================
# Photo / Artifact Schemas
# =============================================================================

@dataclass
class PhotoKind:
    """사진 분류 정의 (workshop.yaml photos.kinds)."""
    key: str  # identity, odometer, damage, signature
    prefixes: list[str]
    required: bool = False
    label: str = ""


@dataclass
class StoredObject:
    """오브젝트 스토리지 목록 항목."""
    name: str
    path: str  # {job_id}/{name}
    size: int | None = None


@dataclass
class PhotoArtifact:
    """Job 네임스페이스 안의 사진 참조."""
    name: str
    path: str
    kind: str
    signed_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "kind": self.kind,
            "signed_url": self.signed_url,
        }


class ArtifactSource(str, Enum):
    """
    참조 해석 경로.

    column: Job 의 직접 참조 컬럼 (권위 있음)
    filename: 파일명 prefix 스캔 (레거시 Job 호환)
    """
    COLUMN = "column"
    FILENAME = "filename"


@dataclass
class ArtifactRef:
    """kind 하나에 대해 해석된 참조."""
    kind: str
    path: str | None = None
    source: ArtifactSource | None = None

    @property
    def present(self) -> bool:
        return self.path is not None


@dataclass
class ArtifactRefs:
    """
    로드 시점에 한 번 해석된 참조 묶음.

    호출부는 fallback 스캔을 다시 하지 않고 이 값만 사용.
    """
    refs: dict[str, ArtifactRef] = field(default_factory=dict)

    def get(self, kind: str) -> ArtifactRef:
        return self.refs.get(kind) or ArtifactRef(kind=kind)

    def has(self, kind: str) -> bool:
        return self.get(kind).present

    def to_dict(self) -> dict[str, Any]:
        return {
            kind: {
                "path": ref.path,
                "source": ref.source.value if ref.source else None,
            }
            for kind, ref in self.refs.items()
        }


@dataclass
class ArtifactCheck:
    """필수 사진 검증 결과."""
    ok: bool
    missing: list[str] = field(default_factory=list)


# =============================================================================
# Aggregation
# =============================================================================

@dataclass
class Totals:
    """분 단위 합계. total == sum(per_worker.values())."""
    total: int = 0
    per_worker: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "per_worker": dict(self.per_worker)}


# =============================================================================
# Workshop Definition
# =============================================================================

@dataclass
class WorkshopDefinition:
    """workshop.yaml 내용."""
    workers: list[str]
    tasks: list[str]
    checklist: dict[str, str]  # key → label
    photo_kinds: list[PhotoKind]
    require_plate: bool = True

    @property
    def required_kinds(self) -> list[str]:
        return [k.key for k in self.photo_kinds if k.required]

    def kind(self, key: str) -> PhotoKind | None:
        for k in self.photo_kinds:
            if k.key == key:
                return k
        return None
