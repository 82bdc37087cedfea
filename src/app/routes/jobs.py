"""
Jobs Routes: 작업 목록/상세, 상태 전이, 타이머, 사진, 서명, 리포트.

페이지:
- GET /jobs → 작업 목록
- GET /jobs/<job_id> → 작업 상세
- GET /jobs/fragments/list, /jobs/<job_id>/fragment → HTMX 조각

API (/api/jobs):
- GET    ""                          → 목록 (최신 100)
- POST   ""                          → 생성
- GET    /<job_id>                   → 상세 (entries, totals, photos, artifacts)
- POST   /<job_id>/close             → 종료 (필수 사진 검사)
- POST   /<job_id>/reopen            → 재오픈 (PIN)
- POST   /<job_id>/timers/start      → 타이머 시작 (allow_conflict)
- POST   /<job_id>/timers/stop       → 타이머 정지
- POST   /<job_id>/vin               → VIN 저장 (confirm)
- POST   /<job_id>/checklist/<key>   → 체크리스트 토글
- POST   /<job_id>/photos            → 사진 업로드 (kind)
- DELETE /<job_id>/photos/<name>     → 사진 삭제 (X-Admin-Pin)
- POST   /<job_id>/signature         → 서명 저장 (PIN)
- GET    /<job_id>/report.<fmt>      → Rapport 다운로드

에러는 ShopError 로 올라가고 main 의 핸들러가 {"detail": {...}} 로 변환.
"""

from html import escape
from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, File, Form, Header, Request, UploadFile
from fastapi.responses import HTMLResponse, Response

from src.app.services.jobs import JobService
from src.app.settings import config_value
from src.core.clock import fmt_minutes, to_local
from src.core.lifecycle import JobLifecycle

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # API endpoints


def get_lifecycle(request: Request) -> JobLifecycle:
    """Request 에서 JobLifecycle 가져오기."""
    return request.app.state.lifecycle


def get_service(request: Request) -> JobService:
    """Request 에서 JobService 가져오기."""
    return request.app.state.job_service


# =============================================================================
# Page Routes (HTML)
# =============================================================================

@router.get("", response_class=HTMLResponse)
async def jobs_page(request: Request) -> HTMLResponse:
    """작업 목록 화면."""
    return HTMLResponse(content="""
<!DOCTYPE html>
<html lang="de">
<head>
    <meta charset="UTF-8">
    <title>Aufträge</title>
    <script src="https://unpkg.com/htmx.org@1.9.10"></script>
</head>
<body>
    <div class="container">
        <header>
            <h1>Aufträge</h1>
        </header>

        <div id="job-list"
             hx-get="/jobs/fragments/list"
             hx-trigger="load"
             hx-swap="innerHTML">
            Lädt…
        </div>
    </div>
</body>
</html>
    """)


@router.get("/{job_id}", response_class=HTMLResponse)
async def job_detail_page(request: Request, job_id: str) -> HTMLResponse:
    """작업 상세 화면."""
    # 존재 확인 (없으면 404)
    job = get_lifecycle(request).get_job(job_id)
    return HTMLResponse(content=f"""
<!DOCTYPE html>
<html lang="de">
<head>
    <meta charset="UTF-8">
    <title>Auftrag - {escape(job.title)}</title>
    <script src="https://unpkg.com/htmx.org@1.9.10"></script>
</head>
<body>
    <div class="container">
        <header>
            <a href="/jobs" class="back-link">← Zurück</a>
            <h1>{escape(job.title)}</h1>
        </header>

        <div id="job-detail"
             hx-get="/jobs/{quote(job.id)}/fragment"
             hx-trigger="load"
             hx-swap="innerHTML">
            Lädt…
        </div>
    </div>
</body>
</html>
    """)


# =============================================================================
# Page Fragments (HTMX)
# =============================================================================

def _e(value: Any) -> str:
    return escape(str(value)) if value not in (None, "") else "-"


@router.get("/fragments/list", response_class=HTMLResponse)
async def jobs_list_fragment(request: Request) -> HTMLResponse:
    """작업 목록 (HTML 조각)."""
    jobs = get_service(request).list_jobs()
    if not jobs:
        return HTMLResponse(content="<p class='empty'>Keine Aufträge.</p>")

    tz_name = config_value(request.app.state.config, "report.timezone")
    html = f"<p class='count'>{len(jobs)} Aufträge</p>"
    html += "<ul class='job-list'>"
    for job in jobs:
        status = "✅" if job.is_done else "🔧"
        html += f"""
        <li>
            <a href="/jobs/{quote(job.id)}">
                <strong>{_e(job.title)}</strong>
                <span class="plate">{_e(job.plate)}</span>
                <span class="created">{_e(to_local(job.created_at, tz_name))}</span>
                <span class="status">{status}</span>
            </a>
        </li>
        """
    html += "</ul>"
    return HTMLResponse(content=html)


@router.get("/{job_id}/fragment", response_class=HTMLResponse)
async def job_detail_fragment(request: Request, job_id: str) -> HTMLResponse:
    """작업 상세 (HTML 조각)."""
    detail = get_service(request).load_detail(job_id)
    job = detail.job
    tz_name = config_value(request.app.state.config, "report.timezone")
    job_path = quote(job.id)

    html = "<div class='job-info'>"
    for label, value in (
        ("Kunde", job.customer),
        ("Fahrzeug", job.vehicle),
        ("Kennzeichen", job.plate),
        ("VIN", job.vin),
        ("Status", "Abgeschlossen" if job.is_done else "Offen"),
    ):
        html += f"<dl><dt>{label}</dt><dd>{_e(value)}</dd></dl>"
    html += "</div>"

    html += "<div class='totals'><h3>Zeit</h3><ul>"
    for worker, minutes in detail.totals.per_worker.items():
        html += f"<li>{_e(worker)}: {fmt_minutes(minutes)}</li>"
    html += f"<li><strong>TOTAL: {fmt_minutes(detail.totals.total)}</strong></li></ul>"
    html += "<table class='entries'>"
    for entry in detail.entries:
        end = to_local(entry.end_ts, tz_name) if entry.end_ts else "läuft…"
        html += (
            f"<tr><td>{_e(entry.worker)}</td><td>{_e(entry.task)}</td>"
            f"<td>{_e(to_local(entry.start_ts, tz_name))}</td><td>{_e(end)}</td></tr>"
        )
    html += "</table></div>"

    html += "<div class='photos'><h3>Fotos</h3>"
    if detail.check.missing:
        html += f"<p class='missing'>Fehlt: {_e(', '.join(detail.check.missing))}</p>"
    for photo in detail.photos:
        html += (
            f"<figure><img src='{escape(photo.signed_url or '')}' alt='{escape(photo.name)}' width='160'>"
            f"<figcaption>{_e(photo.name)}</figcaption></figure>"
        )
    html += "</div>"

    html += "<div class='report'>"
    for fmt in ("xlsx", "docx", "pdf", "csv"):
        html += f"<a href='/api/jobs/{job_path}/report.{fmt}' class='button small'>{fmt.upper()}</a> "
    html += "</div>"

    return HTMLResponse(content=html)


# =============================================================================
# API Routes: Jobs
# =============================================================================

@api_router.get("")
async def list_jobs(request: Request, limit: int | None = None) -> dict[str, Any]:
    """작업 목록 (최신 순)."""
    jobs = get_service(request).list_jobs(limit=limit)
    return {"jobs": [j.to_dict() for j in jobs], "total": len(jobs)}


@api_router.post("", status_code=201)
async def create_job(
    request: Request,
    title: str = Form(""),
    customer: str | None = Form(None),
    vehicle: str | None = Form(None),
    plate: str | None = Form(None),
) -> dict[str, Any]:
    """새 작업 생성 (사진은 생성 후 첨부)."""
    job = get_lifecycle(request).create(
        title=title,
        customer=customer,
        vehicle=vehicle,
        plate=plate,
    )
    return {"job": job.to_dict()}


@api_router.get("/{job_id}")
async def get_job(request: Request, job_id: str) -> dict[str, Any]:
    """작업 상세."""
    return get_service(request).load_detail(job_id).to_dict()


@api_router.post("/{job_id}/close")
async def close_job(request: Request, job_id: str) -> dict[str, Any]:
    """작업 종료: 실행 중 타이머 정지 후 done."""
    result = get_lifecycle(request).close(job_id)
    return {
        "job": result.job.to_dict(),
        "stopped_entries": [e.to_dict() for e in result.stopped_entries],
        "already_closed": result.already_closed,
    }


@api_router.post("/{job_id}/reopen")
async def reopen_job(
    request: Request,
    job_id: str,
    pin: str | None = Form(None),
) -> dict[str, Any]:
    """작업 재오픈 (관리자 PIN)."""
    job = get_lifecycle(request).reopen(job_id, pin)
    return {"job": job.to_dict()}


# =============================================================================
# API Routes: Timers
# =============================================================================

@api_router.post("/{job_id}/timers/start", status_code=201)
async def start_timer(
    request: Request,
    job_id: str,
    worker: str = Form(""),
    task: str | None = Form(None),
    allow_conflict: bool = Form(False),
) -> dict[str, Any]:
    """
    타이머 시작.

    다른 작업에서 실행 중이면 409 WORKER_RUNNING_ELSEWHERE (other_job_id 포함),
    allow_conflict=true 로 다시 보내면 진행.
    """
    entry = get_lifecycle(request).start_timer(
        job_id,
        worker,
        task=task,
        allow_conflict=allow_conflict,
    )
    return {"entry": entry.to_dict()}


@api_router.post("/{job_id}/timers/stop")
async def stop_timer(
    request: Request,
    job_id: str,
    worker: str = Form(""),
) -> dict[str, Any]:
    """타이머 정지."""
    entry = get_lifecycle(request).stop_timer(job_id, worker)
    return {"entry": entry.to_dict()}


# =============================================================================
# API Routes: Details
# =============================================================================

@api_router.post("/{job_id}/vin")
async def update_vin(
    request: Request,
    job_id: str,
    vin: str | None = Form(None),
    confirm: bool = Form(False),
) -> dict[str, Any]:
    """VIN 저장 (17자가 아니면 confirm 필요)."""
    job = get_service(request).update_vin(job_id, vin, confirm=confirm)
    return {"job": job.to_dict()}


@api_router.post("/{job_id}/checklist/{key}")
async def toggle_checklist(request: Request, job_id: str, key: str) -> dict[str, Any]:
    """체크리스트 항목 토글."""
    job = get_service(request).toggle_checklist(job_id, key)
    return {"job": job.to_dict()}


@api_router.post("/{job_id}/photos", status_code=201)
async def upload_photo(
    request: Request,
    job_id: str,
    file: UploadFile = File(...),
    kind: str | None = Form(None),
) -> dict[str, Any]:
    """사진 업로드 (kind: identity | odometer | damage | other)."""
    data = await file.read()
    photo = get_service(request).upload_photo(
        job_id,
        file.filename or "photo.jpg",
        data,
        content_type=file.content_type,
        kind=kind,
    )
    return {"photo": photo.to_dict()}


@api_router.delete("/{job_id}/photos/{name}")
async def delete_photo(
    request: Request,
    job_id: str,
    name: str,
    x_admin_pin: str | None = Header(None),
) -> dict[str, Any]:
    """사진 삭제 (관리자 PIN, X-Admin-Pin 헤더)."""
    get_service(request).delete_photo(job_id, name, x_admin_pin)
    return {"ok": True}


@api_router.post("/{job_id}/signature")
async def save_signature(
    request: Request,
    job_id: str,
    file: UploadFile = File(...),
    name: str | None = Form(None),
    pin: str | None = Form(None),
) -> dict[str, Any]:
    """고객 서명 저장 (관리자 PIN)."""
    data = await file.read()
    job = get_service(request).save_signature(job_id, name, data, pin)
    return {"job": job.to_dict()}


@api_router.get("/{job_id}/report.{fmt}")
async def download_report(request: Request, job_id: str, fmt: str) -> Response:
    """Rapport 다운로드 (xlsx, docx, csv, pdf)."""
    report = get_service(request).build_report(job_id, fmt)
    return Response(
        content=report.content,
        media_type=report.content_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )
