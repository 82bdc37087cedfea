#!/usr/bin/env python3
"""
archive_jobs.py - 오래된 종료 Job 아카이브 스크립트

closed_at 이 N 일보다 오래된 done Job 에 대해:
1. XLSX Rapport 를 archive_dir 에 저장
2. 사진 → time entries → Job 순서로 삭제

리포트 저장에 실패한 Job 은 삭제하지 않음.

사용법:
    # 기본 실행 (dry-run)
    python scripts/archive_jobs.py

    # 실제 아카이브 + 삭제
    python scripts/archive_jobs.py --execute

    # 기준 일수 지정
    python scripts/archive_jobs.py --days 30 --execute

    # 특정 Job 만
    python scripts/archive_jobs.py --job <job_id> --execute
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

# 프로젝트 루트를 path에 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.app.main import build_lifecycle  # noqa: E402
from src.app.services.jobs import JobService  # noqa: E402
from src.app.settings import config_value, load_config, resolve_path  # noqa: E402
from src.core.clock import utc_now  # noqa: E402
from src.domain.errors import ShopError  # noqa: E402
from src.domain.schemas import Job  # noqa: E402

logger = logging.getLogger(__name__)

DEFAULT_OLDER_THAN_DAYS = 90
SCAN_LIMIT = 10_000


@dataclass
class ArchiveResult:
    """아카이브 결과."""
    scanned_jobs: int = 0
    selected_jobs: list[str] = field(default_factory=list)
    archived_files: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def select_jobs(
    jobs: list[Job],
    older_than_days: int,
    now: datetime,
    specific_job: str | None = None,
) -> list[Job]:
    """아카이브 대상: done + closed_at 이 기준일 이전 (열린 Job 은 제외)."""
    cutoff = now - timedelta(days=older_than_days)
    selected = []
    for job in jobs:
        if specific_job and job.id != specific_job:
            continue
        if not job.is_done or job.closed_at is None:
            continue
        if job.closed_at <= cutoff:
            selected.append(job)
    return selected


def archive_jobs(
    service: JobService,
    archive_dir: Path,
    older_than_days: int = DEFAULT_OLDER_THAN_DAYS,
    execute: bool = False,
    specific_job: str | None = None,
    now: datetime | None = None,
) -> ArchiveResult:
    """
    대상 Job 아카이브.

    Args:
        service: JobService
        archive_dir: XLSX 저장 폴더
        older_than_days: 기준 일수
        execute: False 면 대상만 출력 (dry-run)
        specific_job: 특정 Job 만 처리
        now: 기준 시각

    Returns:
        ArchiveResult
    """
    result = ArchiveResult()
    now = now or utc_now()

    jobs = service.list_jobs(limit=SCAN_LIMIT)
    result.scanned_jobs = len(jobs)

    for job in select_jobs(jobs, older_than_days, now, specific_job):
        result.selected_jobs.append(job.id)
        if not execute:
            logger.info(f"[DRY-RUN] Would archive: {job.id} ({job.title}, closed {job.closed_at:%Y-%m-%d})")
            continue

        try:
            target = service.archive_job(job.id, archive_dir)
            result.archived_files.append(target)
            logger.info(f"Archived: {job.id} → {target.name}")
        except ShopError as e:
            result.errors.append(f"{job.id}: {e.message}")
            logger.error(f"Archive failed for {job.id}: {e.message}")

    return result


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    parser = argparse.ArgumentParser(
        description="오래된 종료 Job 아카이브 스크립트",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="실제 아카이브 + 삭제 실행 (기본: dry-run)",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help=f"closed_at 기준 일수 (기본: archive.older_than_days 또는 {DEFAULT_OLDER_THAN_DAYS})",
    )
    parser.add_argument(
        "--job",
        type=str,
        help="특정 Job 만 처리",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="default.yaml",
        help="설정 파일 경로 (기본: default.yaml)",
    )

    args = parser.parse_args()

    config = load_config(resolve_path(args.config))
    days = args.days
    if days is None:
        days = int(config_value(config, "archive.older_than_days", DEFAULT_OLDER_THAN_DAYS))
    archive_dir = resolve_path(config_value(config, "paths.archive_dir", "archive"))

    lifecycle = build_lifecycle(config)
    service = JobService(lifecycle, config)

    logger.info(f"기준: {days}일 이전 종료, 출력: {archive_dir}")
    if not args.execute:
        logger.info("=" * 50)
        logger.info("DRY-RUN 모드 (실제 삭제 없음)")
        logger.info("실제 실행: --execute 옵션 추가")
        logger.info("=" * 50)

    result = archive_jobs(
        service,
        archive_dir,
        older_than_days=days,
        execute=args.execute,
        specific_job=args.job,
    )

    logger.info("=" * 50)
    logger.info("Archive 결과:")
    logger.info(f"  스캔: {result.scanned_jobs} jobs, 대상: {len(result.selected_jobs)}")
    logger.info(f"  아카이브: {len(result.archived_files)} files")
    if result.errors:
        logger.warning(f"  에러: {len(result.errors)}개")
        for err in result.errors[:5]:  # 최대 5개만 출력
            logger.warning(f"    - {err}")

    return 0 if not result.errors else 1


if __name__ == "__main__":
    sys.exit(main())
