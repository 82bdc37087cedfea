#!/usr/bin/env python
"""
백엔드 연결 확인 스크립트.

.env 의 SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY 로
jobs 테이블과 사진 버킷을 조회해 자격 증명을 검증.

실행:
    python scripts/check_backend.py
"""

import os
import sys
from pathlib import Path

# 프로젝트 루트를 path에 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

# .env 파일 로드
from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from src.domain.constants import PHOTO_BUCKET  # noqa: E402
from src.domain.errors import ShopError  # noqa: E402
from src.storage import RestClient, RestJobStore  # noqa: E402


def check_jobs(client: RestClient) -> bool:
    """jobs 테이블 조회."""
    print("\n" + "=" * 60)
    print("🧪 jobs 테이블")
    print("=" * 60)

    try:
        jobs = RestJobStore(client).list_jobs(limit=5)
        print(f"✅ {len(jobs)} Job(s) gelesen")
        for job in jobs:
            print(f"   - {job.id}  {job.status.value:<4}  {job.title}")
        return True

    except ShopError as e:
        print(f"❌ jobs 오류: {e.message}")
        return False


def check_bucket(client: RestClient, bucket: str) -> bool:
    """사진 버킷 조회 (루트 폴더 목록)."""
    print("\n" + "=" * 60)
    print(f"🧪 Storage bucket: {bucket}")
    print("=" * 60)

    try:
        response = client.request(
            "POST", f"/storage/v1/object/list/{bucket}",
            json={"prefix": "", "limit": 5, "offset": 0},
        )
        print(f"✅ {len(response.json())} Eintrag/Einträge im Bucket")
        return True

    except ShopError as e:
        print(f"❌ bucket 오류: {e.message}")
        return False


def main():
    """연결 확인 실행."""
    print("🚀 Backend 연결 확인 시작")
    print("=" * 60)

    url = os.environ.get("SUPABASE_URL")
    if not url or not os.environ.get("SUPABASE_SERVICE_ROLE_KEY"):
        print("❌ SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY가 설정되지 않았습니다.")
        print("   .env 파일을 확인하세요.")
        return 1

    print(f"✅ URL: {url}")

    client = RestClient.from_env()
    try:
        results = {
            "jobs": check_jobs(client),
            "bucket": check_bucket(client, os.environ.get("PHOTO_BUCKET", PHOTO_BUCKET)),
        }
    finally:
        client.close()

    print("\n" + "=" * 60)
    print("📊 결과 요약")
    print("=" * 60)

    all_passed = True
    for name, passed in results.items():
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"  {name}: {status}")
        if not passed:
            all_passed = False

    print("=" * 60)
    if all_passed:
        print("🎉 Backend 연결 정상!")
    else:
        print("⚠️ 일부 확인 실패. .env 파일과 schema.sql 적용 여부를 확인하세요.")

    return 0 if all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
