"""
App layer: 웹 서버 (FastAPI).

역할:
- 작업 목록/상세 페이지, JSON API, 로컬 파일 서빙
- 설정 로드 (default.yaml, workshop.yaml, .env)
- 상태 전이 규칙 없음 (core 에 위임)
"""
