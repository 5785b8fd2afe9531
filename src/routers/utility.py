"""
Utility 라우터 (health)
"""


def register_utility_routes(app):
    """Utility 라우트를 FastAPI 앱에 등록"""

    @app.get("/health")
    async def health_check():
        """헬스 체크 엔드포인트"""
        return {"status": "ok"}
