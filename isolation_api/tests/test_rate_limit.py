"""
Tests for the in-memory rate limiter, mounted on a throwaway app.
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from isolation_api.middleware.rate_limit import RateLimitMiddleware


def _app(**limits):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, **limits)

    @app.get("/api/health")
    async def health():
        return {"status": "healthy"}

    @app.post("/api/modal-analysis")
    async def calc():
        return {"ok": True}

    @app.post("/api/auth/login")
    async def login():
        return {"ok": True}

    @app.get("/api/usage")
    async def usage():
        return {"ok": True}

    return TestClient(app)


class TestRateLimit:

    def test_general_limit(self):
        client = _app(requests_per_minute=3)
        codes = [client.get("/api/usage").status_code for _ in range(4)]
        assert codes == [200, 200, 200, 429]

    def test_calculation_limit(self):
        client = _app(calculation_requests_per_minute=2)
        codes = [client.post("/api/modal-analysis").status_code for _ in range(3)]
        assert codes == [200, 200, 429]
        assert client.get("/api/usage").status_code == 200

    def test_auth_limit(self):
        client = _app(auth_requests_per_minute=1)
        assert client.post("/api/auth/login").status_code == 200
        resp = client.post("/api/auth/login")
        assert resp.status_code == 429
        assert "authentication" in resp.json()["detail"]

    def test_clients_isolated(self):
        client = _app(requests_per_minute=1)
        assert client.get("/api/usage", headers={"x-forwarded-for": "1.1.1.1"}).status_code == 200
        assert client.get("/api/usage", headers={"x-forwarded-for": "2.2.2.2"}).status_code == 200
        assert client.get("/api/usage", headers={"x-forwarded-for": "1.1.1.1"}).status_code == 429

    def test_health_exempt(self):
        client = _app(requests_per_minute=1)
        for _ in range(5):
            assert client.get("/api/health").status_code == 200
