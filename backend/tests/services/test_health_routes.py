"""Route Tests: health probes."""


async def test_liveness(client):
    resp = await client.get("/api/v1/health/")

    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


async def test_readiness_with_database(client):
    resp = await client.get("/api/v1/health/ready")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ready", "checks": {"database": "healthy"}}


async def test_readiness_without_database(client, monkeypatch):
    import sage.infrastructure.database as db_module
    monkeypatch.setattr(db_module, "db_manager", None)

    resp = await client.get("/api/v1/health/ready")

    assert resp.status_code == 503
    assert resp.json()["reason"] == "database_unavailable"
