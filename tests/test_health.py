def test_health(client):
    resp = client.get("/api/health")
    assert resp.get_json()["status"] == "ok"


def test_debug_reports_table_counts(client, reading):
    client.post("/api/sensor-data", json=reading)
    body = client.get("/api/debug").get_json()
    assert body["status"] == "ok"
    counts = {t["name"]: t["count"] for t in body["db"]["tables"]}
    assert counts["sensor_data"] == 1
    assert counts["pump_control"] == 1
    assert body["moisture_threshold"] == 2000.0
    assert body["api_key_required"] is False


def test_debug_reports_store_error(client, monkeypatch, tmp_path):
    import database

    monkeypatch.setattr(database, "DB_PATH", str(tmp_path / "missing" / "irrigation.db"))
    resp = client.get("/api/debug")
    assert resp.status_code == 500
    assert resp.get_json()["status"] == "error"
