import threading

import database


def _commands():
    conn = database._connect()
    rows = conn.execute("SELECT pump_status, manual FROM pump_control ORDER BY id").fetchall()
    conn.close()
    return rows


def _reading_count():
    conn = database._connect()
    count = conn.execute("SELECT COUNT(1) FROM sensor_data").fetchone()[0]
    conn.close()
    return count


def test_reading_is_stored_with_server_timestamp(client, reading):
    resp = client.post("/api/sensor-data", json=reading)
    assert resp.status_code == 200

    rows = database.fetch_readings(10)
    assert len(rows) == 1
    row = rows[0]
    assert row["temperature"] == 28
    assert row["humidity"] == 55
    assert row["soilMoisture"] == 3500
    assert row["pumpStatus"] == 0
    assert row["timestamp"].endswith("Z")


def test_reading_keeps_supplied_timestamp(client, reading):
    client.post("/api/sensor-data", json={**reading, "timestamp": "2026-05-01T08:30:00Z"})
    assert database.fetch_readings(1)[0]["timestamp"] == "2026-05-01T08:30:00.000000Z"


def test_invalid_payload_writes_nothing(client, reading):
    reading["soilMoisture"] = "wet"
    resp = client.post("/api/sensor-data", json=reading)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Invalid sensor data format"}
    assert _reading_count() == 0
    assert _commands() == []


def test_missing_field_is_rejected(client, reading):
    del reading["humidity"]
    assert client.post("/api/sensor-data", json=reading).status_code == 400


def test_non_json_body_is_rejected(client):
    resp = client.post("/api/sensor-data", data="temperature=28", content_type="text/plain")
    assert resp.status_code == 400
    assert _reading_count() == 0


def test_dry_soil_in_auto_mode_turns_pump_on(client, reading):
    database.insert_command(0, False)

    resp = client.post("/api/sensor-data", json=reading)

    assert resp.get_json() == {"success": True, "pumpStatus": 1, "manual": False}
    assert _commands() == [(0, 0), (1, 0)]


def test_manual_mode_suppresses_auto_rule(client, reading):
    database.insert_command(1, True)

    for soil in (3500, 100, 4000):
        resp = client.post("/api/sensor-data", json={**reading, "soilMoisture": soil})
        assert resp.get_json() == {"success": True, "pumpStatus": 0, "manual": True}

    assert _commands() == [(1, 1)]


def test_unchanged_decision_appends_nothing(client, reading):
    database.insert_command(1, False)

    resp = client.post("/api/sensor-data", json=reading)

    assert resp.get_json() == {"success": True, "pumpStatus": 1, "manual": False}
    assert _commands() == [(1, 0)]


def test_wet_soil_turns_pump_off(client, reading):
    database.insert_command(1, False)

    resp = client.post("/api/sensor-data", json={**reading, "soilMoisture": 900, "pumpStatus": 1})

    assert resp.get_json()["pumpStatus"] == 0
    assert _commands() == [(1, 0), (0, 0)]


def test_empty_log_is_treated_as_auto_with_pump_off(client, reading):
    resp = client.post("/api/sensor-data", json={**reading, "soilMoisture": 1000})
    assert resp.get_json() == {"success": True, "pumpStatus": 0, "manual": False}
    assert _commands() == []

    resp = client.post("/api/sensor-data", json=reading)
    assert resp.get_json() == {"success": True, "pumpStatus": 1, "manual": False}
    assert _commands() == [(1, 0)]


def test_threshold_crossing_appends_once(client, reading):
    database.insert_command(0, False)
    for soil in (1800, 2500, 2600, 3000):
        client.post("/api/sensor-data", json={**reading, "soilMoisture": soil})
    assert _commands() == [(0, 0), (1, 0)]


def test_duplicate_posts_are_stored_twice(client, reading):
    client.post("/api/sensor-data", json=reading)
    client.post("/api/sensor-data", json=reading)
    assert _reading_count() == 2


def test_auto_change_is_notified(client, reading):
    client.post("/api/sensor-data", json=reading)
    messages = [r[2] for r in database.fetch_notifications()]
    assert messages == ["Pump turned ON automatically"]


def test_latest_sensor_data_is_capped(app, client, reading):
    app.config["SENSOR_DATA_LIMIT"] = 3
    for i in range(5):
        client.post("/api/sensor-data", json={**reading, "timestamp": f"2026-05-01T08:0{i}:00Z"})

    rows = client.get("/api/sensor-data").get_json()
    assert [r["timestamp"] for r in rows] == [
        "2026-05-01T08:04:00.000000Z",
        "2026-05-01T08:03:00.000000Z",
        "2026-05-01T08:02:00.000000Z",
    ]


def test_store_failure_returns_500(client, reading, monkeypatch, tmp_path):
    monkeypatch.setattr(database, "DB_PATH", str(tmp_path / "missing" / "irrigation.db"))
    resp = client.post("/api/sensor-data", json=reading)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body["error"] == "Failed to save sensor data"
    assert body["message"]


def test_oversized_integer_is_rejected_as_json(client, reading):
    resp = client.post("/api/sensor-data", json={**reading, "soilMoisture": 10 ** 400})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Invalid sensor data format"}
    assert _reading_count() == 0


def test_concurrent_ingests_append_a_single_command(app, reading):
    database.insert_command(0, False)
    workers = 8
    barrier = threading.Barrier(workers)
    statuses = []

    def post():
        client = app.test_client()
        barrier.wait()
        statuses.append(client.post("/api/sensor-data", json=reading).status_code)

    threads = [threading.Thread(target=post) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert statuses == [200] * workers
    assert _reading_count() == workers
    assert _commands() == [(0, 0), (1, 0)]
