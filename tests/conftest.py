import pytest

import database
from app import app as flask_app


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setattr(database, "DB_PATH", str(tmp_path / "irrigation.db"))
    database.init_db()
    flask_app.config.update(
        TESTING=True,
        API_KEY="",
        MOISTURE_THRESHOLD=2000.0,
        HISTORY_LIMIT=100,
        SENSOR_DATA_LIMIT=25,
        PUMP_ON_MINUTES_PER_SAMPLE=5,
        SIMULATION_INTERVAL=0,
    )
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def reading():
    return {"temperature": 28, "humidity": 55, "soilMoisture": 3500, "pumpStatus": 0}
