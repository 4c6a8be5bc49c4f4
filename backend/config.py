import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.abspath(os.path.join(BASE_DIR, ".."))

# --- Storage ---
DB_PATH = os.environ.get("IRRIGATION_DB", os.path.join(BASE_DIR, "irrigation.db"))

# --- Device credential (empty disables the check) ---
API_KEY = os.environ.get("API_KEY", "")

# --- Control rule ---
# Raw analog reading 0-4095, higher = drier. Pump ON above the threshold.
MOISTURE_THRESHOLD = float(os.environ.get("MOISTURE_THRESHOLD", 2000))
ANALOG_MAX = 4095

# --- Query limits ---
HISTORY_LIMIT = int(os.environ.get("HISTORY_LIMIT", 100))
SENSOR_DATA_LIMIT = int(os.environ.get("SENSOR_DATA_LIMIT", 25))
PUMP_ON_MINUTES_PER_SAMPLE = float(os.environ.get("PUMP_ON_MINUTES_PER_SAMPLE", 5))

# --- Simulator ---
SIMULATION_CSV = os.environ.get("SIMULATION_CSV", os.path.join(ROOT_DIR, "data", "sample_data.csv"))
SIMULATION_INTERVAL = float(os.environ.get("SIMULATION_INTERVAL", 1))

# --- Server ---
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")
FLASK_HOST = os.environ.get("FLASK_HOST", "0.0.0.0")
FLASK_PORT = int(os.environ.get("FLASK_PORT", 5000))


def flask_settings():
    """Settings copied into app.config so tests can override them per app."""
    return {
        "API_KEY": API_KEY,
        "MOISTURE_THRESHOLD": MOISTURE_THRESHOLD,
        "HISTORY_LIMIT": HISTORY_LIMIT,
        "SENSOR_DATA_LIMIT": SENSOR_DATA_LIMIT,
        "PUMP_ON_MINUTES_PER_SAMPLE": PUMP_ON_MINUTES_PER_SAMPLE,
        "SIMULATION_CSV": SIMULATION_CSV,
        "SIMULATION_INTERVAL": SIMULATION_INTERVAL,
    }
