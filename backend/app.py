from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
import datetime
import logging
import os
import sqlite3

# --- Local imports ---
import config
import control
import database
import simulator
from auth import require_api_key
from errors import InvalidPayload, PersistenceFailure, register_error_handlers
from hardware import hardware_bp
from summary import since_for_range, summarize_readings

logging.basicConfig(level=config.LOG_LEVEL, format="[%(levelname)s] %(asctime)s %(message)s")
log = logging.getLogger("backend")

app = Flask(__name__)
app.config.from_mapping(config.flask_settings())
CORS(app, resources={r"/api/*": {"origins": config.CORS_ORIGINS}})  # allow dashboard calls

register_error_handlers(app)

# Register blueprints (AFTER app is created)
app.register_blueprint(hardware_bp)

log.info("Database: %s", database.DB_PATH)
log.info("Moisture threshold default: %s (analog, higher = drier)", config.MOISTURE_THRESHOLD)
if not config.API_KEY:
    log.warning("API_KEY is not set; device endpoints accept unauthenticated requests")


@app.cli.command("init-db")
def init_db_command():
    """Create the SQLite tables."""
    database.init_db()
    log.info("Initialized database at %s", database.DB_PATH)


def _limit_arg(default, cap):
    try:
        limit = int(request.args.get("limit", default))
    except ValueError:
        return cap
    if limit <= 0:
        return cap
    return min(limit, cap)


# --- Health check ---
@app.route("/api/health")
def health_check():
    return jsonify({"status": "ok", "message": "Smart Garden backend is running!"})


# --- Debug API ---
@app.route("/api/debug", methods=["GET"])
@require_api_key
def api_debug():
    try:
        db_info = {
            "connected": True,
            "path": database.DB_PATH,
            "tables": database.table_counts(),
        }
        threshold = control.moisture_threshold()
    except sqlite3.Error as e:
        log.exception("Debug endpoint error")
        return jsonify({"status": "error", "message": str(e)}), 500
    return jsonify({
        "status": "ok",
        "db": db_info,
        "moisture_threshold": threshold,
        "api_key_required": bool(current_app.config["API_KEY"]),
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    })


# --- History APIs ---
@app.route("/api/history", methods=["GET"])
@require_api_key
def api_history():
    """Most recent readings, newest first, capped at HISTORY_LIMIT."""
    cap = current_app.config["HISTORY_LIMIT"]
    try:
        rows = database.fetch_readings(_limit_arg(cap, cap))
    except sqlite3.Error as e:
        log.exception("Error fetching historical data")
        raise PersistenceFailure("Failed to fetch historical data", str(e))
    for row in rows:
        row["soilMoisturePercent"] = control.soil_moisture_percent(row["soilMoisture"])
    return jsonify(rows)


@app.route("/api/history/summary", methods=["GET"])
@require_api_key
def api_history_summary():
    range_key = request.args.get("range", "24h")
    if range_key not in ("24h", "7d", "30d", "all"):
        range_key = "24h"
    try:
        rows = database.fetch_readings_since(since_for_range(range_key))
    except sqlite3.Error as e:
        log.exception("Error summarizing historical data")
        raise PersistenceFailure("Failed to summarize historical data", str(e))
    result = summarize_readings(rows, current_app.config["PUMP_ON_MINUTES_PER_SAMPLE"])
    result["range"] = range_key
    return jsonify(result)


# --- Notifications API ---
@app.route("/api/notifications", methods=["GET"])
@require_api_key
def api_notifications():
    try:
        rows = database.fetch_notifications(limit=_limit_arg(10, 100))
    except sqlite3.Error as e:
        log.exception("Error fetching notifications")
        raise PersistenceFailure("Failed to fetch notifications", str(e))
    return jsonify([
        {"id": r[0], "timestamp": r[1] + "Z", "message": r[2], "type": r[3]} for r in rows
    ])


# --- Settings API ---
@app.route("/api/settings", methods=["GET", "POST"])
@require_api_key
def api_settings():
    if request.method == "GET":
        try:
            threshold = control.moisture_threshold()
        except sqlite3.Error as e:
            log.exception("Error reading settings")
            raise PersistenceFailure("Failed to read settings", str(e))
        return jsonify({"moisture_threshold": threshold})

    data = request.get_json(silent=True)
    threshold = data.get("moisture_threshold") if isinstance(data, dict) else None
    if not control.is_number(threshold) or not 0 <= threshold <= config.ANALOG_MAX:
        raise InvalidPayload(f"moisture_threshold must be a number between 0 and {config.ANALOG_MAX}")
    try:
        database.set_setting("moisture_threshold", str(float(threshold)))
    except sqlite3.Error as e:
        log.exception("Error saving settings")
        raise PersistenceFailure("Failed to save settings", str(e))
    log.info("Moisture threshold set to %s", threshold)
    return jsonify({"status": "saved"})


# --- Simulation APIs ---
@app.route("/api/simulation/start", methods=["POST"])
@require_api_key
def start_simulation():
    path = current_app.config["SIMULATION_CSV"]
    if not os.path.exists(path):
        return jsonify({"error": f"CSV not found at {path}"}), 404
    try:
        started = simulator.start(current_app._get_current_object(), path,
                                  current_app.config["SIMULATION_INTERVAL"])
    except ValueError as e:
        raise InvalidPayload(str(e))
    if not started:
        return jsonify({"status": "already_running"})
    return jsonify({"status": "started", "total_rows": simulator.status()["total"]})


@app.route("/api/simulation/stop", methods=["POST"])
@require_api_key
def stop_simulation():
    simulator.stop()
    return jsonify({"status": "stopped"})


@app.route("/api/simulation/status", methods=["GET"])
@require_api_key
def simulation_status():
    return jsonify(simulator.status())


if __name__ == "__main__":
    database.init_db()  # initialize DB on startup
    app.run(host=config.FLASK_HOST, port=config.FLASK_PORT, debug=True)
