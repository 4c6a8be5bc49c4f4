# backend/hardware.py
import logging
import sqlite3

from flask import Blueprint, current_app, jsonify, request

import control
from auth import check_api_key
from database import fetch_readings
from errors import InvalidPayload, PersistenceFailure

log = logging.getLogger("backend")

hardware_bp = Blueprint("hardware", __name__)


@hardware_bp.before_request
def authenticate_device():
    # CORS preflight never carries the key
    if request.method == "OPTIONS":
        return None
    check_api_key()


# Endpoint 1: Receive sensor data from the ESP32
@hardware_bp.route("/api/sensor-data", methods=["POST"])
def receive_sensor_data():
    data = request.get_json(silent=True)
    try:
        reading = control.parse_reading(data)
    except InvalidPayload:
        log.warning("Rejected sensor payload: %r", data)
        raise
    try:
        result = control.ingest_reading(reading)
    except sqlite3.Error as e:
        log.exception("Error saving sensor data")
        raise PersistenceFailure("Failed to save sensor data", str(e))
    return jsonify(result)


# Endpoint 2: Latest readings
@hardware_bp.route("/api/sensor-data", methods=["GET"])
def latest_sensor_data():
    try:
        rows = fetch_readings(current_app.config["SENSOR_DATA_LIMIT"])
    except sqlite3.Error as e:
        log.exception("Error fetching sensor data")
        raise PersistenceFailure("Failed to fetch sensor data", str(e))
    return jsonify(rows)


# Endpoint 3: Current pump directive, polled by the device and the dashboard
@hardware_bp.route("/api/pump-control", methods=["GET"])
def get_pump_status():
    try:
        current = control.current_command()
    except sqlite3.Error as e:
        log.exception("Error fetching pump status")
        raise PersistenceFailure("Failed to fetch pump status", str(e))
    return jsonify({"pumpStatus": current["pumpStatus"], "manual": current["manual"]})


# Endpoint 4: Set the pump directive from the dashboard
@hardware_bp.route("/api/pump-control", methods=["POST"])
def set_pump_status():
    data = request.get_json(silent=True)
    pump_status, manual = control.parse_command(data)
    try:
        control.set_command(pump_status, manual)
    except sqlite3.Error as e:
        log.exception("Error updating pump status")
        raise PersistenceFailure("Failed to update pump status", str(e))
    return jsonify({"success": True})
