"""Automatic pump control.

Soil moisture arrives as the raw analog value from the device ADC
(0-4095, higher = drier). In automatic mode the pump runs while the
reading is above the moisture threshold.
"""
import logging
import math
import numbers
import datetime

from flask import current_app

from config import ANALOG_MAX
from database import (
    command_transaction,
    fetch_latest_command,
    get_setting,
    insert_command,
    insert_reading,
    log_notification,
)
from errors import InvalidPayload

log = logging.getLogger("backend")

PUMP_OFF = 0
PUMP_ON = 1
READING_FIELDS = ("temperature", "humidity", "soilMoisture", "pumpStatus")

# Mode assumed while the command log is still empty
DEFAULT_COMMAND = {"pumpStatus": PUMP_OFF, "manual": False}


def is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def parse_timestamp(value):
    """ISO 8601 string -> aware UTC datetime. Naive values are taken as UTC."""
    if not isinstance(value, str):
        raise ValueError("timestamp must be a string")
    dt = datetime.datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def parse_reading(data):
    """Validate a device payload and return the reading to store."""
    if not isinstance(data, dict):
        raise InvalidPayload("Invalid sensor data format")
    for field in READING_FIELDS:
        if not is_number(data.get(field)):
            raise InvalidPayload("Invalid sensor data format")
    if data["pumpStatus"] not in (PUMP_OFF, PUMP_ON):
        raise InvalidPayload("Invalid sensor data format")

    reading = {
        "temperature": float(data["temperature"]),
        "humidity": float(data["humidity"]),
        "soilMoisture": float(data["soilMoisture"]),
        "pumpStatus": int(data["pumpStatus"]),
    }
    if data.get("timestamp") is not None:
        try:
            reading["timestamp"] = parse_timestamp(data["timestamp"])
        except ValueError:
            raise InvalidPayload("Invalid sensor data format")
    else:
        reading["timestamp"] = datetime.datetime.now(datetime.timezone.utc)
    return reading


def parse_command(data):
    if not isinstance(data, dict):
        raise InvalidPayload("Invalid payload")
    pump_status = data.get("pumpStatus")
    manual = data.get("manual")
    if not is_number(pump_status) or pump_status not in (PUMP_OFF, PUMP_ON):
        raise InvalidPayload("Invalid payload")
    if not isinstance(manual, bool):
        raise InvalidPayload("Invalid payload")
    return int(pump_status), manual


def moisture_threshold() -> float:
    """Stored override if one was saved, otherwise the configured default."""
    default = current_app.config["MOISTURE_THRESHOLD"]
    try:
        return float(get_setting("moisture_threshold", default))
    except (TypeError, ValueError):
        log.warning("Ignoring unreadable moisture_threshold setting")
        return float(default)


def desired_pump_status(soil_moisture, threshold) -> int:
    return PUMP_ON if soil_moisture > threshold else PUMP_OFF


def soil_moisture_percent(analog_value) -> int:
    """Display-only conversion of the analog reading to a 0-100 wetness %."""
    percent = round(100 - (analog_value / ANALOG_MAX) * 100)
    return max(0, min(100, percent))


def current_command():
    return fetch_latest_command() or dict(DEFAULT_COMMAND)


def ingest_reading(reading):
    """Store a reading and run the automatic rule.

    Returns the response body: the effective pump status and the mode.
    The reading insert and the command decision are separate writes.
    """
    insert_reading(reading)
    log.info(
        "Reading stored: temperature=%s humidity=%s soilMoisture=%s pumpStatus=%s",
        reading["temperature"], reading["humidity"], reading["soilMoisture"], reading["pumpStatus"],
    )

    threshold = moisture_threshold()
    with command_transaction() as commands:
        current = commands.latest() or dict(DEFAULT_COMMAND)
        if current["manual"]:
            return {"success": True, "pumpStatus": reading["pumpStatus"], "manual": True}

        desired = desired_pump_status(reading["soilMoisture"], threshold)
        changed = desired != current["pumpStatus"]
        if changed:
            commands.append(desired, manual=False)

    if changed:
        state = "ON" if desired == PUMP_ON else "OFF"
        log.info("Auto mode: pump %s (soilMoisture=%s, threshold=%s)", state, reading["soilMoisture"], threshold)
        log_notification(f"Pump turned {state} automatically", "info")
    return {"success": True, "pumpStatus": desired, "manual": False}


def set_command(pump_status, manual):
    """Append a directive from the dashboard. No business-rule checks."""
    insert_command(pump_status, manual)
    state = "ON" if pump_status == PUMP_ON else "OFF"
    mode = "manual" if manual else "automatic"
    log.info("Pump command: %s (%s)", state, mode)
    log_notification(f"Pump set {state} in {mode} mode", "info")
