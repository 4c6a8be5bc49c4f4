"""Replay a CSV of readings through the ingest path, standing in for the device."""
import logging
import sqlite3
import threading

import pandas as pd

import control
from errors import InvalidPayload

log = logging.getLogger("backend")

COLUMNS = ["temperature", "humidity", "soilMoisture", "pumpStatus"]

_lock = threading.Lock()
_stop = threading.Event()
state = {"running": False, "index": 0, "total": 0, "last": None}


def load_rows(path):
    try:
        df = pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise ValueError(f"CSV could not be parsed: {e}")
    missing = [col for col in COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"CSV is missing columns: {', '.join(missing)}")
    df = df.dropna(subset=COLUMNS)
    df["pumpStatus"] = df["pumpStatus"].astype(int)
    return df[COLUMNS].to_dict(orient="records")


def run_simulation(app, rows, interval):
    """Feed rows one at a time; the readings get server timestamps."""
    with app.app_context():
        for i, row in enumerate(rows):
            if _stop.is_set():
                break
            try:
                reading = control.parse_reading(row)
                result = control.ingest_reading(reading)
            except InvalidPayload:
                log.warning("Simulation: skipping invalid row %d: %r", i, row)
                result = None
            except sqlite3.Error:
                log.exception("Simulation: store failure at row %d, stopping", i)
                break
            state["index"] = i + 1
            if result is not None:
                state["last"] = {**row, "pumpStatus": result["pumpStatus"], "manual": result["manual"]}
            if interval:
                _stop.wait(interval)
    with _lock:
        state["running"] = False
    log.info("Simulation finished at row %d of %d", state["index"], state["total"])


def start(app, path, interval):
    """Start a background replay. Returns False if one is already running."""
    with _lock:
        if state["running"]:
            return False
        rows = load_rows(path)
        _stop.clear()
        state.update(running=True, index=0, total=len(rows), last=None)
    log.info("Simulation started: %d rows from %s", len(rows), path)
    thread = threading.Thread(target=run_simulation, args=(app, rows, interval), daemon=True)
    thread.start()
    return True


def stop():
    _stop.set()


def status():
    return dict(state)
