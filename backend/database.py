import sqlite3
import datetime
from contextlib import contextmanager

from config import DB_PATH

TABLES = ("sensor_data", "pump_control", "notifications", "settings")


def _connect():
    return sqlite3.connect(DB_PATH, timeout=10)


def utc_timestamp(dt=None):
    """Storage form of a timestamp: naive UTC, ISO 8601 with microseconds."""
    if dt is None:
        dt = datetime.datetime.now(datetime.timezone.utc)
    if dt.tzinfo is not None:
        dt = dt.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return dt.isoformat(timespec="microseconds")


def init_db():
    conn = _connect()
    c = conn.cursor()
    # Sensor readings posted by the device
    c.execute("""
        CREATE TABLE IF NOT EXISTS sensor_data (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            temperature REAL NOT NULL,
            humidity REAL NOT NULL,
            soil_moisture REAL NOT NULL,
            pump_status INTEGER NOT NULL
        )
    """)
    # Pump directives, newest row is the current one
    c.execute("""
        CREATE TABLE IF NOT EXISTS pump_control (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            pump_status INTEGER NOT NULL,
            manual INTEGER NOT NULL
        )
    """)
    # Notifications table
    c.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT,
            message TEXT,
            type TEXT
        )
    """)
    # Settings key-value table
    c.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT
        )
    """)
    c.execute("CREATE INDEX IF NOT EXISTS idx_sensor_data_ts ON sensor_data (timestamp)")
    c.execute("CREATE INDEX IF NOT EXISTS idx_pump_control_ts ON pump_control (timestamp)")
    conn.commit()
    conn.close()


# --- Sensor readings ---

def _reading_dict(r):
    return {
        "id": r[0],
        "timestamp": r[1] + "Z",
        "temperature": r[2],
        "humidity": r[3],
        "soilMoisture": r[4],
        "pumpStatus": r[5],
    }


def insert_reading(reading):
    """Append one validated reading. Returns the new row id."""
    conn = _connect()
    try:
        c = conn.cursor()
        c.execute("""
            INSERT INTO sensor_data (timestamp, temperature, humidity, soil_moisture, pump_status)
            VALUES (?, ?, ?, ?, ?)
        """, (
            utc_timestamp(reading.get("timestamp")),
            reading["temperature"],
            reading["humidity"],
            reading["soilMoisture"],
            reading["pumpStatus"],
        ))
        conn.commit()
        return c.lastrowid
    finally:
        conn.close()


def fetch_readings(limit):
    """Most recent readings, newest first."""
    conn = _connect()
    try:
        c = conn.cursor()
        c.execute("""
            SELECT id, timestamp, temperature, humidity, soil_moisture, pump_status
            FROM sensor_data
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
        """, (limit,))
        return [_reading_dict(r) for r in c.fetchall()]
    finally:
        conn.close()


def fetch_readings_since(since=None):
    """Readings at or after `since` (storage form), oldest first."""
    conn = _connect()
    try:
        c = conn.cursor()
        if since is None:
            c.execute("""
                SELECT id, timestamp, temperature, humidity, soil_moisture, pump_status
                FROM sensor_data
                ORDER BY timestamp ASC, id ASC
            """)
        else:
            c.execute("""
                SELECT id, timestamp, temperature, humidity, soil_moisture, pump_status
                FROM sensor_data
                WHERE timestamp >= ?
                ORDER BY timestamp ASC, id ASC
            """, (since,))
        return [_reading_dict(r) for r in c.fetchall()]
    finally:
        conn.close()


# --- Pump command log ---

def _latest_command(c):
    c.execute("""
        SELECT pump_status, manual, timestamp
        FROM pump_control
        ORDER BY timestamp DESC, id DESC
        LIMIT 1
    """)
    row = c.fetchone()
    if row is None:
        return None
    return {"pumpStatus": row[0], "manual": bool(row[1]), "timestamp": row[2] + "Z"}


def _insert_command(c, pump_status, manual):
    c.execute(
        "INSERT INTO pump_control (timestamp, pump_status, manual) VALUES (?, ?, ?)",
        (utc_timestamp(), int(pump_status), 1 if manual else 0),
    )


def fetch_latest_command():
    """Current pump command, or None when the log is empty."""
    conn = _connect()
    try:
        return _latest_command(conn.cursor())
    finally:
        conn.close()


def insert_command(pump_status, manual):
    conn = _connect()
    try:
        _insert_command(conn.cursor(), pump_status, manual)
        conn.commit()
    finally:
        conn.close()


class CommandLog:
    """Pump command log bound to an open write transaction."""

    def __init__(self, conn):
        self._cursor = conn.cursor()

    def latest(self):
        return _latest_command(self._cursor)

    def append(self, pump_status, manual):
        _insert_command(self._cursor, pump_status, manual)


@contextmanager
def command_transaction():
    """Hold the database write lock while reading and appending commands.

    Other writers wait (up to the connection timeout) until the block exits,
    so a read of the current command stays valid until the append commits.
    """
    conn = sqlite3.connect(DB_PATH, timeout=10, isolation_level=None)
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield CommandLog(conn)
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


# --- Notifications ---

def log_notification(message: str, type_: str = "info", timestamp: str = None):
    conn = _connect()
    c = conn.cursor()
    if not timestamp:
        timestamp = utc_timestamp()
    c.execute("INSERT INTO notifications (timestamp, message, type) VALUES (?, ?, ?)", (timestamp, message, type_))
    conn.commit()
    conn.close()


def fetch_notifications(limit: int = 10):
    conn = _connect()
    c = conn.cursor()
    c.execute("SELECT id, timestamp, message, type FROM notifications ORDER BY id DESC LIMIT ?", (limit,))
    rows = c.fetchall()
    conn.close()
    return rows


# --- Settings ---

def get_setting(key: str, default: str = None):
    conn = _connect()
    c = conn.cursor()
    c.execute("SELECT value FROM settings WHERE key = ?", (key,))
    row = c.fetchone()
    conn.close()
    if row and row[0] is not None:
        return row[0]
    return default


def set_setting(key: str, value: str):
    conn = _connect()
    c = conn.cursor()
    c.execute("INSERT INTO settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value", (key, value))
    conn.commit()
    conn.close()


def table_counts():
    conn = _connect()
    try:
        c = conn.cursor()
        counts = []
        for table in TABLES:
            c.execute(f"SELECT COUNT(1) FROM {table}")
            counts.append({"name": table, "count": c.fetchone()[0]})
        return counts
    finally:
        conn.close()
