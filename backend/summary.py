import datetime

import pandas as pd

from database import utc_timestamp

RANGES = {
    "24h": datetime.timedelta(hours=24),
    "7d": datetime.timedelta(days=7),
    "30d": datetime.timedelta(days=30),
}


def since_for_range(range_key: str, now=None):
    """Storage-form lower bound for a range key; None means no bound."""
    if range_key == "all":
        return None
    now = now or datetime.datetime.now(datetime.timezone.utc)
    delta = RANGES.get(range_key, RANGES["24h"])
    return utc_timestamp(now - delta)


def summarize_readings(rows, minutes_per_sample: float):
    """Aggregate stats for the dashboard cards (averages and pump-on time).

    Pump-on time assumes every sample with pumpStatus 1 stands for one
    sampling period of `minutes_per_sample` minutes.
    """
    df = pd.DataFrame(rows, columns=["temperature", "humidity", "soilMoisture", "pumpStatus"])
    if df.empty:
        return {
            "count": 0,
            "avgTemperature": 0,
            "avgHumidity": 0,
            "avgSoilMoisture": 0,
            "soilMoisture": {"min": None, "max": None},
            "pumpOnHours": 0,
        }
    pump_on = int((df["pumpStatus"] == 1).sum())
    return {
        "count": int(len(df)),
        "avgTemperature": round(float(df["temperature"].mean()), 1),
        "avgHumidity": round(float(df["humidity"].mean()), 1),
        "avgSoilMoisture": round(float(df["soilMoisture"].mean()), 1),
        "soilMoisture": {
            "min": float(df["soilMoisture"].min()),
            "max": float(df["soilMoisture"].max()),
        },
        "pumpOnHours": round(pump_on * minutes_per_sample / 60, 1),
    }
