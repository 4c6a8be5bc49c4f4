import argparse
import csv
import os
import random
from datetime import datetime, timedelta

# Config
ROWS = 100
FILENAME = os.path.join(os.path.dirname(os.path.abspath(__file__)), "sample_data.csv")


def generate(filename=FILENAME, rows=ROWS, seed=None):
    """Write synthetic ESP32 readings. Soil values are raw analog (0-4095, higher = drier).

    The timestamp column records when each sample would have been taken; the
    simulator replays rows with server timestamps and ignores it.
    """
    rng = random.Random(seed)
    soil = rng.randint(1200, 2800)
    start_time = datetime.now()
    with open(filename, mode="w", newline="") as file:
        writer = csv.writer(file)
        writer.writerow(["timestamp", "temperature", "humidity", "soilMoisture", "pumpStatus"])

        for i in range(rows):
            ts = start_time + timedelta(minutes=5 * i)
            # Drift the soil reading so it crosses the default threshold now and then
            soil = max(0, min(4095, soil + rng.randint(-150, 150)))
            temperature = rng.uniform(20, 35)
            humidity = rng.uniform(40, 90)
            pump_status = 1 if soil > 2000 else 0

            writer.writerow([ts.strftime("%Y-%m-%dT%H:%M:%S"), round(temperature, 2), round(humidity, 2), soil, pump_status])
    return filename


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate sample sensor readings for the simulator")
    parser.add_argument("--rows", type=int, default=ROWS)
    parser.add_argument("--out", default=FILENAME)
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()
    generate(args.out, args.rows, args.seed)
    print(f"✅ Sample data generated in {args.out}")
