# GPS helpers: distance, accuracy-weighted averaging and fix quality for report locations

import math
from typing import Iterable, List, NamedTuple

EARTH_RADIUS_M = 6371e3
TARGET_ACCURACY_M = 3
STABILITY_THRESHOLD_M = 5
MAX_READINGS = 10


class GpsReading(NamedTuple):
    latitude: float
    longitude: float
    accuracy: float


class GpsFix(NamedTuple):
    latitude: float
    longitude: float
    accuracy: float
    quality: str
    readings_used: int


def haversine_m(a: GpsReading, b: GpsReading) -> float:
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)
    h = (math.sin(d_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def average_position(readings: List[GpsReading]) -> GpsReading:
    """Accuracy-weighted mean; the best reading gets weight 1, worse ones proportionally less."""
    if not readings:
        raise ValueError("At least one GPS reading is required")
    best = min(r.accuracy for r in readings)
    if best <= 0:
        raise ValueError("GPS accuracy must be positive")
    total = lat = lng = 0.0
    for r in readings:
        w = best / r.accuracy
        total += w
        lat += r.latitude * w
        lng += r.longitude * w
    return GpsReading(lat / total, lng / total, best)


def assess_quality(accuracy: float, stable_readings: int) -> str:
    if accuracy <= 3 and stable_readings >= 3:
        return "excellent"
    if accuracy <= 8 and stable_readings >= 2:
        return "good"
    if accuracy <= 20:
        return "fair"
    return "poor"


def resolve_fix(samples: Iterable[GpsReading]) -> GpsFix:
    """Consume readings the way a watchPosition loop would and return the final fix.

    Stops early once the reading is within the target accuracy with three stable
    predecessors, after five stable readings in a row, or after MAX_READINGS.
    """
    used: List[GpsReading] = []
    stable = 0
    last = None
    for reading in samples:
        reading = GpsReading(*reading)
        used.append(reading)
        if last is not None:
            stable = stable + 1 if haversine_m(last, reading) <= STABILITY_THRESHOLD_M else 0
        last = reading
        if ((reading.accuracy <= TARGET_ACCURACY_M and stable >= 3)
                or stable >= 5 or len(used) >= MAX_READINGS):
            break
    if not used:
        raise ValueError("At least one GPS reading is required")
    final = average_position(used) if len(used) >= 3 else used[-1]
    return GpsFix(final.latitude, final.longitude, final.accuracy,
                  assess_quality(final.accuracy, stable), len(used))
