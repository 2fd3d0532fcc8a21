import logging
from bisect import bisect_right
from typing import List, Dict, Tuple

import pandas as pd

from models import ActivitySample, HeatmapSample
from kpis import round_half_up
from storage import Location, build_location_index

logger = logging.getLogger(__name__)

NEUTRAL_COLOR = "#1f2937"
MIN_VISIBLE_INTENSITY = 0.01

# blue -> cyan -> green -> yellow -> orange -> red
COLOR_STOPS: List[Tuple[float, str]] = [
    (0.0, "#1e3a8a"),
    (0.2, "#3b82f6"),
    (0.4, "#06b6d4"),
    (0.6, "#10b981"),
    (0.8, "#eab308"),
    (0.9, "#f97316"),
    (1.0, "#dc2626"),
]


def normalize_heatmap(samples: List[ActivitySample], locations: List[Location]) -> List[HeatmapSample]:
    """
    Join raw pickup counts with known locations and scale them to a 0..1 intensity.

    Intensity is relative to the largest count over all samples, mapped or not.
    Samples with a zero count or a location code missing from ``locations`` are
    then dropped, so when the busiest sample is unmapped no emitted intensity
    reaches 1.0.
    """
    if not samples or not locations:
        return []

    max_count = max(s.pickup_count for s in samples)
    if max_count == 0:
        return []

    index = build_location_index(locations)
    resolved = [(s, index[s.location_code]) for s in samples
                if s.pickup_count > 0 and s.location_code in index]
    result = [
        HeatmapSample(
            location_code=s.location_code,
            position=loc.position,
            intensity=s.pickup_count / max_count,
            pickup_count=s.pickup_count,
        )
        for s, loc in resolved
    ]
    logger.debug("Heatmap: %d locations mapped out of %d samples", len(result), len(samples))
    return result


def _hex_to_rgb(color: str) -> Tuple[int, int, int]:
    color = color.lstrip("#")
    return int(color[0:2], 16), int(color[2:4], 16), int(color[4:6], 16)


def _rgb_to_hex(rgb: Tuple[int, int, int]) -> str:
    return "#" + "".join(f"{c:02x}" for c in rgb)


_STOP_BOUNDS = [b for b, _ in COLOR_STOPS]
_STOP_RGB = [_hex_to_rgb(c) for _, c in COLOR_STOPS]


def heatmap_rgb(intensity: float) -> Tuple[int, int, int]:
    t = max(0.0, min(1.0, float(intensity)))
    if t < MIN_VISIBLE_INTENSITY:
        return _hex_to_rgb(NEUTRAL_COLOR)

    # band k spans _STOP_BOUNDS[k]..[k+1]; 1.0 falls in the last band
    k = min(bisect_right(_STOP_BOUNDS, t) - 1, len(_STOP_BOUNDS) - 2)
    start, end = _STOP_BOUNDS[k], _STOP_BOUNDS[k + 1]
    factor = (t - start) / (end - start)
    c1, c2 = _STOP_RGB[k], _STOP_RGB[k + 1]
    return tuple(int(round(a + (b - a) * factor)) for a, b in zip(c1, c2))


def heatmap_color(intensity: float) -> str:
    return _rgb_to_hex(heatmap_rgb(intensity))


def heatmap_stats(samples: List[HeatmapSample]) -> Dict[str, float]:
    if not samples:
        return {
            "total_pickups": 0,
            "average_pickups": 0.0,
            "max_pickups": 0,
            "active_locations": 0,
            "inactive_locations": 0,
        }
    total = sum(s.pickup_count for s in samples)
    active = sum(1 for s in samples if s.pickup_count > 0)
    average = total / active if active else 0.0
    return {
        "total_pickups": total,
        "average_pickups": round_half_up(average, 1),
        "max_pickups": max(s.pickup_count for s in samples),
        "active_locations": active,
        "inactive_locations": len(samples) - active,
    }


def filter_by_intensity(samples: List[HeatmapSample], low: float, high: float) -> List[HeatmapSample]:
    return [s for s in samples if low <= s.intensity <= high]


def top_locations(samples: List[HeatmapSample], n: int) -> List[HeatmapSample]:
    return sorted(samples, key=lambda s: -s.pickup_count)[:max(0, n)]


def heatmap_frame(samples: List[HeatmapSample]) -> pd.DataFrame:
    """Flatten heatmap samples for export; one row per sample with its overlay color."""
    cols = ["location_code", "x", "y", "z", "pickup_count", "intensity", "color"]
    rows = [{
        "location_code": s.location_code,
        "x": s.position.x,
        "y": s.position.y,
        "z": s.position.z,
        "pickup_count": s.pickup_count,
        "intensity": s.intensity,
        "color": heatmap_color(s.intensity),
    } for s in samples]
    return pd.DataFrame(rows, columns=cols)
