import math
from typing import List, Dict, Any

from models import Position, PickingPath, OptimizationSettings


def round_half_up(value: float, digits: int = 0) -> float:
    """Round to ``digits`` decimals with exact halves going up (12.5 -> 13, 0.25 -> 0.3)."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def euclidean(p1: Position, p2: Position) -> float:
    dx = p2.x - p1.x
    dy = p2.y - p1.y
    dz = p2.z - p1.z
    return (dx * dx + dy * dy + dz * dz) ** 0.5


def leg_lengths(positions: List[Position], origin: Position) -> List[float]:
    """Lengths of every leg of the closed tour origin -> positions... -> origin."""
    if not positions:
        return []
    stops = [origin] + list(positions) + [origin]
    return [euclidean(stops[i - 1], stops[i]) for i in range(1, len(stops))]


def tour_distance(positions: List[Position], origin: Position) -> float:
    return sum(leg_lengths(positions, origin))


def estimate_minutes(distance: float, num_picks: int, settings: OptimizationSettings) -> float:
    walking = distance / settings.walking_speed
    picking = (num_picks * settings.pick_seconds_per_item) / 60
    return walking + picking


def compute_kpis(paths: List[PickingPath], settings: OptimizationSettings) -> Dict[str, Any]:
    per_path_kpis = []
    total_distance = 0.0
    total_time = 0.0
    total_picks = 0
    max_distance = 0.0
    min_distance = float('inf')

    for idx, path in enumerate(paths):
        picks = len(path.ordered_location_codes)
        # recomputed at full precision; the stored totals are rounded
        distance = tour_distance(path.ordered_positions, settings.origin)
        time = estimate_minutes(distance, picks, settings) if picks else 0.0
        legs = leg_lengths(path.ordered_positions, settings.origin)

        total_distance += distance
        total_time += time
        total_picks += picks
        max_distance = max(max_distance, distance)
        min_distance = min(min_distance, distance)

        per_path_kpis.append({
            "Path": idx + 1,
            "Locations Visited": picks,
            "Distance Walked": distance,
            "Time (min)": time,
            "Longest Leg": max(legs) if legs else 0.0,
            "Distance per Pick": distance / picks if picks else 0.0,
        })

    n = len(paths)
    return {
        "Per Path": per_path_kpis,
        "Operation": {
            "Paths": n,
            "Total Distance Walked": total_distance,
            "Total Time (min)": total_time,
            "Average Path Distance": total_distance / n if n else 0.0,
            "Average Path Time (min)": total_time / n if n else 0.0,
            "Max Path Distance": max_distance,
            "Min Path Distance": min_distance if n else 0.0,
            "Total Locations Visited": total_picks,
        },
    }
