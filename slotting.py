import logging
from typing import List, Dict, Callable, Tuple, NamedTuple

from models import (
    OptimizationSettings,
    HeatmapSample,
    Suggestion,
    SuggestionFactors,
    RelocationReason,
)
from storage import Location
from kpis import euclidean, round_half_up

logger = logging.getLogger(__name__)

FREQUENCY_WEIGHT = 0.5
DISTANCE_WEIGHT = 0.3
LEVEL_WEIGHT = 0.2

CANDIDATE_FRACTION = 0.5  # of the max pickup count
IMPROVEMENT_RATIO = 1.15  # target must beat current score by 15%


def distance_from_origin(location: Location, settings: OptimizationSettings) -> float:
    return euclidean(location.position, settings.origin)


def distance_score(location: Location, settings: OptimizationSettings) -> float:
    return max(0.0, 1.0 - distance_from_origin(location, settings) / settings.max_distance)


def level_score(level: int, settings: OptimizationSettings) -> float:
    ground, second, upper = settings.level_scores
    if level == 1:
        return ground
    if level == 2:
        return second
    return upper


def location_score(location: Location, pickup_frequency: float, max_frequency: float,
                   settings: OptimizationSettings) -> float:
    """
    Fitness of ``location`` for an item picked ``pickup_frequency`` times.

    Weighted blend of normalized frequency, closeness to the origin and level
    accessibility. Always in [0, 1].
    """
    if max_frequency > 0:
        frequency = min(1.0, max(0.0, pickup_frequency / max_frequency))
    else:
        frequency = 0.0
    return (FREQUENCY_WEIGHT * frequency
            + DISTANCE_WEIGHT * distance_score(location, settings)
            + LEVEL_WEIGHT * level_score(location.level, settings))


class MoveContext(NamedTuple):
    current: Location
    target: Location
    current_distance: float
    target_distance: float


# Evaluated top-down; the first matching predicate names the reason.
REASON_RULES: List[Tuple[Callable[[MoveContext], bool], RelocationReason]] = [
    (lambda m: m.target_distance < m.current_distance * 0.7, RelocationReason.CLOSER_TO_SHIPPING),
    (lambda m: m.target.level < m.current.level, RelocationReason.MORE_ACCESSIBLE_LEVEL),
    (lambda m: m.target_distance < m.current_distance, RelocationReason.FAVORABLE_FOR_PICKING),
]


def relocation_reason(move: MoveContext) -> RelocationReason:
    for predicate, reason in REASON_RULES:
        if predicate(move):
            return reason
    return RelocationReason.FLOW_OPTIMIZATION


class SlottingPolicy:
    def suggest(self, locations: List[Location], heatmap: List[HeatmapSample]) -> List[Suggestion]:
        raise NotImplementedError


class RelocationSlotting(SlottingPolicy):
    """Moves high-frequency items into clearly better-scoring empty slots."""

    def __init__(self, settings: OptimizationSettings = OptimizationSettings()):
        self.settings = settings

    def suggest(self, locations, heatmap):
        settings = self.settings
        frequency_by_code: Dict[str, int] = {s.location_code: s.pickup_count for s in heatmap}
        max_frequency = max(frequency_by_code.values(), default=0)
        if max_frequency <= 0:
            return []

        candidates = [loc for loc in locations
                      if frequency_by_code.get(loc.code, 0) >= max_frequency * CANDIDATE_FRACTION]
        empties = [loc for loc in locations if loc.is_empty]

        suggestions = []
        for current in candidates:
            freq = frequency_by_code[current.code]
            current_score = location_score(current, freq, max_frequency, settings)

            best, best_score = None, None
            for target in empties:
                if target.id == current.id:
                    continue
                score = location_score(target, freq, max_frequency, settings)
                if score <= current_score * IMPROVEMENT_RATIO:
                    continue
                if best_score is None or score > best_score:
                    best, best_score = target, score
            if best is None:
                continue

            if current_score > 0:
                improvement = round_half_up(100 * (best_score - current_score) / current_score)
            else:
                improvement = 0
            current_distance = distance_from_origin(current, settings)
            move = MoveContext(
                current=current,
                target=best,
                current_distance=current_distance,
                target_distance=distance_from_origin(best, settings),
            )
            suggestions.append(Suggestion(
                current_location_code=current.code,
                suggested_location_code=best.code,
                improvement_score_pct=float(improvement),
                reason=relocation_reason(move),
                factors=SuggestionFactors(
                    frequency_score=freq / max_frequency,
                    distance_score=1 - current_distance / settings.max_distance,
                    size_or_level_score=current.quantity,
                ),
            ))

        suggestions.sort(key=lambda s: -s.improvement_score_pct)
        logger.info("Generated %d relocation suggestions from %d candidates", len(suggestions), len(candidates))
        return suggestions


def generate_suggestions(locations: List[Location], heatmap: List[HeatmapSample],
                         settings: OptimizationSettings = OptimizationSettings()) -> List[Suggestion]:
    return RelocationSlotting(settings).suggest(locations, heatmap)
