import math
import numbers
from dataclasses import dataclass, fields
from enum import Enum
from typing import Tuple, Mapping, Any


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


ORIGIN = Position(0.0, 0.0, 0.0)


@dataclass(frozen=True)
class LayoutCfg:
    aisle_gap: float = 3.0
    bay_gap: float = 1.1
    level_gap: float = 1.1

    def position_of(self, address) -> Position:
        return Position(
            x=address.aisle * self.aisle_gap,
            y=address.level * self.level_gap,
            z=address.bay * self.bay_gap,
        )


DEFAULT_LAYOUT = LayoutCfg()


@dataclass(frozen=True)
class ActivitySample:
    location_code: str
    pickup_count: int

    def __post_init__(self):
        if self.pickup_count < 0:
            raise ValueError(f"pickup_count must be >= 0 for {self.location_code!r}, got {self.pickup_count}")


@dataclass(frozen=True)
class HeatmapSample:
    location_code: str
    position: Position
    intensity: float
    pickup_count: int


def _require_finite(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value!r}")


@dataclass(frozen=True)
class OptimizationSettings:
    origin: Position = ORIGIN
    walking_speed: float = 80.0  # units per minute
    pick_seconds_per_item: float = 30.0
    max_distance: float = 200.0
    level_scores: Tuple[float, float, float] = (1.0, 0.8, 0.6)

    def __post_init__(self):
        if not isinstance(self.origin, Position):
            raise ValueError(f"origin must be a Position, got {type(self.origin).__name__}")
        for name in ("walking_speed", "pick_seconds_per_item", "max_distance"):
            _require_finite(name, getattr(self, name))
        for coord in self.origin.as_tuple():
            _require_finite("origin", coord)
        if isinstance(self.level_scores, (str, bytes)) or not hasattr(self.level_scores, "__len__"):
            raise ValueError(f"level_scores must be a sequence of three numbers, got {self.level_scores!r}")
        for s in self.level_scores:
            _require_finite("level_scores", s)
        if self.walking_speed <= 0:
            raise ValueError(f"walking_speed must be > 0, got {self.walking_speed}")
        if self.pick_seconds_per_item < 0:
            raise ValueError(f"pick_seconds_per_item must be >= 0, got {self.pick_seconds_per_item}")
        if self.max_distance <= 0:
            raise ValueError(f"max_distance must be > 0, got {self.max_distance}")
        if len(self.level_scores) != 3 or any(not 0 <= s <= 1 for s in self.level_scores):
            raise ValueError(f"level_scores must be three values in [0, 1], got {self.level_scores}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OptimizationSettings":
        """Build settings from a plain mapping (config file, CLI, request body).

        ``origin`` may be a Position, an ``{x, y, z}`` mapping or an (x, y, z) sequence.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown settings keys: {sorted(unknown)}")
        kwargs = dict(data)
        try:
            if "origin" in kwargs and not isinstance(kwargs["origin"], Position):
                origin = kwargs["origin"]
                if isinstance(origin, Mapping):
                    kwargs["origin"] = Position(**{k: float(v) for k, v in origin.items()})
                else:
                    x, y, z = (float(v) for v in origin)
                    kwargs["origin"] = Position(x, y, z)
            for key in ("walking_speed", "pick_seconds_per_item", "max_distance"):
                if key in kwargs:
                    kwargs[key] = float(kwargs[key])
            if "level_scores" in kwargs:
                kwargs["level_scores"] = tuple(float(s) for s in kwargs["level_scores"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"malformed settings: {e}") from e
        return cls(**kwargs)


class RelocationReason(str, Enum):
    CLOSER_TO_SHIPPING = "closer to shipping"
    MORE_ACCESSIBLE_LEVEL = "more accessible level"
    FAVORABLE_FOR_PICKING = "more favorable for frequent picking"
    FLOW_OPTIMIZATION = "flow optimization"


@dataclass(frozen=True)
class SuggestionFactors:
    frequency_score: float
    distance_score: float
    # Raw occupancy quantity of the current slot, not a normalized fraction.
    size_or_level_score: float


@dataclass(frozen=True)
class Suggestion:
    current_location_code: str
    suggested_location_code: str
    improvement_score_pct: float
    reason: RelocationReason
    factors: SuggestionFactors


@dataclass(frozen=True)
class PickingPath:
    ordered_location_codes: Tuple[str, ...] = ()
    ordered_positions: Tuple[Position, ...] = ()
    total_distance: float = 0.0
    estimated_minutes: float = 0.0
    visit_order_indices: Tuple[int, ...] = ()

    def __post_init__(self):
        for name in ("ordered_location_codes", "ordered_positions", "visit_order_indices"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def __len__(self):
        return len(self.ordered_location_codes)
