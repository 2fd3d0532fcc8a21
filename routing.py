import logging
from typing import List, Optional, Tuple

import numpy as np

from models import OptimizationSettings, PickingPath, Position
from storage import Location, build_location_index
from kpis import tour_distance, estimate_minutes, round_half_up

logger = logging.getLogger(__name__)

# Reversals must shorten the tour by more than this to count as an improvement.
TWO_OPT_EPSILON = 1e-9


def _resolve_targets(target_codes: List[str], locations: List[Location]) -> List[Tuple[int, Location]]:
    """(input index, location) for every resolvable code, first occurrence only."""
    index = build_location_index(locations)
    seen = set()
    resolved = []
    for i, code in enumerate(target_codes):
        loc = index.get(code)
        if loc is None or code in seen:
            continue
        seen.add(code)
        resolved.append((i, loc))
    dropped = len(target_codes) - len(resolved)
    if dropped:
        logger.debug("Picking path: %d of %d target codes unresolved or repeated", dropped, len(target_codes))
    return resolved


def _make_path(codes: List[str], positions: List[Position], indices: List[int],
               settings: OptimizationSettings) -> PickingPath:
    distance = tour_distance(positions, settings.origin)
    minutes = estimate_minutes(distance, len(codes), settings)
    return PickingPath(
        ordered_location_codes=list(codes),
        ordered_positions=list(positions),
        total_distance=round_half_up(distance, 1),
        estimated_minutes=round_half_up(minutes, 1),
        visit_order_indices=list(indices),
    )


class RoutingPolicy:
    def build_path(self, target_codes: List[str], locations: List[Location],
                   settings: OptimizationSettings) -> PickingPath:
        raise NotImplementedError


class NearestNeighborRouting(RoutingPolicy):
    def build_path(self, target_codes, locations, settings):
        resolved = _resolve_targets(target_codes, locations)
        if not resolved:
            return PickingPath()

        pts = np.array([loc.position.as_tuple() for _, loc in resolved], dtype=float)
        unvisited = np.ones(len(resolved), dtype=bool)
        current = np.array(settings.origin.as_tuple(), dtype=float)
        order = []
        for _ in range(len(resolved)):
            dists = np.sqrt(((pts - current) ** 2).sum(axis=1))
            dists[~unvisited] = np.inf
            # argmin keeps the first of equidistant candidates
            k = int(np.argmin(dists))
            unvisited[k] = False
            order.append(k)
            current = pts[k]

        codes = [resolved[k][1].code for k in order]
        positions = [resolved[k][1].position for k in order]
        indices = [resolved[k][0] for k in order]
        return _make_path(codes, positions, indices, settings)


def improve_two_opt(path: PickingPath, settings: OptimizationSettings,
                    max_passes: Optional[int] = None) -> PickingPath:
    """
    2-opt local search over the closed tour, origin pinned as the first node.

    Reverses the segment between two edges whenever that shortens the tour and
    repeats full passes until none helps (or ``max_passes`` is spent). The
    result is a local optimum and is never longer than ``path``.
    """
    n_picks = len(path.ordered_location_codes)
    if n_picks < 3:
        return path

    nodes = np.array([settings.origin.as_tuple()] + [p.as_tuple() for p in path.ordered_positions], dtype=float)
    n = len(nodes)
    dist = np.sqrt(((nodes[:, None, :] - nodes[None, :, :]) ** 2).sum(axis=2))
    tour = list(range(n))

    improved = True
    passes = 0
    changed = False
    while improved and (max_passes is None or passes < max_passes):
        improved = False
        passes += 1
        for i in range(n - 2):
            for j in range(i + 2, n):
                if i == 0 and j == n - 1:
                    continue  # both edges touch the origin
                a, b = tour[i], tour[i + 1]
                c, d = tour[j], tour[(j + 1) % n]
                delta = dist[a, c] + dist[b, d] - dist[a, b] - dist[c, d]
                if delta < -TWO_OPT_EPSILON:
                    tour[i + 1:j + 1] = reversed(tour[i + 1:j + 1])
                    improved = True
                    changed = True
    logger.debug("2-opt finished after %d passes (changed=%s)", passes, changed)
    if not changed:
        return path

    order = [k - 1 for k in tour[1:]]
    return _make_path(
        [path.ordered_location_codes[k] for k in order],
        [path.ordered_positions[k] for k in order],
        [path.visit_order_indices[k] for k in order],
        settings,
    )


class TwoOptRouting(NearestNeighborRouting):
    def __init__(self, max_passes: Optional[int] = None):
        self.max_passes = max_passes

    def build_path(self, target_codes, locations, settings):
        path = super().build_path(target_codes, locations, settings)
        return improve_two_opt(path, settings, max_passes=self.max_passes)


def calculate_picking_path(target_codes: List[str], locations: List[Location],
                           settings: OptimizationSettings = OptimizationSettings(),
                           two_opt: bool = False, max_passes: Optional[int] = None) -> PickingPath:
    policy = TwoOptRouting(max_passes) if two_opt else NearestNeighborRouting()
    return policy.build_path(target_codes, locations, settings)
