# main.py
"""
Run the slotting engine over a warehouse snapshot.

Usage:
  python main.py --demo --num-aisles 8 --bays 12 --levels 4 --seed 42 --two-opt
  python main.py --locations locations.csv --activity activity.csv --targets "01 02 01" "03 05 02" --out-dir run_out
"""
from __future__ import annotations
import argparse
import logging
import os
import random
from typing import List

import numpy as np

from models import ActivitySample, OptimizationSettings, Position
from storage import Location, Occupancy, gen_storage_locations, layout_stats
from heatmap import normalize_heatmap, heatmap_stats, top_locations, heatmap_frame
from slotting import RelocationSlotting
from routing import NearestNeighborRouting, TwoOptRouting
from kpis import compute_kpis
from data_io import read_locations, read_activity, build_move_plan_csv, build_path_csv

logger = logging.getLogger("main")


def sample_popularity(num_locations: int, alpha: float = 1.07) -> np.ndarray:
    """Zipf-like popularity weights (lower alpha -> heavier head)."""
    ranks = np.arange(1, num_locations + 1)
    weights = 1 / np.power(ranks, alpha)
    return weights / weights.sum()


def gen_demo_snapshot(num_aisles: int, bays: int, levels: int, occupancy: float, num_picks: int,
                      rng: np.random.Generator):
    """Synthetic grid with random stock and popularity-driven pickup counts."""
    grid = gen_storage_locations(num_aisles, bays, levels)
    locations: List[Location] = []
    for i, loc in enumerate(grid):
        if rng.random() < occupancy:
            qty = int(np.clip(rng.poisson(8), 1, 30))
            loc = Location(id=loc.id, address=loc.address, code=loc.code, raw_address=loc.raw_address,
                           occupancy=Occupancy(product_code=f"SKU{100000 + i}", quantity=qty))
        locations.append(loc)

    stocked = [loc for loc in locations if not loc.is_empty]
    if not stocked:
        return locations, []
    shuffled = list(rng.permutation(len(stocked)))
    probs = sample_popularity(len(stocked))
    picks = rng.choice(len(stocked), size=num_picks, p=probs)
    counts = np.bincount(picks, minlength=len(stocked))
    samples = [ActivitySample(stocked[shuffled[k]].code, int(counts[k])) for k in range(len(stocked))]
    return locations, samples


def main(argv=None):
    parser = argparse.ArgumentParser(description="Warehouse slotting optimization: heatmap, relocations, picking path.")
    parser.add_argument("--locations", type=str, help="CSV of locations (see data_io.py for the schema)")
    parser.add_argument("--activity", type=str, help="CSV of pickup counts per location_code")
    parser.add_argument("--demo", action="store_true", help="Generate a synthetic warehouse instead of reading CSVs")
    parser.add_argument("--num-aisles", type=int, default=8, help="Demo: number of aisles")
    parser.add_argument("--bays", type=int, default=12, help="Demo: bays per aisle")
    parser.add_argument("--levels", type=int, default=4, help="Demo: levels per bay")
    parser.add_argument("--occupancy", type=float, default=0.7, help="Demo: fraction of stocked slots")
    parser.add_argument("--num-picks", type=int, default=3000, help="Demo: pickups to sample")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--targets", nargs="*", default=None, help="Location codes to route; demo picks random ones")
    parser.add_argument("--num-targets", type=int, default=10, help="Demo: number of random route targets")
    parser.add_argument("--origin", type=float, nargs=3, default=(0.0, 0.0, 0.0), metavar=("X", "Y", "Z"))
    parser.add_argument("--walking-speed", type=float, default=80.0, help="Units per minute")
    parser.add_argument("--pick-seconds", type=float, default=30.0, help="Seconds per picked location")
    parser.add_argument("--max-distance", type=float, default=200.0, help="Distance at which the distance score reaches 0")
    parser.add_argument("--two-opt", action="store_true", help="Refine the picking path with 2-opt")
    parser.add_argument("--max-passes", type=int, default=None, help="Cap on 2-opt passes")
    parser.add_argument("--top", type=int, default=10, help="Rows to print per table")
    parser.add_argument("--out-dir", type=str, default=None, help="Write heatmap/move plan/path CSVs here")
    parser.add_argument("--log-level", type=str, default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        settings = OptimizationSettings(
            origin=Position(*args.origin),
            walking_speed=args.walking_speed,
            pick_seconds_per_item=args.pick_seconds,
            max_distance=args.max_distance,
        )
    except ValueError as e:
        parser.error(str(e))

    rng = np.random.default_rng(args.seed)
    if args.demo:
        locations, samples = gen_demo_snapshot(args.num_aisles, args.bays, args.levels,
                                               args.occupancy, args.num_picks, rng)
    else:
        if not args.locations or not args.activity:
            parser.error("--locations and --activity are required unless --demo is given")
        locations = read_locations(args.locations)
        samples = read_activity(args.activity)
    logger.info("Loaded %d locations and %d activity samples", len(locations), len(samples))
    print("Layout:", layout_stats(locations))

    # --- Heatmap ---
    heat = normalize_heatmap(samples, locations)
    stats = heatmap_stats(heat)
    print("Heatmap:", stats)
    for s in top_locations(heat, args.top):
        print(f"  {s.location_code:>12}  picks={s.pickup_count:<6} intensity={s.intensity:.2f}")

    # --- Relocation suggestions ---
    suggestions = RelocationSlotting(settings).suggest(locations, heat)
    print(f"\nSuggestions: {len(suggestions)}")
    for s in suggestions[:args.top]:
        print(f"  {s.current_location_code} -> {s.suggested_location_code}  "
              f"+{s.improvement_score_pct:.0f}%  ({s.reason.value})")

    # --- Picking path ---
    targets = args.targets
    if targets is None:
        stocked = [loc.code for loc in locations if not loc.is_empty]
        targets = random.Random(args.seed).sample(stocked, min(args.num_targets, len(stocked)))
    routing_policy = TwoOptRouting(args.max_passes) if args.two_opt else NearestNeighborRouting()
    path = routing_policy.build_path(targets, locations, settings)
    kpis = compute_kpis([path], settings)
    print(f"\nPicking path ({len(path)} stops): {' | '.join(path.ordered_location_codes)}")
    print(f"  distance={path.total_distance}  minutes={path.estimated_minutes}")
    print("  KPIs:", kpis["Operation"])

    if args.out_dir:
        os.makedirs(args.out_dir, exist_ok=True)
        heat_path = os.path.join(args.out_dir, "heatmap.csv")
        plan_path = os.path.join(args.out_dir, "move_plan.csv")
        route_path = os.path.join(args.out_dir, "picking_path.csv")
        heatmap_frame(heat).to_csv(heat_path, index=False)
        with open(plan_path, "w") as f:
            f.write(build_move_plan_csv(suggestions))
        with open(route_path, "w") as f:
            f.write(build_path_csv(path))
        print(f"\nWrote: {heat_path}\n       : {plan_path}\n       : {route_path}")


if __name__ == "__main__":
    main()
