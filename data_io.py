import pandas as pd
from typing import List

from models import ActivitySample, LayoutCfg, DEFAULT_LAYOUT, Suggestion, PickingPath
from storage import Location, location_from_record

# Expected schemas (flexible but documented)
# locations.csv: location_code:str, raw_address:str, aisle:int, bay:int, level:int,
#                [cell:int], [product_code:str], [quantity:float], [id:int]
#   at least one of location_code / raw_address must be present
# activity.csv: location_code:str, pickup_count:int


def read_locations(path: str, layout: LayoutCfg = DEFAULT_LAYOUT) -> List[Location]:
    df = pd.read_csv(path, dtype={"location_code": str, "raw_address": str, "product_code": str})
    return locations_from_frame(df, layout)


def locations_from_frame(df: pd.DataFrame, layout: LayoutCfg = DEFAULT_LAYOUT) -> List[Location]:
    if not {"location_code", "raw_address"} & set(df.columns):
        raise ValueError("locations need a location_code or raw_address column")
    return [location_from_record(row, idx, layout) for idx, row in enumerate(df.to_dict("records"))]


def read_activity(path: str) -> List[ActivitySample]:
    df = pd.read_csv(path, dtype={"location_code": str})
    return activity_from_frame(df)


def activity_from_frame(df: pd.DataFrame) -> List[ActivitySample]:
    needed = {"location_code", "pickup_count"}
    missing = needed - set(df.columns)
    if missing:
        raise ValueError(f"activity missing columns: {missing}")
    df = df.dropna(subset=["location_code"])
    counts = pd.to_numeric(df["pickup_count"], errors="coerce").fillna(0).astype(int)
    negative = df.loc[counts < 0, "location_code"].tolist()
    if negative:
        raise ValueError(f"negative pickup_count for: {negative[:5]}")
    return [ActivitySample(location_code=str(code).strip(), pickup_count=int(c))
            for code, c in zip(df["location_code"], counts)]


def suggestions_frame(suggestions: List[Suggestion]) -> pd.DataFrame:
    cols = [
        "from_location", "to_location", "improvement_pct", "reason",
        "frequency_score", "distance_score", "size_or_level_score",
    ]
    rows = [{
        "from_location": s.current_location_code,
        "to_location": s.suggested_location_code,
        "improvement_pct": s.improvement_score_pct,
        "reason": s.reason.value,
        "frequency_score": s.factors.frequency_score,
        "distance_score": s.factors.distance_score,
        "size_or_level_score": s.factors.size_or_level_score,
    } for s in suggestions]
    return pd.DataFrame(rows, columns=cols)


def build_move_plan_csv(suggestions: List[Suggestion], top_n: int = 1000) -> str:
    plan = suggestions_frame(suggestions)
    plan = plan.sort_values(["improvement_pct", "frequency_score"], ascending=[False, False], kind="stable")
    return plan.head(int(top_n)).to_csv(index=False)


def path_frame(path: PickingPath) -> pd.DataFrame:
    cols = ["step", "location_code", "input_index", "x", "y", "z"]
    rows = [{
        "step": step + 1,
        "location_code": code,
        "input_index": idx,
        "x": pos.x,
        "y": pos.y,
        "z": pos.z,
    } for step, (code, pos, idx) in enumerate(
        zip(path.ordered_location_codes, path.ordered_positions, path.visit_order_indices))]
    return pd.DataFrame(rows, columns=cols)


def build_path_csv(path: PickingPath) -> str:
    return path_frame(path).to_csv(index=False)
