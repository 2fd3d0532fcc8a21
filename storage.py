import logging
import numbers
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Dict, Mapping, Optional, Union

from models import Position, LayoutCfg, DEFAULT_LAYOUT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructuredAddress:
    aisle: int = 0
    bay: int = 0
    level: int = 0


@dataclass(frozen=True)
class RawAddress:
    text: str


Address = Union[StructuredAddress, RawAddress]


@dataclass(frozen=True)
class Occupancy:
    product_code: str
    quantity: float = 0.0


@dataclass(frozen=True)
class Location:
    id: int
    address: StructuredAddress
    code: str
    raw_address: str = ""
    occupancy: Optional[Occupancy] = None
    layout: LayoutCfg = field(default=DEFAULT_LAYOUT, repr=False, compare=False)

    @property
    def position(self) -> Position:
        return self.layout.position_of(self.address)

    @property
    def level(self) -> int:
        return self.address.level

    @property
    def quantity(self) -> float:
        return self.occupancy.quantity if self.occupancy else 0.0

    @property
    def is_empty(self) -> bool:
        return self.occupancy is None or not self.occupancy.quantity


def _as_int(value) -> Optional[int]:
    """Return a non-negative int for numeric-looking input, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        if value != value or value < 0 or value == float("inf"):
            return None
        return int(value)
    try:
        text = str(value).strip()
        num = int(float(text)) if "." in text else int(text)
    except (ValueError, OverflowError):
        return None
    return num if num >= 0 else None


def _split_composite(text: Optional[str]) -> List[Optional[int]]:
    parts = str(text or "").split()
    if len(parts) < 3:
        return [None, None, None]
    return [_as_int(p) for p in parts[:3]]


def normalize_address(address_or_raw, raw: Optional[str] = None) -> StructuredAddress:
    """
    Resolve any address shape into a StructuredAddress.

    Accepts a StructuredAddress, a RawAddress, a composite string ("01 03 02")
    or a mapping with optional aisle/bay/level keys. Fields that are missing or
    non-numeric are taken from the composite string (``raw``, or the mapping's
    ``raw_address`` key); anything still unresolved becomes 0.
    """
    if isinstance(address_or_raw, StructuredAddress):
        return address_or_raw
    if isinstance(address_or_raw, RawAddress):
        address_or_raw = address_or_raw.text
    if isinstance(address_or_raw, str):
        aisle, bay, level = _split_composite(address_or_raw)
        return StructuredAddress(aisle or 0, bay or 0, level or 0)

    data = address_or_raw if isinstance(address_or_raw, Mapping) else {}
    aisle = _as_int(data.get("aisle"))
    bay = _as_int(data.get("bay"))
    level = _as_int(data.get("level"))
    if aisle is None or bay is None or level is None:
        composite = raw if raw is not None else data.get("raw_address")
        p_aisle, p_bay, p_level = _split_composite(composite)
        if aisle is None:
            aisle = p_aisle
        if bay is None:
            bay = p_bay
        if level is None:
            level = p_level
    return StructuredAddress(aisle or 0, bay or 0, level or 0)


def map_position(address_or_raw, layout: LayoutCfg = DEFAULT_LAYOUT) -> Position:
    return layout.position_of(normalize_address(address_or_raw))


def location_from_record(record: Mapping, index: int, layout: LayoutCfg = DEFAULT_LAYOUT) -> Location:
    """Build a Location from one flat row as handed over by a data-access layer."""
    raw_address = str(record.get("raw_address") or "").strip()
    address = normalize_address(record, raw=raw_address)
    if not address.bay:
        cell = _as_int(record.get("cell"))
        if cell:
            address = StructuredAddress(address.aisle, cell, address.level)

    code = record.get("location_code")
    if code is None or str(code).strip() in ("", "nan"):
        code = raw_address
    code = str(code).strip()

    try:
        quantity = float(record.get("quantity") or 0)
    except (TypeError, ValueError):
        quantity = 0.0
    if quantity != quantity:  # NaN from pandas
        quantity = 0.0
    product_code = record.get("product_code")
    occupancy = None
    if (product_code is not None and str(product_code).strip() not in ("", "nan")) or quantity:
        occupancy = Occupancy(product_code=str(product_code or "").strip(), quantity=quantity)

    loc_id = _as_int(record.get("id"))
    return Location(
        id=index if loc_id is None else loc_id,
        address=address,
        code=code,
        raw_address=raw_address,
        occupancy=occupancy,
        layout=layout,
    )


def parse_layout_text(text: str, layout: LayoutCfg = DEFAULT_LAYOUT) -> List[Location]:
    """Parse one "aisle bay level" triple per line; lines without three integers are skipped."""
    locations = []
    skipped = 0
    for idx, line in enumerate(text.strip().splitlines()):
        trimmed = line.strip()
        if not trimmed:
            continue
        parts = _split_composite(trimmed)
        if any(p is None for p in parts):
            skipped += 1
            continue
        locations.append(Location(
            id=idx,
            address=StructuredAddress(*parts),
            code=trimmed,
            raw_address=trimmed,
            layout=layout,
        ))
    if skipped:
        logger.debug("parse_layout_text skipped %d malformed lines", skipped)
    return locations


def gen_storage_locations(num_aisles: int, bays_per_aisle: int, levels: int,
                          layout: LayoutCfg = DEFAULT_LAYOUT) -> List[Location]:
    locations = []
    for aisle in range(1, num_aisles + 1):
        for bay in range(1, bays_per_aisle + 1):
            for level in range(1, levels + 1):
                code = f"{aisle:02d} {bay:02d} {level:02d}"
                locations.append(Location(
                    id=len(locations),
                    address=StructuredAddress(aisle, bay, level),
                    code=code,
                    raw_address=code,
                    layout=layout,
                ))
    return locations


def build_location_index(locations: List[Location]) -> Mapping[str, Location]:
    index: Dict[str, Location] = {}
    for loc in locations:
        index.setdefault(loc.code, loc)
    return MappingProxyType(index)


def layout_stats(locations: List[Location]) -> Dict[str, int]:
    """Size of a parsed layout: location count and the highest aisle, bay and level seen."""
    if not locations:
        return {"total_locations": 0, "max_aisle": 0, "max_bay": 0, "max_level": 0}
    return {
        "total_locations": len(locations),
        "max_aisle": max(l.address.aisle for l in locations),
        "max_bay": max(l.address.bay for l in locations),
        "max_level": max(l.address.level for l in locations),
    }
