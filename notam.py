import logging
import re
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from _coords import Coordinate, CoordinateType
from _extract import detect_triggers, extract_groups, is_polygon_group, qualifier_code
from _geo import normalize_polygon, shoelace_area
from _parser import parse_notam_dates, parse_sections, split_notams

logger = logging.getLogger(__name__)

ICAO_CODES_RE = re.compile(r"^[A-Z]{4}(?:\s+[A-Z]{4})*\b")


@dataclass
class NotamRecord:
    # Core identification
    id: str
    full_content: str
    coordinates: List[Coordinate] = field(default_factory=list)
    icao_codes: List[str] = field(default_factory=list)
    is_polygon: bool = False

    # Validity
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None  # None with permanent=True means PERM
    permanent: bool = False
    estimated: bool = False

    @property
    def area(self) -> float:
        """Planar area in square degrees, 0 for points and circles."""
        return shoelace_area(self.coordinates) if self.is_polygon else 0.0


def clean_notam_content(content: str) -> str:
    """Trim every line and drop the empty ones."""
    lines = (ln.strip() for ln in content.split("\n"))
    return "\n".join(ln for ln in lines if ln)


def parse_icao_codes(a_text: Optional[str]) -> List[str]:
    """Locations of item A), e.g. 'LFPG LFPO' -> ['LFPG', 'LFPO']."""
    if not a_text:
        return []
    m = ICAO_CODES_RE.match(a_text.strip())
    return m.group(0).split() if m else []


def parse_notam(notam_id: str, body: str) -> List[NotamRecord]:
    """Records of a single NOTAM body; empty if it has no usable position."""
    sections = parse_sections(body)
    dates = parse_notam_dates(sections, body)
    e_text = sections.get("E")
    q_text = sections.get("Q")
    triggers = detect_triggers(e_text or "", qualifier_code(q_text))
    groups = extract_groups(e_text, q_text, triggers)
    if not groups:
        logger.debug("No coordinates in NOTAM %s, skipped", notam_id)
        return []

    shared = dict(
        id=notam_id,
        full_content=clean_notam_content(body),
        icao_codes=parse_icao_codes(sections.get("A")),
        start_date=dates.start,
        end_date=dates.end,
        permanent=dates.permanent,
        estimated=dates.estimated,
    )
    records: List[NotamRecord] = []
    for group in groups:
        if is_polygon_group(group, e_text, triggers):
            records.append(
                NotamRecord(coordinates=normalize_polygon(group), is_polygon=True, **shared)
            )
        else:
            # independent points, one record each
            for coord in group:
                records.append(NotamRecord(coordinates=[coord], **shared))
    return records


def _parse_pair(pair: Tuple[str, str]) -> List[NotamRecord]:
    return parse_notam(*pair)


def parse_notams(text: str, executor: Optional[Executor] = None) -> List[NotamRecord]:
    """Decode a bulletin of concatenated NOTAMs into geolocated records.

    Segmentation (first occurrence of an id wins) runs sequentially; the
    per-NOTAM work may be spread over ``executor``. The result keeps the order
    in which the NOTAMs appear in ``text``. Never raises on malformed input.
    """
    pairs = split_notams(text)
    if executor is not None:
        per_notam = executor.map(_parse_pair, pairs)
    else:
        per_notam = map(_parse_pair, pairs)
    records = [r for recs in per_notam for r in recs]
    logger.debug("Parsed %d NOTAMs into %d records", len(pairs), len(records))
    return records


parse_bulletin = parse_notams


def summarize_records(records: List[NotamRecord]) -> Dict[str, int]:
    """Counts of records by kind: areas, positions and Q) line only."""
    areas = sum(1 for r in records if r.is_polygon)
    positions = sum(
        1
        for r in records
        if not r.is_polygon and any(c.type is CoordinateType.PSN for c in r.coordinates)
    )
    no_position = sum(
        1
        for r in records
        if not r.is_polygon
        and all(c.type is CoordinateType.QUALIFIER_LINE for c in r.coordinates)
    )
    return {
        "all": len(records),
        "areas": areas,
        "positions": positions,
        "no_position": no_position,
    }
