"""Coordinate extraction from the E) free text of a NOTAM.

The E) item is scanned left to right for coordinate-shaped tokens. Each token
is either a standalone position (``PSN ...``), discarded as prose preceding
an area definition, or fed to a small state machine that groups consecutive
coordinates into polygon rings and detects ring closure.
"""

import logging
import re
from enum import Enum
from typing import Iterable, List, Optional, Set, Tuple

from _coords import Coordinate, CoordinateType, decode_dms, extract_radius
from _parser import parse_qualifier_line

logger = logging.getLogger(__name__)

CoordinateGroup = List[Coordinate]


# ============== Token patterns ==============

_LAT = r"\d{4,7}(?:\.\d+)?[NS]"
_LON = r"\d{5,8}(?:\.\d+)?[EW]"
# "484024N 0030441E" (any precision, separated) or "161514N0611540W"
COORD_PATTERN = rf"(?<![\d.])(?:{_LAT}\s+{_LON}|\d{{6}}[NS]\d{{7}}[EW])(?![A-Z0-9])"
COORD_RE = re.compile(COORD_PATTERN)
CHAIN_NEXT_RE = re.compile(rf"\s*[-–]\s*\(?\s*{COORD_PATTERN}")
DASH_CHAIN_RE = re.compile(rf"{COORD_PATTERN}(?:\s*[-–]\s*{COORD_PATTERN}){{3,}}")
PAREN_COORD_RE = re.compile(rf"\(\s*{COORD_PATTERN}\s*\)")
Q_CODE_RE = re.compile(r"\bQ[A-Z]{4}\b")

PSN_LOOKBEHIND = 10
AREA_LOOKAHEAD = 40


# ============== Triggers ==============

# Everything that makes an E) text worth scanning, in one table.
TRIGGERS: Tuple[Tuple[str, str], ...] = (
    ("psn", r"PSN"),
    ("centre", r"\bCENT(?:RE|ER)[A-Z]*"),
    ("obstruction", r"\bOBST"),
    (
        "area",
        r"LATERAL\s+LIMITS|LIMITES\s+LATERALES|GRANICE\s+POZIOME|WI\s+COORD"
        r"|(?<!RESTRICTED IN )\bAREA",
    ),
)
TRIGGER_RE = re.compile("|".join(f"(?P<{name}>{rx})" for name, rx in TRIGGERS))
AREA_KEYWORD_RE = re.compile(dict(TRIGGERS)["area"])


def qualifier_code(q_text: Optional[str]) -> Optional[str]:
    """The NOTAM code (``QOBCE``, ``QRTCA``...) found in a Q) line."""
    if not q_text:
        return None
    m = Q_CODE_RE.search(q_text)
    return m.group(0) if m else None


def detect_triggers(e_text: str, q_code: Optional[str] = None) -> Set[str]:
    """Names of the trigger families present in ``e_text``.

    ``obstruction`` also fires for an obstacle Q-code (``QOB..``).
    """
    found = {m.lastgroup for m in TRIGGER_RE.finditer(e_text or "")}
    if q_code and q_code.upper().startswith("QOB"):
        found.add("obstruction")
    return found


def extraction_start(e_text: str) -> int:
    """Index where an area definition starts, 0 if there is none.

    That is the end of the first area keyword followed closely by a
    coordinate; coordinates before it are prose, not polygon vertices.
    """
    for m in AREA_KEYWORD_RE.finditer(e_text):
        nxt = COORD_RE.search(e_text, m.end())
        if nxt and nxt.start() - m.end() <= AREA_LOOKAHEAD:
            return m.end()
    return 0


# ============== Scan state machine ==============


class ScanState(Enum):
    IDLE = "IDLE"
    ACCUMULATING = "ACCUMULATING"
    JUST_CLOSED = "JUST_CLOSED"


def _fine_key(c: Coordinate) -> Tuple[float, float]:
    # ~1 m
    return round(c.lat, 6), round(c.lon, 6)


def _coarse_key(c: Coordinate) -> Tuple[float, float]:
    # ~111 m
    return round(c.lat, 3), round(c.lon, 3)


class GroupScanner:
    """Groups consecutive coordinates into rings.

    Events:
      * a new coordinate is appended to the working sequence;
      * a coordinate already in the working sequence closes it: the sequence
        is flushed as a group and its members are remembered (coarsely) as
        closed;
      * a coordinate matching a closed member is a restatement of an area
        already captured and is dropped.

    A coordinate arriving while IDLE or JUST_CLOSED opens a new working
    sequence; only an ACCUMULATING sequence can be closed by a repeat.
    """

    def __init__(self):
        self.state = ScanState.IDLE
        self._working: CoordinateGroup = []
        self._working_keys: Set[Tuple[float, float]] = set()
        self._closed: Set[Tuple[float, float]] = set()

    def feed(self, coord: Coordinate) -> Optional[CoordinateGroup]:
        """Feed one coordinate; returns a group when it closes a ring."""
        fine = _fine_key(coord)
        if self.state is ScanState.ACCUMULATING and fine in self._working_keys:
            return self._close()
        if _coarse_key(coord) in self._closed:
            logger.debug("Dropping restated coordinate %s", coord.original)
            return None
        if self.state is not ScanState.ACCUMULATING:
            if self.state is ScanState.JUST_CLOSED:
                logger.debug("Opening a new group at %s", coord.original)
            self._working = []
            self._working_keys = set()
        self._working.append(coord)
        self._working_keys.add(fine)
        self.state = ScanState.ACCUMULATING
        return None

    def _close(self) -> CoordinateGroup:
        group = self._working
        self._closed.update(_coarse_key(c) for c in group)
        self._working = []
        self._working_keys = set()
        self.state = ScanState.JUST_CLOSED
        return group

    def finish(self) -> Optional[CoordinateGroup]:
        """Flush whatever is left in the working sequence."""
        group = self._working or None
        self._working = []
        self._working_keys = set()
        self.state = ScanState.IDLE
        return group


# ============== Extraction ==============


def _is_standalone(e_text: str, start: int, end: int) -> bool:
    if "PSN" not in e_text[max(0, start - PSN_LOOKBEHIND) : start]:
        return False
    return not CHAIN_NEXT_RE.match(e_text, end)


def _coordinate_at(e_text: str, m: re.Match) -> Optional[Coordinate]:
    decoded = decode_dms(m.group(0))
    if decoded is None:
        logger.debug("Skipping undecodable coordinate %r", m.group(0))
        return None
    lat, lon = decoded
    radius = extract_radius(e_text, m.start(), m.end())
    return Coordinate(
        original=" ".join(m.group(0).split()),
        lat=lat,
        lon=lon,
        type=CoordinateType.PSN,
        radius=radius[0] if radius else None,
        radius_unit=radius[1] if radius else None,
    )


def scan_coordinates(e_text: str, triggers: Iterable[str]) -> List[CoordinateGroup]:
    """Scan an E) text into coordinate groups, in order of emission."""
    start_index = extraction_start(e_text) if "area" in triggers else 0
    scanner = GroupScanner()
    groups: List[CoordinateGroup] = []
    for m in COORD_RE.finditer(e_text):
        coord = _coordinate_at(e_text, m)
        if coord is None:
            continue
        if _is_standalone(e_text, m.start(), m.end()):
            groups.append([coord])
            continue
        if m.start() < start_index:
            continue
        closed = scanner.feed(coord)
        if closed:
            groups.append(closed)
    leftover = scanner.finish()
    if leftover:
        groups.append(leftover)
    return groups


def qualifier_group(q_text: str) -> Optional[CoordinateGroup]:
    q = parse_qualifier_line(q_text)
    if q is None:
        return None
    return [
        Coordinate(
            original=q.area,
            lat=q.lat,
            lon=q.lon,
            type=CoordinateType.QUALIFIER_LINE,
            radius=float(q.radius) if q.radius is not None else None,
            radius_unit="NM" if q.radius is not None else None,
        )
    ]


def extract_groups(
    e_text: Optional[str],
    q_text: Optional[str],
    triggers: Optional[Set[str]] = None,
) -> List[CoordinateGroup]:
    """All coordinate groups of one NOTAM.

    E) is only scanned when it carries a trigger keyword; with nothing found
    there the Q) line centre is used instead.
    """
    groups: List[CoordinateGroup] = []
    if e_text:
        if triggers is None:
            triggers = detect_triggers(e_text, qualifier_code(q_text))
        if triggers:
            groups = scan_coordinates(e_text, triggers)
    if not groups and q_text:
        fallback = qualifier_group(q_text)
        if fallback:
            groups = [fallback]
    return groups


# ============== Classification ==============


def is_polygon_group(
    group: CoordinateGroup, e_text: Optional[str], triggers: Iterable[str]
) -> bool:
    """Whether a group is a polygon boundary rather than independent points."""
    if len(group) < 3:
        return False
    if all(c.radius is not None for c in group):
        # every point carries its own radius: circle centres, even in an
        # area NOTAM or a dash-chained list
        return False
    if "area" in triggers:
        return True
    if e_text and (PAREN_COORD_RE.search(e_text) or DASH_CHAIN_RE.search(e_text)):
        return True
    first, last = group[0], group[-1]
    return abs(first.lat - last.lat) <= 0.001 and abs(first.lon - last.lon) <= 0.001
