import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import parsimonious
from parsimonious.exceptions import ParseError, VisitationError

from _coords import decode_qualifier_coordinate

logger = logging.getLogger(__name__)


# ============== Segmentation ==============

# SOFIA-Briefing (LFFF-A1234/25), autorouter (LFFF A1234/25, A1234/25) and
# ICAO "(A1234/25 NOTAMN" identifiers at the start of a line.
NOTAM_ID_RE = re.compile(
    r"(?:^|\n)[ \t]*\(?(?P<id>(?:[A-Z]{4}[ -])?[A-Z]\d+/\d+)(?:[ \t]*NOTAM[NRC]?(?![A-Z]))?"
)
BLANK_LINE_RE = re.compile(r"\n[ \t]*\n")


def split_notams(text: str) -> List[Tuple[str, str]]:
    """Split a bulletin into ``(notam_id, body)`` pairs.

    A body ends at the first blank line, the next identifier or the end of the
    text. Only the first occurrence of an id is kept.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    matches = list(NOTAM_ID_RE.finditer(text))
    notams: List[Tuple[str, str]] = []
    seen = set()
    for m, nxt in zip(matches, matches[1:] + [None]):
        notam_id = m.group("id")
        if notam_id in seen:
            logger.debug("Ignoring repeated NOTAM %s", notam_id)
            continue
        seen.add(notam_id)
        body = text[m.end() : nxt.start() if nxt else len(text)]
        blank = BLANK_LINE_RE.search(body)
        if blank:
            body = body[: blank.start()]
        notams.append((notam_id, body))
    return notams


# ============== Sections ==============

SECTION_LETTERS = "QABCDEFG"
SECTION_MARKER_RE = re.compile(rf"(?:^|(?<=\s))([{SECTION_LETTERS}])\)\s*")


def parse_sections(body: str) -> Dict[str, str]:
    """Split a NOTAM body into its lettered sections (Q, A, B, ... G).

    Only the first marker of each letter counts: the E) free text often holds
    enumerated sub-items such as ``A) ... B) ...`` that must stay in E).
    """
    accepted = []  # (letter, marker start, content start)
    for m in SECTION_MARKER_RE.finditer(body):
        letter = m.group(1)
        if any(letter == a[0] for a in accepted):
            continue
        accepted.append((letter, m.start(), m.end()))

    sections: Dict[str, str] = {}
    for cur, nxt in zip(accepted, accepted[1:] + [None]):
        letter, _, content_start = cur
        content_end = nxt[1] if nxt else len(body)
        sections[letter] = body[content_start:content_end].strip()
    return sections


# ============== Dates ==============


@dataclass
class NoticeDates:
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    permanent: bool = False
    estimated: bool = False


ISO_DATETIME_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})\s+(\d{2}):(\d{2})")
# Compact ICAO item B)/C): YYMMDDHHMM
ICAO_DATETIME_RE = re.compile(r"(?<!\d)(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(?!\d)")
REGIONAL_DATETIME_RE = re.compile(r"(\d{2})\s+(\d{2})\s+(\d{4})\s+(\d{2}):(\d{2})")
DU_RE = re.compile(r"DU:\s*(\d{2}\s+\d{2}\s+\d{4}\s+\d{2}:\d{2})")
AU_RE = re.compile(r"AU:[ \t]*([^\n]*)")
# "2603112359EST", "2026-03-11 23:59 EST"; not part of a longer word
EST_RE = re.compile(r"(?<![A-Z])EST\b")
PERM_RE = re.compile(r"^\s*PERM\b")


def _utc(year, month, day, hour, minute) -> Optional[datetime]:
    try:
        return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    except ValueError as e:
        logger.debug("Invalid NOTAM date %s-%s-%s %s:%s: %s", year, month, day, hour, minute, e)
        return None


def _parse_icao_datetime(text: str) -> Optional[datetime]:
    m = ISO_DATETIME_RE.search(text)
    if m:
        return _utc(*map(int, m.groups()))
    m = ICAO_DATETIME_RE.search(text)
    if m:
        yy, month, day, hour, minute = map(int, m.groups())
        year = 1900 + yy if yy > 80 else 2000 + yy  # interpret 2-digit year
        return _utc(year, month, day, hour, minute)
    return None


def _parse_regional_datetime(text: str) -> Optional[datetime]:
    m = REGIONAL_DATETIME_RE.search(text)
    if not m:
        return None
    day, month, year, hour, minute = map(int, m.groups())
    return _utc(year, month, day, hour, minute)


def _apply_end(dates: NoticeDates, text: str, parse) -> None:
    if PERM_RE.match(text):
        dates.permanent = True
        dates.end = None
        return
    dates.end = parse(text)
    if dates.end is not None and EST_RE.search(text):
        dates.estimated = True


def parse_notam_dates(sections: Dict[str, str], body: str) -> NoticeDates:
    """Derive the validity window of a NOTAM.

    ICAO items B)/C) are used when present; otherwise the regional
    ``DU: DD MM YYYY HH:MM`` / ``AU: ...`` line. Never raises: anything that
    does not parse is left empty.
    """
    dates = NoticeDates()
    if "B" in sections or "C" in sections:
        if "B" in sections:
            dates.start = _parse_icao_datetime(sections["B"])
        if "C" in sections:
            _apply_end(dates, sections["C"], _parse_icao_datetime)
        return dates

    du = DU_RE.search(body)
    if du:
        dates.start = _parse_regional_datetime(du.group(1))
    au = AU_RE.search(body)
    if au:
        _apply_end(dates, au.group(1), _parse_regional_datetime)
    return dates


# ============== Qualifier line ==============


class ParseQualifierLineError(Exception):
    """Raised when a Q) line cannot be turned into a QualifierLine."""

    def __init__(self, clause: str, message: str = "Malformed Q) line"):
        super().__init__(f"{message}: {clause}")
        self.clause = clause


@dataclass
class QualifierLine:
    fir: str
    code: str
    traffic: str
    purpose: str
    scope: str
    lower: Optional[int]
    upper: Optional[int]
    lat: float
    lon: float
    radius: Optional[int] = None
    area: str = ""  # raw coordinate field


grammar = parsimonious.Grammar(
    r"""
    # FIR / code / traffic / purpose / scope / lower/upper / coordinate [/ anything]
    qualifier = field "/" field "/" field "/" field "/" field "/" field "/" field "/" field rest
    field = ~r"[^/]*"
    rest = ~r".*"s
    """
)


class QualifierLineVisitor(parsimonious.NodeVisitor):
    grammar = grammar
    unwrapped_exceptions = (ParseQualifierLineError,)

    def visit_field(self, node, _):
        return node.text.strip()

    def visit_rest(self, node, _):
        return node.text

    @staticmethod
    def _limit(value: str) -> Optional[int]:
        return int(value) if value.isdigit() else None

    def visit_qualifier(self, node, visited_children):
        fields = visited_children[0:15:2]
        fir, code, traffic, purpose, scope, lower, upper, area = fields
        decoded = decode_qualifier_coordinate(area)
        if decoded is None:
            raise ParseQualifierLineError(node.text, "Undecodable Q) coordinate")
        lat, lon, radius = decoded
        return QualifierLine(
            fir=fir,
            code=code,
            traffic=traffic,
            purpose=purpose,
            scope=scope,
            lower=self._limit(lower),
            upper=self._limit(upper),
            lat=lat,
            lon=lon,
            radius=radius,
            area=area,
        )

    def generic_visit(self, node, visited_children):
        return visited_children or node


def parse_qualifier_line(text: str) -> Optional[QualifierLine]:
    """Parse the text of a Q) section, e.g.
    ``LFFF / QWULW / IV / BO / W / 000/014 / 4840N00305E005``.

    Returns None if there are fewer than 8 fields or the coordinate field
    does not decode.
    """
    try:
        return QualifierLineVisitor().parse(text.strip())
    except (ParseError, VisitationError, ParseQualifierLineError) as e:
        logger.debug("Unusable Q) line %r: %s", text, e)
        return None
