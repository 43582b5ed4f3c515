import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class CoordinateType(Enum):
    """Where a coordinate came from."""

    PSN = "PSN"  # decoded from the E) free text
    QUALIFIER_LINE = "QUALIFIER_LINE"  # coarse centre of the Q) line


RADIUS_UNITS = ("NM", "KM", "M")


@dataclass(frozen=True)
class Coordinate:
    original: str
    lat: float
    lon: float
    type: CoordinateType = CoordinateType.PSN
    radius: Optional[float] = None
    radius_unit: Optional[str] = None  # NM / KM / M

    @property
    def radius_nm(self) -> Optional[float]:
        if self.radius is None or self.radius_unit is None:
            return None
        return radius_to_nm(self.radius, self.radius_unit)


# ============== Decoders ==============

# "484024N 0030441E", "4908325N 0004328W", "483923.17N 0035848.18E"
DMS_SPACED_RE = re.compile(
    r"(\d{6,7}(?:\.\d+)?)\s*([NS])?\s+(\d{7,8}(?:\.\d+)?)\s*([EW])?", re.I
)
# "161514N0611540W"
DMS_COMPACT_RE = re.compile(r"(\d{6,7}(?:\.\d+)?)([NS])?(\d{7,8}(?:\.\d+)?)([EW])?", re.I)
# Shorter tokens are only trusted with both hemisphere letters: "4840N 00305E", "480627.4N 072113.7E"
DMS_SHORT_RE = re.compile(
    r"(\d{4,7}(?:\.\d+)?)\s*([NS])\s*(\d{5,8}(?:\.\d+)?)\s*([EW])", re.I
)

QUALIFIER_COORD_RE = re.compile(r"^(\d{4})([NS])(\d{5})([EW])(\d{3})?$", re.I)


def _integer_part(token: str) -> str:
    return token.split(".", 1)[0]


def _normalize_longitude(lon: str, lat: str) -> str:
    """Bring a longitude token to a three-degree-digit layout.

    A bare 7-digit longitude is ambiguous: either DDDMMSS or a DDMMSSs
    token missing its leading zero. Leading ``0`` means the tenths digit was
    dropped; otherwise the latitude decides. A 7-digit latitude without a
    decimal point carries tenths of a second, and the longitude is read the
    same way (``1420211`` -> ``01420211``).
    """
    whole = _integer_part(lon)
    if len(whole) == 7 and "." not in lon:
        lat_has_tenths = len(lat) == 7 and "." not in lat
        if lon[0] == "0" or not lat_has_tenths:
            return lon + "0"
        return "0" + lon
    if len(whole) == 6:
        # DDMMSS with two degree digits; 025500E reads as 2.9E, not 25.8E
        return "0" + lon
    return lon


def _positional_to_deg(token: str, deg_digits: int) -> float:
    whole, _, frac = token.partition(".")
    deg = int(whole[:deg_digits])
    minutes_digits = whole[deg_digits : deg_digits + 2]
    rest = whole[deg_digits + 2 :]
    if not rest:
        # decimal point (if any) follows the minutes: DDMM.mm
        minutes = float(f"{minutes_digits or '0'}.{frac or '0'}")
        return deg + minutes / 60.0
    minutes = int(minutes_digits)
    if frac:
        seconds = float(f"{rest}.{frac}")
    elif len(rest) > 2:
        seconds = float(f"{rest[:2]}.{rest[2:]}")
    else:
        seconds = float(rest)
    return deg + minutes / 60.0 + seconds / 3600.0


def decode_dms(text: str) -> Optional[Tuple[float, float]]:
    """Decode a DMS-like coordinate pair into ``(lat, lon)`` decimal degrees.

    Examples:
      '484024N 0030441E'  -> (48.6733, 3.0781)
      '161514N0611540W'   -> (16.2539, -61.2611)
      '4908325N 0004328W' -> (49.1424, -0.7244)
    Returns None when nothing coordinate-shaped is found.
    """
    text = text.strip()
    m = DMS_SPACED_RE.search(text) or DMS_COMPACT_RE.search(text) or DMS_SHORT_RE.search(text)
    if not m:
        return None
    lat_tok, lat_hemi, lon_tok, lon_hemi = m.groups()
    lat_hemi = (lat_hemi or "N").upper()
    lon_hemi = (lon_hemi or "E").upper()

    lon_tok = _normalize_longitude(lon_tok, lat_tok)
    lat = _positional_to_deg(lat_tok, 2)
    lon = _positional_to_deg(lon_tok, 3)
    if lat_hemi == "S":
        lat = -lat
    if lon_hemi == "W":
        lon = -lon
    if abs(lat) > 90 or abs(lon) > 180:
        logger.debug("Out of range coordinate %r -> (%s, %s)", text, lat, lon)
        return None
    return lat, lon


def decode_qualifier_coordinate(
    text: str,
) -> Optional[Tuple[float, float, Optional[int]]]:
    """Decode a Q) line area field like ``4840N00305E005``.

    Degrees and minutes only; the optional trailing three digits are the radius
    in NM. Returns ``(lat, lon, radius)`` or None.
    """
    m = QUALIFIER_COORD_RE.match(text.strip())
    if not m:
        return None
    lat_s, lat_hemi, lon_s, lon_hemi, radius = m.groups()
    lat = int(lat_s[:2]) + int(lat_s[2:4]) / 60.0
    lon = int(lon_s[:3]) + int(lon_s[3:5]) / 60.0
    if lat_hemi.upper() == "S":
        lat = -lat
    if lon_hemi.upper() == "W":
        lon = -lon
    return lat, lon, int(radius) if radius else None


# ============== Radius ==============

RADIUS_WINDOW = 50

_NUMBER = r"(\d+(?:[.,]\d+)?)"
_UNIT = r"(NM|KM|M)(?![A-Z])"
RADIUS_AFTER_RE = re.compile(rf"^\s*RADIUS\s+(?:OF\s+)?{_NUMBER}\s*{_UNIT}", re.I)
RADIUS_BEFORE_RES = (
    re.compile(rf"{_NUMBER}\s*{_UNIT}\s+RADIUS", re.I),
    re.compile(rf"RADIUS\s+(?:OF\s+)?{_NUMBER}\s*{_UNIT}", re.I),
)


def _radius_value(number: str, unit: str) -> Tuple[float, str]:
    return float(number.replace(",", ".")), unit.upper()


def extract_radius(text: str, start: int, end: int) -> Optional[Tuple[float, str]]:
    """Find a radius belonging to the coordinate at ``text[start:end]``.

    'PSN 514600N 0052622E RADIUS 1.5NM'                -> (1.5, 'NM')
    'CIRCLE RADIUS 5,6KM CENTRED ON 482406N 0170711E'  -> (5.6, 'KM')
    'WI 1000M RADIUS OF 414056N 0044930W'              -> (1000.0, 'M')
    """
    after = text[end : end + RADIUS_WINDOW]
    m = RADIUS_AFTER_RE.match(after)
    if m:
        return _radius_value(*m.groups())

    before = text[max(0, start - RADIUS_WINDOW) : start]
    nearest = None
    for rx in RADIUS_BEFORE_RES:
        for m in rx.finditer(before):
            if nearest is None or m.end() > nearest.end():
                nearest = m
    if nearest:
        return _radius_value(*nearest.groups())
    return None


def radius_to_nm(radius: float, unit: str) -> float:
    """Convert a radius to nautical miles. 1 NM = 1.852 KM = 1852 M."""
    unit = unit.upper()
    if unit == "NM":
        return radius
    if unit == "KM":
        return radius / 1.852
    if unit == "M":
        return radius / 1852.0
    raise ValueError(f"Unknown radius unit: {unit}")
