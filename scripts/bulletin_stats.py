#!/usr/bin/env python3
"""Statistics and a sanity audit for decoded NOTAM bulletins.

For each bulletin file, prints how many records were decoded as areas,
positions and Q) line only notices. With --audit, every decoded position is
also checked against the Q) line of its NOTAM: a position further than the
Q) radius plus a margin from the Q) centre usually means a decoding bug.

NOTAMs in ``AUDIT_EXCLUSIONS`` are known to fail the audit because of errors
in the NOTAM itself or formats that cannot be disambiguated; they are skipped.

Usage:
    python scripts/bulletin_stats.py bulletin.txt [more.txt ...] [--audit] [--margin 20]
"""
import argparse
import json
import logging
import math
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from _coords import Coordinate, CoordinateType  # noqa: E402
from _parser import parse_qualifier_line, parse_sections  # noqa: E402
from notam import NotamRecord, parse_notams, summarize_records  # noqa: E402

logger = logging.getLogger(__name__)

# Q) radius meaning "whole FIR", too coarse to audit against
UNBOUNDED_Q_RADIUS = 999

AUDIT_EXCLUSIONS = {
    # 6-digit longitude ambiguity (DDMMSS vs truncated DDDMMSS)
    "LGGG-A0292/26",  # 025500E: decoded as 2.9E, meant 25.8E
    "LFFA-P4354/25",  # 021600E: decoded as 2.3E, meant 21.6E (Reunion)
    "LEAN-A7783/25",  # 035600W: decoded as 3.9W, meant 35.9W (Canary Islands)
    # typos in the NOTAM coordinates
    "EHAM-A0321/26",  # invalid seconds (070.0)
    "KSLC-A0386/26",  # latitude about 1 degree off
    "EPWW-D8111/25",  # extra digit in latitude: 5114050.57N
    "LFFA-P0049/26",  # extra '0' in longitude: 00663101.4E
    # wrong Q) centre or radius
    "UUUU-U1184/23",
    "OIII-A0289/26",
    "EPWW-D7994/25",
    "EPWW-N7994/25",
    "EHAM-A0324/26",
    "KZLA-A4180/25",
    "LIIC-M0021/25",
    "LIIC-M2022/25",
    "LIIC-M4598/24",
    "LIIC-M4599/24",
    "LIIA-W5239/25",
    "LIIA-W0074/26",
    "VECC-A2279/25",
    "EDDZ-D0239/26",
    "EDDZ-D0240/26",
    # arc centre decoded as a position
    "RJAA-P0490/26",
    "RJAA-P0491/26",
    "RJAA-P0495/26",
    # base of operations far from the survey area
    "VIDP-A0122/26",
}


def flat_distance_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Equirectangular distance in NM, scaled by the cosine of ``lat1``."""
    dlat = (lat2 - lat1) * 60
    dlon = (lon2 - lon1) * 60 * math.cos(math.radians(lat1))
    return math.hypot(dlat, dlon)


def audit_records(
    records: Iterable[NotamRecord], margin_nm: float = 20.0
) -> List[Tuple[str, Coordinate, float, float]]:
    """Positions too far from their Q) centre.

    Returns (id, coordinate, distance_nm, limit_nm) for every offender.
    """
    offenders = []
    for r in records:
        if r.is_polygon or r.id in AUDIT_EXCLUSIONS:
            continue
        if not any(c.type is CoordinateType.PSN for c in r.coordinates):
            continue
        q_text = parse_sections(r.full_content).get("Q")
        q = parse_qualifier_line(q_text) if q_text else None
        if q is None or q.radius is None or q.radius == UNBOUNDED_Q_RADIUS:
            continue
        for c in r.coordinates:
            if (q.lat < 0) != (c.lat < 0):
                # opposite hemispheres: a Q) line error, not a decoding one
                continue
            dist = flat_distance_nm(q.lat, q.lon, c.lat, c.lon)
            limit = q.radius + margin_nm
            if dist > limit:
                offenders.append((r.id, c, dist, limit))
    return offenders


def bulletin_stats(path: Path, audit: bool = False, margin_nm: float = 20.0) -> Dict:
    text = path.read_text(encoding="utf-8")
    records = parse_notams(text)
    stats: Dict = {"file": path.name, **summarize_records(records)}
    if audit:
        stats["audit_failures"] = [
            {
                "id": notam_id,
                "coordinate": c.original,
                "distance_nm": round(dist, 1),
                "limit_nm": limit,
            }
            for notam_id, c, dist, limit in audit_records(records, margin_nm)
        ]
    return stats


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Decode statistics of NOTAM bulletins")
    p.add_argument("inputs", nargs="+", help="Bulletin text files")
    p.add_argument(
        "--audit",
        action="store_true",
        help="Check decoded positions against their Q) line centre",
    )
    p.add_argument(
        "--margin",
        type=float,
        default=20.0,
        help="NM allowed beyond the Q) radius (default: %(default)s)",
    )
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
    failed = False
    for name in args.inputs:
        path = Path(name)
        if not path.exists():
            print(f"Error: file not found: {path}", file=sys.stderr)
            return 2
        stats = bulletin_stats(path, audit=args.audit, margin_nm=args.margin)
        failed = failed or bool(stats.get("audit_failures"))
        print(json.dumps(stats, ensure_ascii=False, indent=2))
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
