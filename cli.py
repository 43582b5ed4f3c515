#!/usr/bin/env python3
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import notam
from _config import Config
from _geo import records_to_geojson

logger = logging.getLogger(__name__)


def _normalize_notam_text(text: str) -> str:
    """Normalize bulletin text for parsing while preserving its content.

    Operations:
      - Strip UTF-8 BOM if present.
      - Normalize line endings to \n.
      - Trim trailing whitespace on each line.
    Blank lines are kept: they terminate NOTAM bodies.
    """
    if text.startswith("\ufeff"):
        text = text.lstrip("\ufeff")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return "\n".join(ln.rstrip() for ln in text.split("\n"))


def read_input(path: Optional[str]) -> str:
    """Bulletin text from ``path``, or stdin for ``-``/None. Exits 2 on failure."""
    source = path if path and path != "-" else None
    try:
        if source:
            data = Path(source).read_text(encoding="utf-8")
        else:
            data = sys.stdin.read()
    except (OSError, UnicodeDecodeError) as e:
        what = f"file '{source}'" if source else "stdin"
        print(f"Error: could not read {what}: {e}", file=sys.stderr)
        sys.exit(2)
    if not data.strip():
        print(f"Error: no NOTAM text in {source or 'stdin'}", file=sys.stderr)
        sys.exit(2)
    return data


def record_to_dict(r: notam.NotamRecord) -> dict:
    # Convert a record to a JSON-serializable dict
    def dt(x):
        return x.isoformat() if x is not None else None

    return {
        "id": r.id,
        "icao_codes": r.icao_codes,
        "is_polygon": r.is_polygon,
        "area": r.area,
        "start_date": dt(r.start_date),
        "end_date": dt(r.end_date),
        "permanent": r.permanent,
        "estimated": r.estimated,
        "coordinates": [
            {
                "original": c.original,
                "lat": c.lat,
                "lon": c.lon,
                "type": c.type.value,
                "radius": c.radius,
                "radius_unit": c.radius_unit,
            }
            for c in r.coordinates
        ],
        "full_content": r.full_content,
    }


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="notamgeo",
        description="Decode NOTAM bulletins into positions, circles and polygons.",
    )
    p.add_argument(
        "input",
        nargs="?",
        help="Path to a file with NOTAM text. Use '-' or omit to read from stdin.",
        default="-",
    )
    out = p.add_mutually_exclusive_group()
    out.add_argument(
        "--json",
        action="store_true",
        help="Print the decoded records as a JSON list (default).",
    )
    out.add_argument(
        "--geojson",
        action="store_true",
        help="Print a GeoJSON FeatureCollection (circles are buffered polygons).",
    )
    out.add_argument(
        "--stats",
        action="store_true",
        help="Print counts of areas, positions and Q) line only records.",
    )
    p.add_argument(
        "--show-all",
        action="store_true",
        help="Also output records located only by their Q) line centre.",
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-error messages.",
    )
    p.add_argument(
        "--log-level",
        default=Config.LOG_LEVEL,
        help="Logging level (default: %(default)s).",
    )
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level="ERROR" if args.quiet else args.log_level.upper(),
        format="%(asctime)s | %(levelname)-8s | %(name)-10s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        Config.validate()
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 2

    text = _normalize_notam_text(read_input(args.input))

    try:
        records = notam.parse_notams(text)
    except Exception as e:
        print(f"Unexpected error while parsing NOTAMs: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        logger.info("Decoded %d records", len(records))

    if args.stats:
        print(json.dumps(notam.summarize_records(records), indent=2))
        return 0
    if not args.show_all:
        records = [
            r
            for r in records
            if r.is_polygon or any(c.type is notam.CoordinateType.PSN for c in r.coordinates)
        ]
    if args.geojson:
        print(json.dumps(records_to_geojson(records), ensure_ascii=False, indent=2))
    else:
        print(
            json.dumps([record_to_dict(r) for r in records], ensure_ascii=False, indent=2)
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
