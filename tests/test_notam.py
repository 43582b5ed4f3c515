from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

import pytest

from _coords import CoordinateType
from notam import (
    NotamRecord,
    clean_notam_content,
    parse_bulletin,
    parse_icao_codes,
    parse_notam,
    parse_notams,
    summarize_records,
)

DATA_DIR = Path(__file__).resolve().parent / "data"


@pytest.fixture(scope="module")
def bulletin() -> str:
    return (DATA_DIR / "sample_bulletin.txt").read_text(encoding="utf-8")


@pytest.fixture(scope="module")
def records(bulletin):
    return parse_notams(bulletin)


def by_id(records, notam_id):
    return [r for r in records if r.id == notam_id]


def latlon(c):
    return pytest.approx((c.lat, c.lon), abs=1e-4)


# ---------- helpers ----------


def test_parse_icao_codes():
    assert parse_icao_codes("LFPG LFPO") == ["LFPG", "LFPO"]
    assert parse_icao_codes(" EGLL ") == ["EGLL"]
    assert parse_icao_codes("LFPG RWY 09") == ["LFPG"]
    assert parse_icao_codes("12AB") == []
    assert parse_icao_codes(None) == []


def test_clean_notam_content():
    assert clean_notam_content("\n  A) LFPG  \n\n E) RWY CLSD\n") == "A) LFPG\nE) RWY CLSD"


# ---------- single NOTAMs ----------


def test_parse_notam_position():
    body = (
        "\nDU: 20 01 2025 07:32 AU: 30 04 2026 19:02\nA) LFFF\n"
        "Q) LFFF / QOBCE / IV / M / AE / 000/002 / 4840N00305E001\n"
        "E) OBST CRANE PSN 484024N 0030441E RDL 031/5.4NM ARP LFAI"
    )
    [r] = parse_notam("LFFA-W2942/24", body)
    assert isinstance(r, NotamRecord)
    assert r.id == "LFFA-W2942/24"
    assert not r.is_polygon
    assert r.icao_codes == ["LFFF"]
    [c] = r.coordinates
    assert latlon(c) == (48.6733, 3.0781)
    assert c.type is CoordinateType.PSN
    assert c.radius is None
    assert r.start_date == datetime(2025, 1, 20, 7, 32, tzinfo=timezone.utc)
    assert r.end_date == datetime(2026, 4, 30, 19, 2, tzinfo=timezone.utc)
    assert r.area == 0.0
    assert r.full_content.startswith("DU: 20 01 2025")


def test_parse_notam_without_position():
    body = "\nQ) LFFF/QMRLC/IV/NBO/A/000/999/XXXX\nA) LFPG\nE) RWY 09L/27R CLSD"
    assert parse_notam("LFFF-A0001/26", body) == []


def test_parse_notam_open_group_without_area_is_points():
    body = "\nA) LFFF\nE) OBST CENTRED ON 500000N 0050000E, 500100N 0050100E, 500200N 0050200E"
    recs = parse_notam("LFFA-W0001/26", body)
    assert len(recs) == 3
    assert not any(r.is_polygon for r in recs)
    assert all(len(r.coordinates) == 1 for r in recs)


def test_parse_notam_restated_area_is_dropped():
    body = (
        "\nE) AREA: 500000N 0050000E - 500000N 0060000E - 510000N 0060000E - "
        "500000N 0050000E (500000.2N 0050000.1E)"
    )
    [r] = parse_notam("EGTT-H0002/26", body)
    assert r.is_polygon
    assert len(r.coordinates) == 3


# ---------- bulletin ----------


def test_bulletin_ids_in_order(records):
    ids = []
    for r in records:
        if r.id not in ids:
            ids.append(r.id)
    assert ids == [
        "LFFA-W2942/24",
        "TTPP-A1652/25",
        "LOWW-A0089/26",
        "EHAA-A0456/26",
        "LEAN-R0225/26",
        "LGGG-A0134/26",
        "EGTT-H0101/26",
        "KZAK-A0001/26",
        "UUUU-A0007/26",
        "VABB-A0191/26",
    ]


def test_bulletin_duplicate_id_keeps_first(records):
    [r] = by_id(records, "LFFA-W2942/24")
    assert latlon(r.coordinates[0]) == (48.6733, 3.0781)


def test_bulletin_compact_coordinate_and_estimated_end(records):
    [r] = by_id(records, "TTPP-A1652/25")
    assert latlon(r.coordinates[0]) == (16.2539, -61.2611)
    assert r.icao_codes == ["TTPP"]
    assert r.start_date == datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)
    assert r.end_date == datetime(2025, 12, 31, 23, 59, tzinfo=timezone.utc)
    assert r.estimated
    assert not r.permanent


def test_bulletin_seven_digit_coordinates_and_perm(records):
    [r] = by_id(records, "LOWW-A0089/26")
    assert latlon(r.coordinates[0]) == (46.6469, 14.3392)
    assert r.permanent
    assert r.end_date is None


def test_bulletin_position_with_radius(records):
    [r] = by_id(records, "EHAA-A0456/26")
    [c] = r.coordinates
    assert latlon(c) == (51.7667, 5.4394)
    assert (c.radius, c.radius_unit) == (1.0, "NM")


def test_bulletin_qualifier_line_fallback(records):
    [r] = by_id(records, "LEAN-R0225/26")
    [c] = r.coordinates
    assert c.type is CoordinateType.QUALIFIER_LINE
    assert latlon(c) == (41.6667, -4.8167)
    assert (c.radius, c.radius_unit) == (5.0, "NM")


def test_bulletin_closed_polygon(records):
    [r] = by_id(records, "LGGG-A0134/26")
    assert r.is_polygon
    assert len(r.coordinates) == 8
    assert latlon(r.coordinates[0]) == (38.8333, 19.25)
    assert r.area > 0


def test_bulletin_bow_tie_is_repaired(records):
    [r] = by_id(records, "EGTT-H0101/26")
    assert r.is_polygon
    assert [(c.lat, c.lon) for c in r.coordinates] == [
        (50.0, 5.0),
        (50.0, 6.0),
        (51.0, 6.0),
        (51.0, 5.0),
    ]
    assert r.area == pytest.approx(1.0)


def test_bulletin_antimeridian_polygon(records):
    [r] = by_id(records, "KZAK-A0001/26")
    lons = [c.lon for c in r.coordinates]
    assert lons == [178.0, 182.0, 182.0, 178.0]
    assert all(abs(b - a) <= 180 for a, b in zip(lons, lons[1:]))


def test_bulletin_area_with_circle_centres(records):
    recs = by_id(records, "UUUU-A0007/26")
    assert [r.is_polygon for r in recs] == [True, False, False, False]
    assert len(recs[0].coordinates) == 4
    assert latlon(recs[0].coordinates[0]) == (64.5, 55.0)
    for r in recs[1:]:
        [c] = r.coordinates
        assert (c.radius, c.radius_unit) == (1.0, "KM")
    assert latlon(recs[1].coordinates[0]) == (64.8333, 55.1667)


def test_bulletin_position_then_area(records):
    psn, area = by_id(records, "VABB-A0191/26")
    assert not psn.is_polygon
    assert latlon(psn.coordinates[0]) == (22.0025, 78.9175)
    assert area.is_polygon
    assert len(area.coordinates) == 4
    assert latlon(area.coordinates[0]) == (23.7519, 79.7553)


def test_bulletin_notam_without_position_is_dropped(records):
    assert by_id(records, "LFFF-A0001/26") == []


def test_summarize_records(records):
    assert summarize_records(records) == {
        "all": 14,
        "areas": 5,
        "positions": 8,
        "no_position": 1,
    }


def test_summarize_records_empty():
    assert summarize_records([]) == {"all": 0, "areas": 0, "positions": 0, "no_position": 0}


def test_parse_notams_with_executor_keeps_order(bulletin, records):
    with ThreadPoolExecutor(max_workers=4) as executor:
        parallel = parse_notams(bulletin, executor=executor)
    assert parallel == records


def test_parse_bulletin_alias(bulletin, records):
    assert parse_bulletin(bulletin) == records


@pytest.mark.parametrize("text", ["", "garbage\n\n\n", "A1234/25\n", "(((\nE) PSN"])
def test_parse_notams_never_raises(text):
    assert isinstance(parse_notams(text), list)
