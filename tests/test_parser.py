from datetime import datetime, timezone

import pytest

from _parser import (
    ParseQualifierLineError,
    QualifierLineVisitor,
    parse_notam_dates,
    parse_qualifier_line,
    parse_sections,
    split_notams,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


# ---------- segmentation ----------


def test_split_notams_formats():
    text = (
        "LFFA-W2942/24\nA) LFFF\nE) FIRST\n\n"
        "LFFF A1234/25\nA) LFFF\nE) SECOND\n\n"
        "(B0042/26 NOTAMN\nA) EGLL\nE) THIRD\n"
    )
    ids = [notam_id for notam_id, _ in split_notams(text)]
    assert ids == ["LFFA-W2942/24", "LFFF A1234/25", "B0042/26"]


def test_split_notams_body_ends_at_blank_line():
    text = "LFFA-W2942/24\r\nA) LFFF\r\nE) CRANE\r\n\r\nPage 2 of 7\r\n"
    [(notam_id, body)] = split_notams(text)
    assert notam_id == "LFFA-W2942/24"
    assert "CRANE" in body
    assert "Page" not in body
    assert "\r" not in body


def test_split_notams_body_ends_at_next_id():
    text = "LFFA-W2942/24\nE) ONE\nLFFA-W2943/24\nE) TWO\n"
    pairs = split_notams(text)
    assert [p[0] for p in pairs] == ["LFFA-W2942/24", "LFFA-W2943/24"]
    assert "TWO" not in pairs[0][1]


def test_split_notams_first_occurrence_wins():
    text = "LFFA-W2942/24\nE) ORIGINAL\n\nLFFA-W2942/24\nE) REPEATED\n"
    [(_, body)] = split_notams(text)
    assert "ORIGINAL" in body


def test_split_notams_ignores_ids_inside_lines():
    text = "LFFA-W2942/24\nE) REPLACES LFFA-W2941/24\n"
    assert [p[0] for p in split_notams(text)] == ["LFFA-W2942/24"]


def test_split_notams_empty():
    assert split_notams("") == []
    assert split_notams("no notams here") == []


# ---------- sections ----------


def test_parse_sections_first_marker_wins():
    body = (
        "Q) LFFF/QMRLC/IV/NBO/A/000/999/4843N00223E005\n"
        "A) LFPG B) 2601010000 C) 2601020000\n"
        "E) TWY CLSD: A) BTN W1 AND W2 B) BTN W3 AND W4"
    )
    s = parse_sections(body)
    assert s["Q"] == "LFFF/QMRLC/IV/NBO/A/000/999/4843N00223E005"
    assert s["A"] == "LFPG"
    assert s["B"] == "2601010000"
    assert s["C"] == "2601020000"
    assert s["E"] == "TWY CLSD: A) BTN W1 AND W2 B) BTN W3 AND W4"
    assert "D" not in s


def test_parse_sections_requires_whitespace_before_marker():
    s = parse_sections("E) RWY09C) CLSD F) GND G) 500FT AMSL")
    assert s == {"E": "RWY09C) CLSD", "F": "GND", "G": "500FT AMSL"}


def test_parse_sections_none():
    assert parse_sections("PLAIN TEXT") == {}


# ---------- dates ----------


def _dates(body):
    return parse_notam_dates(parse_sections(body), body)


def test_dates_iso():
    d = _dates("A) LFPG B) 2026-02-24 00:00 C) 2026-03-11 23:59\nE) X")
    assert d.start == utc(2026, 2, 24, 0, 0)
    assert d.end == utc(2026, 3, 11, 23, 59)
    assert not d.permanent and not d.estimated


def test_dates_icao_compact():
    d = _dates("A) LFPG B) 2602240000 C) 2603112359 EST\nE) X")
    assert d.start == utc(2026, 2, 24, 0, 0)
    assert d.end == utc(2026, 3, 11, 23, 59)
    assert d.estimated


@pytest.mark.parametrize(
    "body",
    [
        "A) LFPG B) 2602240000 C) 2603112359EST\nE) X",
        "A) LFPG B) 2026-02-24 00:00 C) 2026-03-11 23:59EST\nE) X",
    ],
)
def test_dates_estimated_suffix_without_space(body):
    d = _dates(body)
    assert d.end == utc(2026, 3, 11, 23, 59)
    assert d.estimated


def test_dates_two_digit_year_before_2000():
    d = _dates("B) 9912311200 C) PERM")
    assert d.start == utc(1999, 12, 31, 12, 0)


def test_dates_regional():
    d = _dates("DU: 20 01 2025 07:32 AU: 30 04 2026 19:02\nA) LFFF\nE) X")
    assert d.start == utc(2025, 1, 20, 7, 32)
    assert d.end == utc(2026, 4, 30, 19, 2)


def test_dates_permanent():
    d = _dates("DU: 20 01 2025 07:32 AU: PERM\nE) X")
    assert d.start == utc(2025, 1, 20, 7, 32)
    assert d.permanent
    assert d.end is None

    d = _dates("A) LOWK B) 2601150800 C) PERM\nE) X")
    assert d.permanent and d.end is None


def test_dates_estimated():
    d = _dates("DU: 29 12 2025 16:06 AU: 30 06 2026 23:59 EST\nE) X")
    assert d.end == utc(2026, 6, 30, 23, 59)
    assert d.estimated

    d = _dates("DU: 29 12 2025 16:06 AU: 30 06 2026 23:59EST\nE) X")
    assert d.end == utc(2026, 6, 30, 23, 59)
    assert d.estimated


def test_dates_est_inside_word_is_not_estimated():
    d = _dates("DU: 29 12 2025 16:06 AU: 30 06 2026 23:59 WEST SECTOR\nE) X")
    assert d.end == utc(2026, 6, 30, 23, 59)
    assert not d.estimated


def test_dates_icao_items_take_precedence():
    d = _dates("DU: 20 01 2025 07:32 AU: PERM\nA) LFPG B) 2026-02-24 00:00\nE) X")
    assert d.start == utc(2026, 2, 24, 0, 0)
    assert d.end is None
    assert not d.permanent


@pytest.mark.parametrize(
    "body",
    ["B) 2026-02-30 00:00 C) garbage", "DU: 32 13 2025 25:00 AU: sometime", "E) X", ""],
)
def test_dates_never_raise(body):
    d = _dates(body)
    assert d.start is None
    assert d.end is None
    assert not d.permanent and not d.estimated


# ---------- qualifier line ----------


def test_parse_qualifier_line():
    q = parse_qualifier_line("LFFF / QWULW / IV / BO / W / 000/014 / 4840N00305E005")
    assert q is not None
    assert (q.fir, q.code, q.traffic, q.purpose, q.scope) == (
        "LFFF",
        "QWULW",
        "IV",
        "BO",
        "W",
    )
    assert (q.lower, q.upper) == (0, 14)
    assert q.lat == pytest.approx(48.6667, abs=1e-4)
    assert q.lon == pytest.approx(3.0833, abs=1e-4)
    assert q.radius == 5
    assert q.area == "4840N00305E005"


def test_parse_qualifier_line_compact():
    q = parse_qualifier_line("TTZP/QOBCE/IV/M/AE/000/002/1615N06116W001")
    assert q.lat == pytest.approx(16.25)
    assert q.lon == pytest.approx(-61.2667, abs=1e-4)
    assert q.radius == 1


def test_parse_qualifier_line_non_numeric_limits():
    q = parse_qualifier_line("EGTT/QRRCA/IV/BO/W/GND/UNL/5030N00130W010")
    assert q.lower is None and q.upper is None
    assert q.radius == 10


@pytest.mark.parametrize(
    "text",
    [
        "LFFF/QMRLC/IV/NBO/A/000/999/XXXX",
        "LFFF/QMRLC/IV",
        "",
    ],
)
def test_parse_qualifier_line_unusable(text):
    assert parse_qualifier_line(text) is None


def test_visitor_raises_on_bad_coordinate():
    with pytest.raises(ParseQualifierLineError) as exc:
        QualifierLineVisitor().parse("LFFF/QMRLC/IV/NBO/A/000/999/XXXX")
    assert "XXXX" in exc.value.clause
