import datetime

import pytest

from stockroom.errors import ValidationError
from stockroom.inventory_utils import (
    _slug,
    _translate_term,
    coerce_quantity,
    days_until,
    local_today,
    parse_date,
    parse_timestamp,
)


@pytest.mark.parametrize("raw, expected", [(5, 5), (-5, 0), ("12 units", 12), ("", 0), ("x3", 0), (True, 0)])
def test_coerce_quantity(raw, expected):
    assert coerce_quantity(raw) == expected


def test_parse_date_variants():
    assert parse_date("") is None
    assert parse_date(None) is None
    assert parse_date("2025-09-15") == datetime.date(2025, 9, 15)
    assert parse_date("2025-09-15T12:00:00") == datetime.date(2025, 9, 15)
    with pytest.raises(ValidationError):
        parse_date("15/09/2025")
    with pytest.raises(ValidationError):
        parse_date("2025-09-15xyz")


def test_parse_timestamp_accepts_zulu_and_naive():
    zulu = parse_timestamp("2025-09-01T08:00:00.000Z")
    naive = parse_timestamp("2025-09-01T08:00:00")
    assert zulu == naive
    assert zulu.tzinfo is not None


def test_calendar_helpers():
    now = datetime.datetime(2025, 12, 31, 23, 30, tzinfo=datetime.timezone.utc)
    assert local_today(now, "UTC") == datetime.date(2025, 12, 31)
    assert local_today(now, "Europe/Madrid") == datetime.date(2026, 1, 1)
    assert days_until(datetime.date(2026, 1, 30), datetime.date(2025, 12, 31)) == 30


def test_translate_legacy_terms():
    assert _translate_term("Eines") == "Tools"
    assert _translate_term("Necessita revisió") == "Needs review"
    assert _translate_term("Sortida") == "Outbound"
    assert _translate_term("Plumbing") == "Plumbing"


def test_slug():
    assert _slug("Edifici Misericòrdia") == "edifici_misericordia"
    assert _slug("  ") == "inventory"
