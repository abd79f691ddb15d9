import datetime
import re
import unicodedata
from zoneinfo import ZoneInfo

from stockroom.errors import ValidationError

# Translations for vocabulary written by the Catalan-language v5 app
_LEGACY_TERMS = {
    # movement kinds
    'Creation': {'creació', 'creacio'},
    'Inbound': {'entrada'},
    'Outbound': {'sortida'},
    'Withdrawal': {'retirada'},
    # categories
    'Tools': {'eines'},
    'Electrical': {'electricitat'},
    'Plumbing': {'lampisteria'},
    'Painting': {'pintura'},
    'Gardening': {'jardineria'},
    'Cleaning': {'neteja'},
    'Safety': {'seguretat'},
    'Other': {'altres'},
    # statuses
    'Good condition': {'bon estat'},
    'Needs review': {'necessita revisió', 'necessita revisio'},
    'Needs repair': {'necessita reparació', 'necessita reparacio'},
    'Out of service': {'fora de servei'},
    # filter sentinel
    'all': {'tots'},
}


def _translate_term(value: str) -> str:
    """Map a legacy term to its current spelling; unknown terms pass through."""
    v = (value or '').strip()
    low = v.lower()
    for std, aliases in _LEGACY_TERMS.items():
        if low in aliases:
            return std
    return v


def _clean_text(value) -> str:
    if value is None:
        return ''
    return str(value).strip()


def coerce_quantity(raw) -> int:
    """Coerce user input to a non-negative integer; invalid input becomes 0."""
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return max(0, raw)
    if isinstance(raw, float):
        if raw != raw:  # NaN
            return 0
        return max(0, int(raw))
    m = re.match(r"^\s*([+-]?\d+)", str(raw or ''))
    if not m:
        return 0
    return max(0, int(m.group(1)))


def parse_date(raw) -> datetime.date | None:
    """Parse an optional ``YYYY-MM-DD`` value. Blank input means no date."""
    if raw is None or raw == '':
        return None
    if isinstance(raw, datetime.datetime):
        return raw.date()
    if isinstance(raw, datetime.date):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        if 'T' in text:
            return parse_timestamp(text).date()
        return datetime.date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {text!r}.") from exc


def parse_timestamp(raw) -> datetime.datetime:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    if isinstance(raw, datetime.datetime):
        ts = raw
    else:
        text = str(raw or '').strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        ts = datetime.datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=datetime.timezone.utc)
    return ts


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def local_now(now: datetime.datetime, tz_name: str) -> datetime.datetime:
    return now.astimezone(ZoneInfo(tz_name))


def local_today(now: datetime.datetime, tz_name: str) -> datetime.date:
    """Calendar date of ``now`` in the configured zone."""
    return local_now(now, tz_name).date()


def days_until(target: datetime.date, as_of: datetime.date) -> int:
    return (target - as_of).days


def _fmt_export_stamp(now: datetime.datetime) -> str:
    """Return a stamp like '2025-09-16_14-05-33' for file names."""
    return now.strftime('%Y-%m-%d_%H-%M-%S')


def _slug(text: str) -> str:
    ascii_text = unicodedata.normalize('NFKD', text or '').encode('ascii', 'ignore').decode('ascii')
    s = re.sub(r"[^a-z0-9]+", '_', ascii_text.strip().lower())
    return s.strip('_') or 'inventory'
