"""Field normalisation, validity flags and exclusion-reason resolution.

A raw listing row maps to exactly one ``ValidationOutcome``. Nothing here
raises on bad field values: anything unparseable becomes ``None`` and shows
up as a flag instead.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Callable

from airbnb_clean.common.models import (
    NormalizedRecord,
    RawRecord,
    Scalar,
    ValidationOutcome,
    ValidityFlags,
)

PRICE_RE = re.compile(r"[0-9]+(\.[0-9]+)?")
PERCENT_RE = re.compile(r"[0-9]{1,3}%")
_CURRENCY_NOISE = str.maketrans("", "", "$,")

PRICE_MIN_EXCLUSIVE = Decimal(0)
PRICE_MAX = Decimal(2000)
LAT_RANGE = (-90, 90)
LON_RANGE = (-180, 180)
RATE_MAX = 100

TEXT_FIELDS = ("name", "property_type", "room_type", "neighbourhood", "neighbourhood_group")
IDENTIFIER_FIELDS = ("id", "host_id")
NUMERIC_FIELDS = (
    "latitude",
    "longitude",
    "accommodates",
    "bathrooms",
    "bedrooms",
    "beds",
    "minimum_nights",
    "maximum_nights",
    "availability_30",
    "availability_60",
    "availability_90",
    "availability_365",
    "number_of_reviews",
    "number_of_reviews_l30d",
    "number_of_reviews_ltm",
    "reviews_per_month",
    "review_scores_rating",
    "review_scores_accuracy",
    "review_scores_cleanliness",
    "review_scores_checkin",
    "review_scores_communication",
    "review_scores_location",
    "review_scores_value",
)
PASSTHROUGH_FIELDS = (
    "listing_url",
    "host_is_superhost",
    "instant_bookable",
    "has_availability",
    "first_review",
    "last_review",
    "last_scraped",
    "calendar_last_scraped",
)

# Inside Airbnb exports carry both a free-text and a cleansed neighbourhood column.
SOURCE_ALIASES = {
    "neighbourhood": ("neighbourhood_cleansed", "neighbourhood"),
    "neighbourhood_group": ("neighbourhood_group_cleansed", "neighbourhood_group"),
}

AVAILABILITY_MAX = {
    "availability_30": 30,
    "availability_60": 60,
    "availability_90": 90,
    "availability_365": 365,
}
REVIEW_SCORE_MAX = {
    "review_scores_rating": 100,
    "review_scores_accuracy": 10,
    "review_scores_cleanliness": 10,
    "review_scores_checkin": 10,
    "review_scores_communication": 10,
    "review_scores_location": 10,
    "review_scores_value": 10,
}


def is_blank(value: Scalar) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_nan(value: object) -> bool:
    return isinstance(value, float) and math.isnan(value)


def clean_text(value: Scalar) -> str | None:
    if value is None or _is_nan(value):
        return None
    text = value.strip() if isinstance(value, str) else str(value).strip()
    return text or None


def clean_identifier(value: Scalar) -> Scalar:
    if isinstance(value, str):
        return value.strip() or None
    if _is_nan(value):
        return None
    return value


def coerce_number(value: Scalar) -> int | float | None:
    """Numbers pass through; numeric text is parsed; anything else is ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if _is_nan(value) else value
    if not isinstance(value, str):
        return None
    text = value.strip()
    # Reject "1_000"; int() and float() would accept it.
    if not text or "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        parsed = float(text)
    except ValueError:
        return None
    return None if math.isnan(parsed) else parsed


def parse_price(value: Scalar) -> Decimal | None:
    """``"$1,234.50"`` -> ``Decimal("1234.50")``; blank or malformed -> ``None``."""
    if is_blank(value) or isinstance(value, bool):
        return None
    stripped = str(value).translate(_CURRENCY_NOISE)
    if not PRICE_RE.fullmatch(stripped):
        return None
    return Decimal(stripped)


def parse_percent(value: Scalar) -> int | None:
    """``"90%"`` -> ``90``. Only one to three digits followed by ``%`` parse."""
    if not isinstance(value, str) or not PERCENT_RE.fullmatch(value):
        return None
    return int(value[:-1])


def _source_value(raw: RawRecord, field: str) -> Scalar:
    for key in SOURCE_ALIASES.get(field, (field,)):
        if key in raw:
            return raw[key]
    return None


def normalize_record(raw: RawRecord) -> NormalizedRecord:
    values: dict[str, object] = {}
    for field in IDENTIFIER_FIELDS:
        values[field] = clean_identifier(raw.get(field))
    for field in TEXT_FIELDS:
        values[field] = clean_text(_source_value(raw, field))
    for field in NUMERIC_FIELDS:
        values[field] = coerce_number(raw.get(field))
    for field in PASSTHROUGH_FIELDS:
        values[field] = raw.get(field)

    values["price_usd"] = parse_price(raw.get("price"))
    values["host_response_rate_pct"] = parse_percent(raw.get("host_response_rate"))
    values["host_acceptance_rate_pct"] = parse_percent(raw.get("host_acceptance_rate"))
    return NormalizedRecord(**values)


def outside_range(value: float | None, low: float, high: float) -> bool:
    return value is not None and not (low <= value <= high)


def _extreme_price(record: NormalizedRecord) -> bool:
    price = record.price_usd
    return price is not None and (price <= PRICE_MIN_EXCLUSIVE or price > PRICE_MAX)


def _invalid_geo(record: NormalizedRecord) -> bool:
    if record.latitude is None or record.longitude is None:
        return True
    return outside_range(record.latitude, *LAT_RANGE) or outside_range(record.longitude, *LON_RANGE)


def _invalid_nights(record: NormalizedRecord) -> bool:
    low, high = record.minimum_nights, record.maximum_nights
    return low is not None and high is not None and low > high


def _invalid_availability(record: NormalizedRecord) -> bool:
    return any(outside_range(getattr(record, field), 0, top) for field, top in AVAILABILITY_MAX.items())


def _invalid_review_scores(record: NormalizedRecord) -> bool:
    return any(outside_range(getattr(record, field), 0, top) for field, top in REVIEW_SCORE_MAX.items())


def _rate_above_max(value: int | None) -> bool:
    return value is not None and value > RATE_MAX


RULES: tuple[tuple[str, Callable[[NormalizedRecord], bool]], ...] = (
    ("missing_id", lambda r: r.id is None),
    ("missing_host_id", lambda r: r.host_id is None),
    ("missing_or_invalid_price", lambda r: r.price_usd is None),
    ("extreme_price", _extreme_price),
    ("invalid_geo", _invalid_geo),
    ("invalid_nights", _invalid_nights),
    ("invalid_availability", _invalid_availability),
    ("invalid_host_response_rate", lambda r: _rate_above_max(r.host_response_rate_pct)),
    ("invalid_host_acceptance_rate", lambda r: _rate_above_max(r.host_acceptance_rate_pct)),
    ("invalid_review_scores", _invalid_review_scores),
)

# Host-rate and review-score flags are reported but never exclude a listing.
EXCLUSION_PRIORITY = (
    "missing_id",
    "missing_host_id",
    "missing_or_invalid_price",
    "extreme_price",
    "invalid_geo",
    "invalid_nights",
    "invalid_availability",
)


def evaluate_flags(record: NormalizedRecord) -> ValidityFlags:
    return ValidityFlags(**{name: bool(predicate(record)) for name, predicate in RULES})


def resolve_exclusion_reason(flags: ValidityFlags) -> str | None:
    for name in EXCLUSION_PRIORITY:
        if getattr(flags, name):
            return name
    return None


def validate_record(raw: RawRecord) -> ValidationOutcome:
    record = normalize_record(raw)
    flags = evaluate_flags(record)
    return ValidationOutcome(record=record, flags=flags, exclusion_reason=resolve_exclusion_reason(flags))
