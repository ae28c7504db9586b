"""Record types shared by the rules, the driver and the reports."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from decimal import Decimal
from typing import Any, Mapping, Union

Scalar = Union[str, int, float, None]
RawRecord = Mapping[str, Scalar]


@dataclass(frozen=True)
class NormalizedRecord:
    id: Scalar
    listing_url: Scalar
    host_id: Scalar
    name: str | None
    property_type: str | None
    room_type: str | None
    neighbourhood_group: str | None
    neighbourhood: str | None
    latitude: float | None
    longitude: float | None
    accommodates: float | None
    bathrooms: float | None
    bedrooms: float | None
    beds: float | None
    price_usd: Decimal | None
    host_response_rate_pct: int | None
    host_acceptance_rate_pct: int | None
    host_is_superhost: Scalar
    instant_bookable: Scalar
    minimum_nights: float | None
    maximum_nights: float | None
    has_availability: Scalar
    availability_30: float | None
    availability_60: float | None
    availability_90: float | None
    availability_365: float | None
    number_of_reviews: float | None
    number_of_reviews_l30d: float | None
    number_of_reviews_ltm: float | None
    first_review: Scalar
    last_review: Scalar
    reviews_per_month: float | None
    review_scores_rating: float | None
    review_scores_accuracy: float | None
    review_scores_cleanliness: float | None
    review_scores_checkin: float | None
    review_scores_communication: float | None
    review_scores_location: float | None
    review_scores_value: float | None
    last_scraped: Scalar
    calendar_last_scraped: Scalar

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ValidityFlags:
    missing_id: bool = False
    missing_host_id: bool = False
    missing_or_invalid_price: bool = False
    extreme_price: bool = False
    invalid_geo: bool = False
    invalid_nights: bool = False
    invalid_availability: bool = False
    invalid_host_response_rate: bool = False
    invalid_host_acceptance_rate: bool = False
    invalid_review_scores: bool = False

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)

    def raised(self) -> list[str]:
        return [name for name, value in self.to_dict().items() if value]


@dataclass(frozen=True)
class ValidationOutcome:
    record: NormalizedRecord
    flags: ValidityFlags
    exclusion_reason: str | None

    @property
    def admitted(self) -> bool:
        return self.exclusion_reason is None


NORMALIZED_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(NormalizedRecord))
FLAG_NAMES: tuple[str, ...] = tuple(f.name for f in fields(ValidityFlags))
