"""Pydantic schemas for inbound HTTP payloads.

``SubmissionPayload`` describes a customer AOI submission and
``StatusUpdatePayload`` an administrative status change.  Parsing either
one through ``parse_submission`` / ``parse_status_update`` yields a
typed payload or raises ``RequestValidationError`` carrying a flat
``{dotted.field: message}`` map, so every failure is attributable to
the field that caused it.

The ``aoi`` field runs the full GeoValidator rule set, so a parsed
submission always carries a typed ``PointAOI`` / ``PolygonAOI``.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from imagery_requests.core.exceptions import RequestValidationError
from imagery_requests.geometry.validation import validate_aoi
from imagery_requests.models.aoi import PointAOI, PolygonAOI
from imagery_requests.models.request import AOIType, RequestStatus, Urgency

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
PHONE_PATTERN = r"^[\d\s\-\+\(\)]+$"

# Alternate input names reported under their canonical field.
_FIELD_ALIASES = {"aoi_coordinates": "aoi"}


class DateRangePayload(BaseModel):
    """Requested acquisition window; ISO 8601 dates, inclusive."""

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_order(self) -> DateRangePayload:
        if self.end_date < self.start_date:
            msg = "End date must be after or equal to start date"
            raise ValueError(msg)
        return self


class FiltersPayload(BaseModel):
    """Requester preferences.  Only types and the cloud-cover range are checked."""

    model_config = ConfigDict(extra="ignore")

    resolution_category: list[str] = Field(default_factory=list)
    max_cloud_coverage: float | None = Field(default=None, ge=0, le=100, allow_inf_nan=False)
    providers: list[str] = Field(default_factory=list)
    bands: list[str] = Field(default_factory=list)
    image_types: list[str] = Field(default_factory=list)


class SubmissionPayload(BaseModel):
    """Customer AOI submission (``POST /api/imagery-requests``)."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        arbitrary_types_allowed=True,
        populate_by_name=True,
        extra="ignore",
    )

    full_name: str = Field(min_length=1, max_length=100)
    email: str
    company: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    aoi: PointAOI | PolygonAOI = Field(validation_alias=AliasChoices("aoi", "aoi_coordinates"))
    aoi_type: AOIType | None = None
    aoi_area_km2: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    date_range: DateRangePayload
    filters: FiltersPayload = Field(default_factory=FiltersPayload)
    urgency: Urgency = Urgency.STANDARD
    additional_requirements: str | None = Field(default=None, max_length=5000)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            msg = "Please provide a valid email address"
            raise ValueError(msg)
        return value.lower()

    @field_validator("aoi", mode="before")
    @classmethod
    def _check_aoi(cls, value: Any) -> PointAOI | PolygonAOI:
        return validate_aoi(value)

    @field_validator("filters", mode="before")
    @classmethod
    def _default_filters(cls, value: Any) -> Any:
        return {} if value is None else value


class StatusUpdatePayload(BaseModel):
    """Administrative update (``PUT /api/manage/imagery-requests/{id}``).

    An omitted ``status`` keeps the current one (notes-only update).
    Quote values are type-checked here (numbers only, booleans and
    numeric strings are rejected); their business rules belong to the
    lifecycle so they surface as ``InvalidQuote``.  ``reviewed_by`` is
    whatever the caller claims; the HTTP layer replaces it with the
    authenticated principal when the platform supplies one.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    status: RequestStatus | None = None
    admin_notes: str | None = Field(default=None, max_length=5000)
    quote_amount: float | None = Field(default=None, strict=True, allow_inf_nan=False)
    quote_currency: str | None = Field(default=None, max_length=10)
    reviewed_by: str | None = Field(default=None, max_length=200)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def parse_submission(body: dict[str, Any]) -> SubmissionPayload:
    """Validate a submission body.

    Raises:
        RequestValidationError: With one message per offending field.
    """
    try:
        return SubmissionPayload.model_validate(body)
    except PydanticValidationError as exc:
        raise RequestValidationError(
            field_errors_from_pydantic(exc), operation="submit_request"
        ) from exc


def parse_status_update(body: dict[str, Any]) -> StatusUpdatePayload:
    """Validate a status-update body.

    Raises:
        RequestValidationError: With one message per offending field.
    """
    try:
        return StatusUpdatePayload.model_validate(body)
    except PydanticValidationError as exc:
        raise RequestValidationError(
            field_errors_from_pydantic(exc), operation="update_status"
        ) from exc


def field_errors_from_pydantic(exc: PydanticValidationError) -> dict[str, str]:
    """Flatten pydantic errors into ``{dotted.field: message}``.

    The first error per field wins.  ``ValueError`` messages raised by
    our own validators are reported without pydantic's ``"Value error, "``
    prefix.
    """
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error["loc"]]
        if loc:
            loc[0] = _FIELD_ALIASES.get(loc[0], loc[0])
        key = ".".join(loc) or "body"

        message = error["msg"]
        ctx = error.get("ctx") or {}
        if error["type"] == "value_error" and "error" in ctx:
            message = str(ctx["error"])

        errors.setdefault(key, message)
    return errors
