"""CSV export of imagery requests for back-office reconciliation.

Columns are fixed and ordered by ``EXPORT_COLUMNS``.  Quoting follows
RFC 4180 via the standard ``csv`` writer (fields containing the
delimiter, a quote or a line break are quoted, quotes are doubled).
List-valued cells are joined with ``"; "``; missing values become
empty cells.
"""

from __future__ import annotations

import csv
import enum
import io
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from imagery_requests.models.request import ImageryRequest

LIST_SEPARATOR = "; "


@dataclass(frozen=True, slots=True)
class ExportColumn:
    """A CSV column: header label and the accessor producing its value."""

    header: str
    value: Callable[[ImageryRequest], object]


EXPORT_COLUMNS: tuple[ExportColumn, ...] = (
    ExportColumn("Request ID", lambda r: r.id),
    ExportColumn("Status", lambda r: r.status),
    ExportColumn("Urgency", lambda r: r.urgency),
    ExportColumn("Full Name", lambda r: r.full_name),
    ExportColumn("Email", lambda r: r.email),
    ExportColumn("Company", lambda r: r.company),
    ExportColumn("Phone", lambda r: r.phone),
    ExportColumn("AOI Type", lambda r: r.aoi_type),
    ExportColumn("AOI Area (km²)", lambda r: r.aoi_area_km2),
    ExportColumn("AOI Center Lat", lambda r: r.aoi_center.lat),
    ExportColumn("AOI Center Lng", lambda r: r.aoi_center.lng),
    ExportColumn("Date Range Start", lambda r: r.date_range.start),
    ExportColumn("Date Range End", lambda r: r.date_range.end),
    ExportColumn("Resolution Categories", lambda r: r.filters.resolution_category),
    ExportColumn("Max Cloud Coverage (%)", lambda r: r.filters.max_cloud_coverage),
    ExportColumn("Providers", lambda r: r.filters.providers),
    ExportColumn("Bands", lambda r: r.filters.bands),
    ExportColumn("Image Types", lambda r: r.filters.image_types),
    ExportColumn("Additional Requirements", lambda r: r.additional_requirements),
    ExportColumn("Quote Amount", lambda r: r.quote_amount),
    ExportColumn("Quote Currency", lambda r: r.quote_currency),
    ExportColumn("Admin Notes", lambda r: r.admin_notes),
    ExportColumn("Created At", lambda r: r.created_at),
    ExportColumn("Updated At", lambda r: r.updated_at),
    ExportColumn("Reviewed At", lambda r: r.reviewed_at),
    ExportColumn("Reviewed By", lambda r: r.reviewed_by),
)


def export_csv(
    requests: Iterable[ImageryRequest],
    columns: Sequence[ExportColumn] = EXPORT_COLUMNS,
) -> str:
    """Render *requests* as CSV text.

    The header row is always written, so an empty input yields a
    header-only document.  Rows keep the order of *requests*.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([column.header for column in columns])
    for request in requests:
        writer.writerow([format_cell(column.value(request)) for column in columns])
    return buffer.getvalue()


def format_cell(value: object) -> str:
    """Render one value as CSV cell text (before quoting)."""
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, list | tuple):
        return LIST_SEPARATOR.join(format_cell(item) for item in value)
    return str(value)
