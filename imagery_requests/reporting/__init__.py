"""Read-only reporting over stored requests: admin filters and CSV export."""

from imagery_requests.reporting.csv_export import EXPORT_COLUMNS, ExportColumn, export_csv
from imagery_requests.reporting.filters import FilterCriteria, build_filter, select_requests

__all__ = [
    "EXPORT_COLUMNS",
    "ExportColumn",
    "FilterCriteria",
    "build_filter",
    "export_csv",
    "select_requests",
]
