"""Domain model package exports."""

from .charts import (ChartMetadata, Maintainer, validate_chart_name,
                     validate_chart_version)
from .index import (ChartVersion, IndexFile, format_timestamp, join_url,
                    parse_timestamp, version_sort_key)

__all__ = [
    "ChartMetadata",
    "ChartVersion",
    "IndexFile",
    "Maintainer",
    "format_timestamp",
    "join_url",
    "parse_timestamp",
    "validate_chart_name",
    "validate_chart_version",
    "version_sort_key",
]
