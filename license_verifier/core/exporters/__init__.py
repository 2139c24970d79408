"""
Result exporters.

This module provides Markdown and Excel exporters for query and
verification results, plus a helper that writes every requested format
into an export directory.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Sequence, Union

from .base import ExportError, ExportResult, ResultExporter, VerificationResult
from .excel_exporter import ExcelExporter
from .markdown_exporter import MarkdownExporter
from ..data_models import TwoFactorVerification

__all__ = [
    "ResultExporter",
    "ExportResult",
    "ExportError",
    "MarkdownExporter",
    "ExcelExporter",
    "EXPORTERS",
    "get_exporter",
    "export_results",
]


# Format registry for easy access
EXPORTERS = {
    "markdown": MarkdownExporter,
    "md": MarkdownExporter,
    "excel": ExcelExporter,
    "xlsx": ExcelExporter,
}


def get_exporter(format_name: str) -> type:
    """
    Get an exporter class by format name.

    Raises:
        ValueError: If format is not supported
    """
    format_lower = format_name.lower()
    if format_lower not in EXPORTERS:
        raise ValueError(
            f"Unsupported export format: {format_name}. "
            f"Supported formats: excel, markdown"
        )
    return EXPORTERS[format_lower]


def export_results(
    results: Sequence[VerificationResult],
    formats: Sequence[str],
    directory: Union[str, Path],
    include_raw_data: bool = False,
) -> List[ExportResult]:
    """
    Export results in each requested format into a directory.

    Files are named ``business_info_YYYY-MM-DD`` for query results and
    ``verification_YYYY-MM-DD`` for verification results.

    Raises:
        ExportError: If there is no data or a file cannot be written
    """
    if not results:
        raise ExportError("No data to export")

    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExportError(
            "Cannot create or access export directory",
            path=directory,
            original_error=e,
        )

    prefix = "verification" if isinstance(results[0], TwoFactorVerification) else "business_info"
    stem = f"{prefix}_{datetime.now().strftime('%Y-%m-%d')}"

    exported = []
    for format_name in dict.fromkeys(formats):
        exporter = get_exporter(format_name)(include_raw_data=include_raw_data)
        exported.append(
            exporter.export(results, directory / f"{stem}.{exporter.file_extension}")
        )
    return exported
