"""
Base classes for result exporters.

This module provides the abstract base class and common utilities
for all verification result export formats.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
import logging

from ..data_models import BusinessLicenseInfo, TwoFactorVerification
from ...utils.error_handler import VerifierError

VerificationResult = Union[BusinessLicenseInfo, TwoFactorVerification]


@dataclass
class ExportResult:
    """
    Result of an export operation.

    Attributes:
        path: Path to the exported file
        count: Number of records exported
        format_name: Name of the export format used
        exported_at: Timestamp of the export
        additional_info: Any format-specific additional information
        warnings: List of non-fatal warnings during export
    """

    path: Path
    count: int
    format_name: str
    exported_at: datetime = field(default_factory=datetime.now)
    additional_info: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"ExportResult(format={self.format_name}, "
            f"count={self.count}, path={self.path})"
        )


class ExportError(VerifierError):
    """
    Exception raised when export fails.

    Attributes:
        message: Error description
        format_name: Name of the export format
        path: Target path if available
        original_error: Underlying exception if any
    """

    def __init__(
        self,
        message: str,
        format_name: Optional[str] = None,
        path: Optional[Path] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.format_name = format_name
        self.path = path
        self.original_error = original_error
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []
        if self.format_name:
            parts.append(f"[{self.format_name}]")
        parts.append(self.message)
        if self.path:
            parts.append(f"(path: {self.path})")
        if self.original_error:
            parts.append(f"Caused by: {type(self.original_error).__name__}: {self.original_error}")
        return " ".join(parts)


class ResultExporter(ABC):
    """
    Abstract base class for verification result exporters.

    All exporters must implement the export() method and define
    format_name and file_extension properties.

    Example:
        >>> exporter = MarkdownExporter()
        >>> result = exporter.export(results, Path("business_info.md"))
        >>> print(f"Exported {result.count} records to {result.path}")
    """

    def __init__(self, include_raw_data: bool = False):
        """
        Initialize the exporter.

        Args:
            include_raw_data: Whether to include the raw API payload
        """
        self.include_raw_data = include_raw_data
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def export(
        self,
        results: Sequence[VerificationResult],
        output_path: Path
    ) -> ExportResult:
        """
        Export results to the specified path.

        Raises:
            ExportError: If export fails
        """
        pass

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Human-readable name of the export format."""
        pass

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Default file extension for this format, without leading dot."""
        pass

    def validate_results(self, results: Sequence[VerificationResult]) -> List[str]:
        """
        Validate results before export.

        Raises:
            ExportError: If there is nothing to export or the records are mixed

        Returns:
            List of warning messages for any issues found
        """
        if not results:
            raise ExportError("No data to export", format_name=self.format_name)

        kinds = {type(r) for r in results}
        if len(kinds) > 1:
            raise ExportError(
                "Cannot export query and verification results together",
                format_name=self.format_name,
            )

        warnings = []
        if isinstance(results[0], BusinessLicenseInfo):
            unnamed = sum(1 for r in results if not r.name)
            if unnamed:
                warnings.append(f"{unnamed} record(s) have no company name")
        return warnings

    def prepare_output_path(self, output_path: Union[str, Path]) -> Path:
        """
        Prepare the output path, creating its parent directory.

        Raises:
            ExportError: If the directory cannot be created
        """
        path = Path(output_path)
        if path.suffix.lower() != f".{self.file_extension}":
            path = path.with_suffix(f".{self.file_extension}")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportError(
                f"Cannot create export directory: {path.parent}",
                format_name=self.format_name,
                path=path,
                original_error=e
            )

        return path
