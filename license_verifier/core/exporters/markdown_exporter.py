"""
Markdown result exporter.

Writes query results as one section with a field table per company, and
verification results as a single summary table.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import List, Sequence

from .base import ExportError, ExportResult, ResultExporter, VerificationResult
from ..data_models import BusinessLicenseInfo, TwoFactorVerification


class MarkdownExporter(ResultExporter):
    """
    Export verification results to Markdown.

    Example:
        >>> exporter = MarkdownExporter(include_raw_data=True)
        >>> result = exporter.export(results, Path("business_info.md"))
    """

    @property
    def format_name(self) -> str:
        return "Markdown"

    @property
    def file_extension(self) -> str:
        return "md"

    def export(
        self,
        results: Sequence[VerificationResult],
        output_path: Path
    ) -> ExportResult:
        """
        Export results to a Markdown file.

        Raises:
            ExportError: If export fails
        """
        warnings = self.validate_results(results)
        path = self.prepare_output_path(output_path)

        try:
            content = self.render(results)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise ExportError(
                f"Failed to write Markdown file: {e}",
                format_name=self.format_name,
                path=path,
                original_error=e
            )

        self.logger.info(f"Exported {len(results)} records to {path}")

        return ExportResult(
            path=path,
            count=len(results),
            format_name=self.format_name,
            additional_info={"file_size": path.stat().st_size},
            warnings=warnings
        )

    def render(self, results: Sequence[VerificationResult]) -> str:
        """Render results to a Markdown document."""
        if isinstance(results[0], TwoFactorVerification):
            return self._render_verifications(results)
        return self._render_business_info(results)

    def _render_business_info(self, results: Sequence[BusinessLicenseInfo]) -> str:
        lines = [
            "# Business Information Query Results",
            "",
            f"Query Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            "",
            f"Total Records: {len(results)}",
            "",
        ]

        for index, info in enumerate(results, start=1):
            lines.append(f"## {index}. {_escape(info.name) or 'Unknown company'}")
            lines.append("")
            lines.append("| Field | Content |")
            lines.append("|-------|---------|")
            for attr, label in BusinessLicenseInfo.FIELD_LABELS:
                lines.append(f"| {label} | {_escape(getattr(info, attr))} |")

            if self.include_raw_data:
                lines.extend(self._raw_block(info.to_dict(include_raw=True)))

            lines.append("")
            lines.append("---")
            lines.append("")

        return "\n".join(lines)

    def _render_verifications(self, results: Sequence[TwoFactorVerification]) -> str:
        verified = sum(1 for r in results if r.verified)
        lines = [
            "# Business Verification Results",
            "",
            f"Verification Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            "",
            f"Total Records: {len(results)} ({verified} verified)",
            "",
            "| # | Company | Registration Number | Result | Name Match | Code Match |",
            "|---|---------|---------------------|--------|------------|------------|",
        ]

        for index, item in enumerate(results, start=1):
            lines.append(
                f"| {index} | {_escape(item.company)} | {_escape(item.regnum)} | "
                f"{item.status} | {_yes_no(item.name_match)} | {_yes_no(item.code_match)} |"
            )

        if self.include_raw_data:
            lines.extend(self._raw_block([r.to_dict(include_raw=True) for r in results]))

        lines.append("")
        return "\n".join(lines)

    @staticmethod
    def _raw_block(data) -> List[str]:
        return [
            "",
            "<details><summary>Raw Data</summary>",
            "",
            "```json",
            json.dumps(data, ensure_ascii=False, indent=2),
            "```",
            "</details>",
        ]


def _escape(value: str) -> str:
    """Escape characters that would break a Markdown table cell."""
    return str(value).replace("|", "\\|").replace("\n", " ").strip()


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"
