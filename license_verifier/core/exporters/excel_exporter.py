"""
Excel result exporter.

Writes results as a plain worksheet through pandas and openpyxl, plus a
"Raw Data" worksheet with the API payload of each result when raw data is
requested. Only the data is written; no column widths or styles are applied.
"""

import json
from pathlib import Path
from typing import Sequence

import pandas as pd

from .base import ExportError, ExportResult, ResultExporter, VerificationResult
from ..data_models import BusinessLicenseInfo, TwoFactorVerification

BUSINESS_COLUMNS = [("name", "Company Name")] + list(BusinessLicenseInfo.FIELD_LABELS)

VERIFICATION_COLUMNS = [
    ("company", "Company"),
    ("regnum", "Registration Number"),
    ("status", "Result"),
    ("name_match", "Name Match"),
    ("code_match", "Code Match"),
]

RAW_DATA_SHEET = "Raw Data"


class ExcelExporter(ResultExporter):
    """Export verification results to an .xlsx workbook."""

    @property
    def format_name(self) -> str:
        return "Excel"

    @property
    def file_extension(self) -> str:
        return "xlsx"

    def to_dataframe(self, results: Sequence[VerificationResult]) -> pd.DataFrame:
        """Build the main worksheet contents."""
        if isinstance(results[0], TwoFactorVerification):
            columns = VERIFICATION_COLUMNS
        else:
            columns = BUSINESS_COLUMNS

        rows = []
        for result in results:
            row = {label: getattr(result, attr) for attr, label in columns}
            if isinstance(result, TwoFactorVerification):
                row["Name Match"] = "Yes" if result.name_match else "No"
                row["Code Match"] = "Yes" if result.code_match else "No"
            rows.append(row)

        return pd.DataFrame(rows, columns=[label for _, label in columns])

    def raw_dataframe(self, results: Sequence[VerificationResult]) -> pd.DataFrame:
        """One row per result: company name and the API payload as JSON."""
        rows = [
            {
                "Company Name": (
                    result.company
                    if isinstance(result, TwoFactorVerification)
                    else result.name
                ),
                "Raw Data": json.dumps(result.raw, ensure_ascii=False),
            }
            for result in results
        ]
        return pd.DataFrame(rows, columns=["Company Name", "Raw Data"])

    def export(
        self,
        results: Sequence[VerificationResult],
        output_path: Path
    ) -> ExportResult:
        """
        Export results to an Excel file.

        Raises:
            ExportError: If export fails
        """
        warnings = self.validate_results(results)
        path = self.prepare_output_path(output_path)
        sheet_name = (
            "Verification" if isinstance(results[0], TwoFactorVerification) else "Business Info"
        )
        sheets = [sheet_name]

        try:
            frame = self.to_dataframe(results)
            with pd.ExcelWriter(path, engine="openpyxl") as writer:
                frame.to_excel(writer, sheet_name=sheet_name, index=False)
                if self.include_raw_data:
                    self.raw_dataframe(results).to_excel(
                        writer, sheet_name=RAW_DATA_SHEET, index=False
                    )
                    sheets.append(RAW_DATA_SHEET)
        except (OSError, ValueError) as e:
            raise ExportError(
                f"Failed to write Excel file: {e}",
                format_name=self.format_name,
                path=path,
                original_error=e
            )

        self.logger.info(f"Exported {len(results)} records to {path}")

        return ExportResult(
            path=path,
            count=len(results),
            format_name=self.format_name,
            additional_info={
                "sheet": sheet_name,
                "sheets": sheets,
                "columns": len(frame.columns),
            },
            warnings=warnings
        )
