"""
Input import for batch queries.

Reads company names (or company / registration-number rows) from text,
CSV or Excel files, and splits free-form text typed on the command line
into individual items.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import chardet
import pandas as pd

from license_verifier.core.data_models import VerificationPair
from license_verifier.utils.error_handler import (
    FileImportError,
    UnsupportedFormatError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Separators recognised in free-form input, in addition to custom ones
DEFAULT_SEPARATORS = (",", "，", "\n", "、", "|", "/", "\\", ";", "；", "#")

SUPPORTED_EXTENSIONS = (".txt", ".csv", ".xlsx", ".xls")

# Header cells that name the company and registration number columns
COMPANY_HEADER_PATTERN = re.compile(r"公司|企业|名称|company", re.IGNORECASE)
REGNUM_HEADER_PATTERN = re.compile(
    r"注册号|登记号|执照号|信用代码|registration|regnum", re.IGNORECASE
)

ColumnRef = Union[str, int]


@dataclass
class ImportResult:
    """
    Rows read from an input file.

    Attributes:
        data: One entry per non-empty row, its non-empty cells joined by a tab
        rows: Cells of each non-empty row, trimmed, column positions kept
        source: File the rows came from
    """

    data: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    source: Optional[Path] = None

    def __len__(self) -> int:
        return len(self.rows)


def import_file(file_path: Union[str, Path]) -> ImportResult:
    """
    Import non-empty rows from a .txt, .csv, .xlsx or .xls file.

    Text files yield one row per line, split into cells on tabs. CSV files
    are parsed with pandas, so quoted fields may contain commas.
    Spreadsheets are read from the first sheet. No row is treated as a
    header here; see rows_to_pairs.

    Raises:
        UnsupportedFormatError: For any other extension
        FileImportError: If the file cannot be read
    """
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"Unsupported file format: {path.suffix or '(none)'}. "
            f"Use one of {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    if not path.is_file():
        raise FileImportError(f"Input file does not exist: {path}")

    if suffix in (".xlsx", ".xls"):
        rows = _import_excel(path)
    elif suffix == ".csv":
        rows = _import_csv(path)
    else:
        rows = _import_text(path)

    data = ["\t".join(cell for cell in cells if cell) for cells in rows]
    logger.info(f"Imported {len(rows)} rows from {path}")
    return ImportResult(data=data, rows=rows, source=path)


def detect_encoding(path: Path) -> str:
    """
    Detect the text encoding of a file.

    UTF-8 (with or without BOM) is preferred; anything else is left to
    chardet, with GB encodings widened to GB18030.

    Raises:
        FileImportError: If the file cannot be read
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise FileImportError(f"Failed to read {path}: {e}") from e

    try:
        raw.decode("utf-8")
        return "utf-8-sig"
    except UnicodeDecodeError:
        pass

    # Spreadsheet tools on Chinese Windows often save CSV as GBK
    detected = chardet.detect(raw[:65536])
    encoding = detected.get("encoding") or "gb18030"
    if encoding.lower().replace("-", "") in ("gb2312", "gbk"):
        encoding = "gb18030"
    logger.debug(
        f"{path} is not UTF-8, decoding as {encoding} "
        f"(confidence: {detected.get('confidence') or 0.0:.2f})"
    )
    return encoding


def _import_text(path: Path) -> List[List[str]]:
    encoding = detect_encoding(path)
    try:
        content = path.read_text(encoding=encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise FileImportError(f"Could not decode {path}: {e}") from e

    rows = []
    for line in content.splitlines():
        cells = [cell.strip() for cell in line.split("\t")]
        if any(cells):
            rows.append(cells)
    return rows


def _import_csv(path: Path) -> List[List[str]]:
    encoding = detect_encoding(path)
    try:
        frame = pd.read_csv(
            path,
            header=None,
            dtype=str,
            encoding=encoding,
            na_filter=False,
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, UnicodeDecodeError, LookupError) as e:
        raise FileImportError(f"Failed to parse CSV file {path}: {e}") from e

    return _frame_rows(frame)


def _import_excel(path: Path) -> List[List[str]]:
    try:
        frame = pd.read_excel(path, sheet_name=0, header=None, dtype=str)
    except Exception as e:
        raise FileImportError(f"Failed to read spreadsheet {path}: {e}") from e

    return _frame_rows(frame)


def _frame_rows(frame: pd.DataFrame) -> List[List[str]]:
    """Trimmed cells of every row that has at least one non-empty cell."""
    rows = []
    for values in frame.itertuples(index=False):
        cells = ["" if pd.isna(v) else str(v).strip() for v in values]
        if any(cells):
            rows.append(cells)
    return rows


def split_items(text: str, separators: Optional[Union[str, Sequence[str]]] = None) -> List[str]:
    """
    Split free-form input into trimmed, non-empty items.

    Args:
        text: Raw input
        separators: Whitespace-separated string or sequence of separators;
            the default set covers ASCII and full-width punctuation

    Returns:
        List of items in input order
    """
    if not text:
        return []

    if separators is None:
        seps: Sequence[str] = DEFAULT_SEPARATORS
    elif isinstance(separators, str):
        seps = separators.split() or DEFAULT_SEPARATORS
    else:
        seps = list(separators) or DEFAULT_SEPARATORS

    pattern = "|".join(re.escape(s) for s in seps)
    return [part.strip() for part in re.split(pattern, text) if part.strip()]


def pair_items(companies: Sequence[str], regnums: Sequence[str]) -> List[VerificationPair]:
    """
    Zip company names with registration numbers.

    Raises:
        ValidationError: If the two lists have different lengths
    """
    if len(companies) != len(regnums):
        raise ValidationError(
            f"Number of companies ({len(companies)}) and registration numbers "
            f"({len(regnums)}) do not match"
        )
    return [VerificationPair(c, r) for c, r in zip(companies, regnums)]


def detect_header_columns(cells: Sequence[str]) -> Optional[Tuple[int, int]]:
    """
    Find the company and registration number columns in a header row.

    Returns:
        (company_index, regnum_index), or None if the row does not look
        like a header
    """
    regnum_index = next(
        (i for i, cell in enumerate(cells) if REGNUM_HEADER_PATTERN.search(cell)), None
    )
    if regnum_index is None:
        return None

    company_index = next(
        (
            i
            for i, cell in enumerate(cells)
            if i != regnum_index and COMPANY_HEADER_PATTERN.search(cell)
        ),
        None,
    )
    if company_index is None:
        return None
    return company_index, regnum_index


def rows_to_pairs(
    rows: Sequence[Sequence[str]],
    header_row: Optional[int] = None,
    company_column: Optional[ColumnRef] = None,
    regnum_column: Optional[ColumnRef] = None,
) -> List[VerificationPair]:
    """
    Turn imported rows into verification pairs.

    Args:
        rows: Cells per row, as in ImportResult.rows
        header_row: 1-based number of the header row; 0 means no header;
            None detects a header in the first row by its column names
        company_column: Header text or 1-based column number of the
            company names
        regnum_column: Header text or 1-based column number of the
            registration numbers

    Columns not given are taken from the detected header, or else are the
    first and second columns. Rows above the header are ignored and rows
    where both cells are empty are skipped.

    Raises:
        ValidationError: For an unknown column, a header row outside the
            data, or a row with only one of the two values
    """
    if header_row is None:
        header_row = 1 if rows and detect_header_columns(rows[0]) else 0
    if header_row < 0 or header_row > len(rows):
        raise ValidationError(f"Header row {header_row} is outside the imported data")

    headers = list(rows[header_row - 1]) if header_row else []
    detected = detect_header_columns(headers) if headers else None

    company_index = _resolve_column(company_column, headers, detected[0] if detected else 0)
    regnum_index = _resolve_column(regnum_column, headers, detected[1] if detected else 1)
    if company_index == regnum_index:
        raise ValidationError(
            "Company name and registration number must come from different columns"
        )

    pairs = []
    for row_number, cells in enumerate(rows[header_row:], start=header_row + 1):
        company = _cell(cells, company_index)
        regnum = _cell(cells, regnum_index)
        if not company and not regnum:
            continue
        if not company or not regnum:
            raise ValidationError(
                f"Row {row_number} needs a company name and a registration number: "
                f"{list(cells)!r}"
            )
        pairs.append(VerificationPair(company, regnum))
    return pairs


def _resolve_column(column: Optional[ColumnRef], headers: List[str], default: int) -> int:
    """Column index from header text or a 1-based column number."""
    if column is None:
        return default

    if isinstance(column, int) or str(column).strip().isdigit():
        index = int(column) - 1
        if index < 0:
            raise ValidationError(f"Column numbers start at 1, got {column}")
        return index

    name = str(column).strip()
    if name in headers:
        return headers.index(name)
    raise ValidationError(
        f"Column {name!r} not found in header row"
        + (f" (columns: {', '.join(h for h in headers if h)})" if headers else "")
    )


def _cell(cells: Sequence[str], index: int) -> str:
    return cells[index].strip() if index < len(cells) else ""
