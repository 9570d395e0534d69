"""
Tabular decoders for uploaded files.
Turns delimited text and spreadsheet workbooks into lists of
column -> value records.
"""
import csv
import io
import os
import zipfile
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from typing import Any, BinaryIO, Dict, Iterator, List, Optional, Sequence
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from src.core.exceptions import DecodeException

Record = Dict[str, Any]

# Fits a C long on every platform.
CSV_FIELD_SIZE_LIMIT = 2**31 - 1


class TabularDecoder(ABC):
    """Base class for format-specific decoders."""

    name = ""

    @abstractmethod
    def decode(self, file: BinaryIO) -> Iterator[Record]:
        """Lazily yield records from a binary stream."""
        pass

    def decode_file(self, path: str) -> List[Record]:
        """
        Decode a blob on disk into a fully materialized list of records.

        Raises:
            DecodeException: If the content cannot be decoded
        """
        try:
            with open(path, "rb") as file:
                return list(self.decode(file))
        except OSError as e:
            raise DecodeException(f"Failed to read file for decoding: {str(e)}") from e


class DelimitedTextDecoder(TabularDecoder):
    """
    Comma-separated text decoder.

    The first non-empty line holds the column headers. Rows shorter than the
    header are padded with None and longer rows are truncated, unless
    `strict` is set, in which case any length mismatch is an error.
    """

    name = "csv"

    def __init__(self, strict: bool = False, encoding: str = "utf-8-sig"):
        self.strict = strict
        self.encoding = encoding

    def decode(self, file: BinaryIO) -> Iterator[Record]:
        csv.field_size_limit(CSV_FIELD_SIZE_LIMIT)
        text = io.TextIOWrapper(file, encoding=self.encoding, newline="")
        reader = csv.reader(text, strict=True)
        headers: Optional[List[str]] = None
        try:
            for row in reader:
                if not row or row == [""]:
                    continue
                if headers is None:
                    headers = row
                    continue
                yield self._row_to_record(headers, row, reader.line_num)
        except UnicodeDecodeError as e:
            raise DecodeException("File must be valid UTF-8 encoded text") from e
        except csv.Error as e:
            raise DecodeException(f"Malformed delimited text at line {reader.line_num}: {str(e)}") from e
        finally:
            text.detach()

    def _row_to_record(self, headers: List[str], row: List[str], line_num: int) -> Record:
        if len(row) != len(headers):
            if self.strict:
                raise DecodeException(
                    f"MalformedRow at line {line_num}: expected {len(headers)} fields, got {len(row)}"
                )
            row = list(row[:len(headers)]) + [None] * (len(headers) - len(row))
        return dict(zip(headers, row))


class SpreadsheetDecoder(TabularDecoder):
    """
    Workbook decoder for the first sheet of an .xlsx file.

    The first non-blank row holds the headers. The column count is the
    widest of the header row and any data row, and blank header cells are
    named `column_<n>`. Missing cells decode to None so every record has
    the same keys. Fully blank rows are skipped.
    """

    name = "xlsx"

    def decode(self, file: BinaryIO) -> Iterator[Record]:
        try:
            workbook = load_workbook(file, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError) as e:
            raise DecodeException(f"Failed to open spreadsheet: {str(e)}") from e

        try:
            if not workbook.worksheets:
                return
            rows = [
                values for values in workbook.worksheets[0].iter_rows(values_only=True)
                if not self._is_blank(values)
            ]
        finally:
            workbook.close()

        if not rows:
            return
        width = max(self._used_width(values) for values in rows)
        headers = self._headers(rows[0], width)
        for values in rows[1:]:
            cells = [self._cell_value(v) for v in values[:width]]
            cells += [None] * (width - len(cells))
            yield dict(zip(headers, cells))

    def _used_width(self, values: Sequence[Any]) -> int:
        width = len(values)
        while width and values[width - 1] is None:
            width -= 1
        return width

    def _headers(self, values: Sequence[Any], width: int) -> List[str]:
        values = list(values[:width]) + [None] * (width - len(values))
        return [
            str(value) if value is not None else f"column_{index + 1}"
            for index, value in enumerate(values)
        ]

    def _is_blank(self, values: Sequence[Any]) -> bool:
        return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)

    def _cell_value(self, value: Any) -> Any:
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        return value


def select_decoder(content_type: Optional[str], filename: Optional[str], strict: bool = False) -> TabularDecoder:
    """
    Pick a decoder from the declared content type and filename extension.
    Unrecognized inputs fall back to delimited text.
    """
    lower = (content_type or "").lower()
    ext = os.path.splitext(filename or "")[1].lower()
    if "csv" in lower or ext == ".csv":
        return DelimitedTextDecoder(strict=strict)
    if "excel" in lower or "spreadsheetml" in lower or ext in (".xlsx", ".xls"):
        return SpreadsheetDecoder()
    return DelimitedTextDecoder(strict=strict)
