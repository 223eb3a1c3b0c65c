from __future__ import annotations

import math
import os
import zipfile
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from ..models.tabular_record import TabularRecord

"""Workbook reader.

- 1行目 (row 0) をヘッダとして扱い、2行目以降をデータ行とする。
- 物理行数が 1 以下 (ヘッダのみ / 空) のシートは結果から除外。
- 全セル空白の行はレコードにしない。
- セル値はすべて文字列化 (空セルは "")。

pandas + openpyxl で読み込み、文字列の NA 変換は無効化する ("NA" や "None"
という名前の受講者がいても空扱いにしない)。
"""

__all__ = [
    "DataFileError",
    "SheetData",
    "SheetDataSet",
    "read_excel_file",
    "normalize_sheet",
    "read_sheet_records",
    "cell_to_text",
]

SheetDataSet = dict[str, list[TabularRecord]]


class DataFileError(Exception):
    """Raised when the workbook is missing, unreadable or not an .xlsx package."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    records: list[TabularRecord]


def read_excel_file(path: Path) -> dict[str, pd.DataFrame]:
    """Read a workbook returning raw DataFrames keyed by sheet name.

    Sheets are returned in workbook order. No header is applied and no string
    is converted to NaN; empty cells come back as "" or NaN depending on the
    pandas engine, both of which `cell_to_text` maps to "".

    Raises:
        DataFileError: if the file does not exist, cannot be read or parsed
    """
    if not path.exists() or not os.access(path, os.R_OK):
        raise DataFileError(f"data file not found or is not readable: {path}")
    dfs: dict[str, pd.DataFrame] = {}
    try:
        with pd.ExcelFile(path, engine="openpyxl") as xls:
            for name in xls.sheet_names:
                dfs[str(name)] = xls.parse(
                    name, header=None, dtype=object, keep_default_na=False, na_values=None
                )
    except (OSError, ValueError, KeyError, zipfile.BadZipFile, InvalidFileException) as e:
        raise DataFileError(f"cannot read data file {path}: {e}") from e
    return dfs


def cell_to_text(value: Any) -> str:
    """Render one cell value as the text that ends up in the document.

    Integral floats lose their `.0`, dates render as YYYY-MM-DD and datetimes
    with a time part as ISO 8601. Strings are stripped.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return ""
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):  # pragma: no cover - array-like cells
        pass
    return str(value).strip()


def normalize_sheet(df: pd.DataFrame, sheet_name: str) -> SheetData:
    """Normalize a raw DataFrame using the first row as header.

    Steps:
    1. Extract header from row 0 (stripped text)
    2. Every following row becomes a TabularRecord unless all of its cells are blank
    3. row_number keeps the worksheet row (header is row 1)
    """
    if df.shape[0] == 0:
        return SheetData(sheet_name=sheet_name, columns=[], records=[])
    columns = [cell_to_text(c) for c in df.iloc[0].tolist()]
    records: list[TabularRecord] = []
    for offset, raw in enumerate(df.iloc[1:].itertuples(index=False, name=None)):
        values = [cell_to_text(v) for v in raw]
        # 列数よりセルが少ない行は空文字で補完
        if len(values) < len(columns):
            values.extend([""] * (len(columns) - len(values)))
        record = TabularRecord.from_pairs(
            zip(columns, values, strict=False), row_number=offset + 2
        )
        if record.is_blank():
            continue
        records.append(record)
    return SheetData(sheet_name=sheet_name, columns=columns, records=records)


def read_sheet_records(path: Path) -> SheetDataSet:
    """Read every sheet of the workbook into a Sheet Data Set.

    Sheets with one physical row or less are omitted. A sheet with a header
    and only blank rows is kept with an empty record list.
    """
    raw = read_excel_file(path)
    data: SheetDataSet = {}
    for name, df in raw.items():
        if df.shape[0] <= 1:
            continue
        data[name] = normalize_sheet(df, name).records
    return data
