from __future__ import annotations

import json
import re
from pathlib import Path

from tessera.logging.error_log import ErrorLogBuffer, ErrorRecord


def _rec(row: int = 2, error_type: str = "WRITE_ERROR") -> ErrorRecord:
    return ErrorRecord.create(
        template="certificate.docx",
        sheet="Level 1",
        row=row,
        error_type=error_type,
        message="Permission denied",
    )


def test_flush_empty_returns_none_and_creates_nothing(tmp_path: Path):
    logs = tmp_path / "logs"
    buf = ErrorLogBuffer(logs)
    assert buf.flush() is None
    assert not logs.exists()


def test_flush_writes_json_lines(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(_rec(2))
    buf.append(_rec(5, "DIRECTORY_CREATE_ERROR"))
    path = buf.flush()
    assert path is not None and path.exists()
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["row"] for line in lines] == [2, 5]
    assert json.loads(lines[1])["error_type"] == "DIRECTORY_CREATE_ERROR"


def test_second_flush_appends_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(_rec(2))
    first = buf.flush()
    assert buf.flush() is None
    buf.append(_rec(3))
    second = buf.flush()
    assert first == second
    assert len(second.read_text(encoding="utf-8").splitlines()) == 2


def test_error_record_schema():
    data = json.loads(_rec(-1).to_json_line())
    assert set(data) == {"timestamp", "template", "sheet", "row", "error_type", "message"}
    assert data["timestamp"].endswith("Z")
    assert data["row"] == -1


def test_error_record_keeps_non_ascii():
    rec = ErrorRecord.create("証書.docx", "受講者", 4, "WRITE_ERROR", "書き込み失敗")
    line = rec.to_json_line()
    assert "証書.docx" in line
    assert json.loads(line)["sheet"] == "受講者"
