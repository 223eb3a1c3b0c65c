from __future__ import annotations

import pytest
from docx import Document
from docx.shared import Pt

from tessera.document.formatting import DEFAULT_FORMATTING, FormattingRule, FormattingTable


def test_default_table_matches_name_variants():
    for name in ("fullName", "FULL NAME", "fullname", "Full  Name"):
        rule = DEFAULT_FORMATTING.lookup(name)
        assert rule is not None and rule.font_family == "Lucida Calligraphy", name
    assert DEFAULT_FORMATTING.lookup("DATE").font_size == 16


def test_pattern_must_match_whole_name():
    assert DEFAULT_FORMATTING.lookup("updated") is None
    assert DEFAULT_FORMATTING.lookup("fullNameX") is None


def test_first_matching_rule_wins():
    table = FormattingTable.of(
        [FormattingRule(pattern="a.*", bold=True), FormattingRule(pattern="award", italic=True)]
    )
    assert table.lookup("award").bold is True
    assert table.lookup("award").italic is None


def test_invalid_pattern_rejected():
    with pytest.raises(ValueError, match="invalid formatting pattern"):
        FormattingRule(pattern="(unclosed")


def test_from_dict_optional_keys():
    rule = FormattingRule.from_dict({"pattern": "score", "font_size": 12.5})
    assert rule.font_size == 12.5
    assert rule.font_family is None and rule.bold is None


def test_apply_sets_only_given_attributes():
    run = Document().add_paragraph().add_run("x")
    run.italic = True
    FormattingRule(pattern="x", font_family="Arial", font_size=10).apply(run)
    assert run.font.name == "Arial"
    assert run.font.size == Pt(10)
    assert run.italic is True


def test_table_apply_reports_match():
    run = Document().add_paragraph().add_run("x")
    table = FormattingTable.of([FormattingRule(pattern="award", bold=True)])
    assert table.apply(run, "award") is True
    assert run.bold is True
    assert table.apply(run, "other") is False
    assert len(table) == 1
    assert len(FormattingTable()) == 0
