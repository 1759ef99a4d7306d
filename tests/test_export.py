"""Tests for kinship/export.py — spreadsheet report."""
import io
from datetime import datetime, timezone

import pandas as pd

from kinship.export import export_family_report, report_filename, report_frames
from kinship.families import FamilyMetrics, family_metrics, group_families

from conftest import guardian, student


def _report_inputs():
    students = [student("s1", "Ana"), student("s2", "Bruno"), student("s3", "Caio")]
    guardians = [
        guardian("g1", "s1", "MAE", "Maria", email="m@example.com"),
        guardian("g2", "s2", "MAE", "Maria", email="m@example.com"),
        guardian("g3", "s3", "PAI", "Jose", phone="555"),
    ]
    families = group_families(students, guardians)
    return family_metrics(families, guardians), families


class TestReportFrames:
    def test_sheets(self):
        frames = report_frames(*_report_inputs())
        assert list(frames) == ["Summary", "Multi-Student Families", "Relationship Distribution", "Top Guardians"]

    def test_summary(self):
        summary = report_frames(*_report_inputs())["Summary"]
        values = dict(zip(summary["Metric"], summary["Value"]))
        assert values["Total families"] == 1
        assert values["Multi-student family rate"] == "100.0%"

    def test_families_sheet(self):
        rows = report_frames(*_report_inputs())["Multi-Student Families"]
        assert rows.iloc[0]["Student names"] == "Ana, Bruno"
        assert rows.iloc[0]["Phone"] == "-"

    def test_empty(self):
        frames = report_frames(FamilyMetrics(), [])
        assert frames["Multi-Student Families"].empty
        assert list(frames["Top Guardians"].columns)[0] == "Rank"


class TestExport:
    def test_bytes(self):
        content = export_family_report(*_report_inputs())
        sheets = pd.read_excel(io.BytesIO(content), sheet_name=None, engine="openpyxl")
        assert set(sheets) == {"Summary", "Multi-Student Families", "Relationship Distribution", "Top Guardians"}
        assert sheets["Top Guardians"].iloc[0]["Guardian"] == "Maria"

    def test_to_path(self, tmp_path):
        out = tmp_path / "report.xlsx"
        assert export_family_report(*_report_inputs(), out_path=str(out)) is None
        assert out.stat().st_size > 0


def test_report_filename():
    name = report_filename(datetime(2024, 3, 5, 14, 7, 9, tzinfo=timezone.utc))
    assert name == "family_relations_20240305_140709.xlsx"
