"""Family relations spreadsheet report."""
from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import List, Optional

import pandas as pd

from .families import FamilyMetrics
from .models import FamilyGroup


def report_frames(metrics: FamilyMetrics, families: List[FamilyGroup]) -> dict:
    """Sheet name -> DataFrame."""
    multi_rate = (
        metrics.multi_student_families / metrics.total_families * 100
        if metrics.total_families else 0.0
    )
    summary = pd.DataFrame(
        [
            ("Total families", metrics.total_families),
            ("Families with multiple students", metrics.multi_student_families),
            ("Average students per family", round(metrics.avg_students_per_family, 2)),
            ("Multi-student family rate", f"{multi_rate:.1f}%"),
        ],
        columns=["Metric", "Value"],
    )

    ordered = sorted(families, key=lambda f: -f.student_count)
    family_rows = pd.DataFrame(
        [
            {
                "Guardian": f.guardian_name,
                "Email": f.guardian_email or "-",
                "Phone": f.guardian_phone or "-",
                "Students": f.student_count,
                "Student names": ", ".join(s.name for s in f.students),
            }
            for f in ordered
        ],
        columns=["Guardian", "Email", "Phone", "Students", "Student names"],
    )

    total = sum(metrics.relationship_distribution.values())
    distribution = pd.DataFrame(
        [
            {"Relation": rel, "Count": count,
             "Share": f"{count / total * 100:.1f}%" if total else "0.0%"}
            for rel, count in sorted(metrics.relationship_distribution.items(), key=lambda kv: -kv[1])
        ],
        columns=["Relation", "Count", "Share"],
    )

    top = pd.DataFrame(
        [
            {
                "Rank": i + 1,
                "Guardian": g["name"],
                "Email": g["email"] or "-",
                "Phone": g["phone"] or "-",
                "Students": g["student_count"],
                "Student names": ", ".join(g["students"]),
            }
            for i, g in enumerate(metrics.top_guardians)
        ],
        columns=["Rank", "Guardian", "Email", "Phone", "Students", "Student names"],
    )

    return {
        "Summary": summary,
        "Multi-Student Families": family_rows,
        "Relationship Distribution": distribution,
        "Top Guardians": top,
    }


def export_family_report(metrics: FamilyMetrics, families: List[FamilyGroup],
                         out_path: Optional[str] = None) -> Optional[bytes]:
    """Write the report as .xlsx. Returns the bytes when ``out_path`` is None."""
    target = out_path or io.BytesIO()
    with pd.ExcelWriter(target, engine="openpyxl") as writer:
        for sheet, frame in report_frames(metrics, families).items():
            frame.to_excel(writer, sheet_name=sheet, index=False)
    if out_path is None:
        return target.getvalue()
    return None


def report_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"family_relations_{now:%Y%m%d_%H%M%S}.xlsx"
