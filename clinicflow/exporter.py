"""
exporter.py — Export Layer for ClinicFlow

Outputs:
  - CSV: flat (patient, date, time, status, locked, notes) for review
  - Excel (.xlsx): date × patient grid, cells "HH:MM STATUS"
  - Progress report (.txt): per-patient progress, remaining sessions,
    ending-soon flags

Usage:
  from clinicflow.exporter import export_to_csv, export_to_excel, export_progress_report
"""

import logging
from datetime import date
from pathlib import Path
from typing import Any, List, Optional

from clinicflow.agenda import expiring_patients, last_active_session, patient_progress
from clinicflow.models import Patient, SessionCount, SessionStatus

logger = logging.getLogger(__name__)

CSV_FIELDS = ["patient", "date", "time", "status", "locked", "notes"]

# Excel cell fill per session status, keyed by the word written in the grid
STATUS_FILLS = {
    "Completed": "D1FAE5",
    "Absent":    "FEE2E2",
    "Scheduled": "E0F2FE",
}


def _rows(patients: List[Patient], include_cancelled: bool) -> List[dict]:
    rows = []
    for p in patients:
        for s in p.sessions:
            if s.status is SessionStatus.CANCELLED and not include_cancelled:
                continue
            rows.append({
                "patient": p.name,
                "date": s.date.isoformat(),
                "time": s.time,
                "status": s.status.value,
                "locked": "yes" if s.is_locked else "no",
                "notes": s.notes or "",
            })
    rows.sort(key=lambda r: (r["date"], r["time"], r["patient"]))
    return rows


# ---------------------------------------------------------------------------
# CSV Export
# ---------------------------------------------------------------------------

def export_to_csv(
    patients: List[Patient],
    output_path: Path,
    include_cancelled: bool = False,
) -> None:
    """
    Export sessions to flat CSV.

    Args:
        patients:          Patients whose sessions are exported
        output_path:       .csv file path
        include_cancelled: If True, keep CANCELLED sessions (audit export)
    """
    import csv
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for row in _rows(patients, include_cancelled):
            writer.writerow(row)

    logger.info(f"CSV exported → {output_path}")


# ---------------------------------------------------------------------------
# Excel Export
# ---------------------------------------------------------------------------

def export_to_excel(
    patients: List[Patient],
    output_path: Path,
    pivot: bool = True,
) -> None:
    """
    Export sessions to an Excel workbook.

    Pivot mode (default): rows=date, columns=patient, cells="HH:MM STATUS".
    Flat mode: one row per session.
    """
    import pandas as pd

    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(_rows(patients, include_cancelled=False), columns=CSV_FIELDS)
    if df.empty or not pivot:
        df.to_excel(output_path, index=False)
        logger.info(f"Excel exported → {output_path}")
        return

    df["cell"] = df["time"] + " " + df["status"].str.capitalize()
    grid = df.pivot_table(
        index="date",
        columns="patient",
        values="cell",
        aggfunc=lambda x: "; ".join(x),
    )
    grid.columns.name = None

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        grid.to_excel(writer, sheet_name="Sessions")
        _format_excel_grid(writer, "Sessions")

    logger.info(f"Excel exported → {output_path}")


def _format_excel_grid(writer: Any, sheet_name: str) -> None:
    """Colour each session cell by status; date column and patient header frozen."""
    try:
        from openpyxl.styles import Font, PatternFill
        ws = writer.sheets[sheet_name]
        fills = {word: PatternFill("solid", fgColor=rgb) for word, rgb in STATUS_FILLS.items()}

        ws.freeze_panes = "B2"
        for cell in ws[1]:
            cell.font = Font(bold=True)

        for row in ws.iter_rows(min_row=2, min_col=2):
            for cell in row:
                if not cell.value:
                    continue
                # "09:00 Absent; 14:00 Completed" -> first entry decides
                status = str(cell.value).split(";")[0].split(" ")[-1]
                if status in fills:
                    cell.fill = fills[status]

        ws.column_dimensions["A"].width = 12
        for cell in ws[1][1:]:
            ws.column_dimensions[cell.column_letter].width = max(len(str(cell.value)) + 2, 18)

    except Exception as e:
        logger.warning(f"Excel formatting failed (non-critical): {e}")


# ---------------------------------------------------------------------------
# Progress Report
# ---------------------------------------------------------------------------

def export_progress_report(
    patients: List[Patient],
    output_path: Path,
    today: Optional[date] = None,
    horizon_days: int = 30,
) -> str:
    """
    Write a plain-text progress report and return its text.

    Per patient: progress %, done / total, remaining Scheduled sessions,
    last session date, and an ending-soon flag.
    """
    today = today or date.today()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    ending = {p.id for p in expiring_patients(patients, today, horizon_days)}

    sep = "=" * 70
    lines = [
        sep,
        f"  PROGRESS REPORT — {today.isoformat()}",
        sep,
        "",
        f"  {'Patient':<24} {'Progress':>8} {'Done':>6} {'Total':>6} {'Left':>6}  {'Last':<10}",
        "─" * 70,
    ]

    for p in sorted(patients, key=lambda p: p.name.lower()):
        done = sum(1 for s in p.sessions if s.counts_as_completed)
        left = sum(
            1 for s in p.sessions
            if s.status is SessionStatus.SCHEDULED and not s.is_locked
        )
        last = last_active_session(p)
        last_str = last.date.isoformat() if last else "-"
        flag = "  ← ending soon" if p.id in ending else ""
        total = (
            str(p.start_config.duration.total)
            if isinstance(p.start_config.duration, SessionCount)
            else str(len(p.sessions))
        )
        lines.append(
            f"  {p.name:<24} {patient_progress(p):>7d}% {done:>6d} {total:>6} {left:>6d}  {last_str:<10}{flag}"
        )

    lines += [
        "",
        f"  Patients: {len(patients)} | Ending within {horizon_days} days: {len(ending)}",
        sep,
    ]

    report_text = "\n".join(lines)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_text)

    logger.info(f"Progress report exported → {output_path}")
    return report_text
