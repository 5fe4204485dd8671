from __future__ import annotations

import os
import re
from datetime import date
from io import BytesIO
from xml.sax.saxutils import escape

import pandas as pd
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import LongTable, Paragraph, SimpleDocTemplate, Spacer, TableStyle

from query_builder import QueryError
from report_types import ReportType
from reports import ORDER_STATUSES

BRAND_TEAL = colors.HexColor("#0f8da0")
BRAND_DARK = colors.HexColor("#0b6c7c")
BRAND_MUTED = colors.HexColor("#5e6c74")
LIGHT_ROW = colors.HexColor("#f4f8f9")

ROWS_PER_SHEET = 100_000
WIDTH_SAMPLE_ROWS = 100
MAX_COLUMN_WIDTH = 50

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIMETYPE = "application/pdf"


def _make_styles():
    styles = getSampleStyleSheet()
    styles["Title"].fontSize = 18
    styles["Title"].leading = 22
    styles["Title"].textColor = BRAND_DARK
    styles.add(
        ParagraphStyle(
            "Subtitle",
            parent=styles["BodyText"],
            fontSize=10,
            leading=12,
            textColor=BRAND_MUTED,
        )
    )
    styles.add(
        ParagraphStyle(
            "Section",
            parent=styles["Heading2"],
            fontSize=12,
            leading=14,
            textColor=BRAND_DARK,
        )
    )
    styles.add(
        ParagraphStyle(
            "Cell",
            parent=styles["BodyText"],
            fontSize=6,
            leading=7,
        )
    )
    return styles


def _header_story(title: str, subtitle: str | None, styles) -> list:
    story = [Paragraph(escape(title), styles["Title"])]
    if subtitle:
        story.append(Paragraph(escape(subtitle), styles["Subtitle"]))
    story.append(Spacer(1, 0.15 * inch))
    return story


def _build_table(data: list[list], col_widths: list[float] | None = None, font_size: int = 8) -> LongTable:
    table = LongTable(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), BRAND_TEAL),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("TEXTCOLOR", (0, 1), (-1, -1), colors.black),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), font_size),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, LIGHT_ROW]),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    return table


def export_filename(title: str, ext: str, today: date | None = None) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", title.lower()).strip("_") or "report"
    return f"{slug}_{(today or date.today()).isoformat()}.{ext}"


def _cell(value) -> str:
    if value is None:
        return ""
    return str(value)


def report_frame(report: ReportType, rows: list[dict]) -> pd.DataFrame:
    """Rows projected onto the report's columns, headed by display labels."""
    df = pd.DataFrame(rows)
    df = df.reindex(columns=list(report.column_keys))
    df = df.astype(object).where(df.notna(), "")
    df.columns = [label for _, label in report.columns]
    return df


def _fit_columns(worksheet, df: pd.DataFrame) -> None:
    sample = df.head(WIDTH_SAMPLE_ROWS)
    for idx, label in enumerate(df.columns, start=1):
        longest = len(str(label))
        for value in sample.iloc[:, idx - 1]:
            longest = max(longest, len(_cell(value)))
        worksheet.column_dimensions[get_column_letter(idx)].width = min(longest + 2, MAX_COLUMN_WIDTH)


def _sheet_names(total_rows: int) -> list[str]:
    parts = max((total_rows + ROWS_PER_SHEET - 1) // ROWS_PER_SHEET, 1)
    if parts == 1:
        return ["Data"]
    return [f"Data_Part_{idx}" for idx in range(1, parts + 1)]


def export_report_excel(report: ReportType, rows: list[dict]) -> BytesIO:
    if not rows:
        raise QueryError("No data available for export")
    df = report_frame(report, rows)
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for idx, sheet_name in enumerate(_sheet_names(len(df))):
            chunk = df.iloc[idx * ROWS_PER_SHEET : (idx + 1) * ROWS_PER_SHEET]
            chunk.to_excel(writer, sheet_name=sheet_name, index=False)
            _fit_columns(writer.sheets[sheet_name], chunk)
    output.seek(0)
    return output


def _pdf_max_rows() -> int:
    return int(os.environ.get("PDF_MAX_ROWS", "2000"))


def pdf_table_rows(report: ReportType, rows: list[dict], cell_style) -> list[list[Paragraph]]:
    """Header and body cells as wrapping paragraphs; values are escaped for reportlab markup."""
    table_rows = [[Paragraph(escape(label), cell_style) for _, label in report.columns]]
    for row in rows:
        table_rows.append([Paragraph(escape(_cell(row.get(key))), cell_style) for key in report.column_keys])
    return table_rows


def export_report_pdf(report: ReportType, rows: list[dict], subtitle: str | None = None) -> BytesIO:
    if not rows:
        raise QueryError("No data available for export")
    page_size = landscape(letter)
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=page_size,
        leftMargin=0.4 * inch,
        rightMargin=0.4 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
    )
    styles = _make_styles()
    story = _header_story(report.title, subtitle or f"{len(rows):,} rows", styles)

    max_rows = _pdf_max_rows()
    table_rows = pdf_table_rows(report, rows[:max_rows], styles["Cell"])

    usable = page_size[0] - doc.leftMargin - doc.rightMargin
    col_width = usable / max(len(report.column_keys), 1)
    table = _build_table(table_rows, col_widths=[col_width] * len(report.column_keys), font_size=6)
    story.append(table)

    if len(rows) > max_rows:
        story.append(Spacer(1, 0.15 * inch))
        story.append(
            Paragraph(
                f"Showing the first {max_rows:,} of {len(rows):,} rows. Export to Excel for the full report.",
                styles["Subtitle"],
            )
        )

    doc.build(story)
    buffer.seek(0)
    return buffer


def _order_summary_columns() -> list[tuple[str, str]]:
    columns = [("CREATION_DATE", "Creation Date"), ("ORDER_TYPE", "Order Type")]
    columns += [(f"{label}_Ord", f"{label} Orders") for label in ORDER_STATUSES.values()]
    columns.append(("Total_Order", "Total Orders"))
    columns += [(f"{label}_Qty", f"{label} Qty") for label in ORDER_STATUSES.values()]
    columns.append(("Total_Qty", "Total Qty"))
    return columns


def export_order_summary_excel(rows: list[dict]) -> BytesIO:
    if not rows:
        raise QueryError("No data available for export")
    columns = _order_summary_columns()
    df = pd.DataFrame(rows).reindex(columns=[key for key, _ in columns])
    df = df.astype(object).where(df.notna(), "")
    df.columns = [label for _, label in columns]
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Order Summary", index=False)
        _fit_columns(writer.sheets["Order Summary"], df)
    output.seek(0)
    return output


def export_order_summary_pdf(rows: list[dict], subtitle: str | None = None) -> BytesIO:
    buffer = BytesIO()
    page_size = landscape(letter)
    doc = SimpleDocTemplate(buffer, pagesize=page_size, leftMargin=0.5 * inch, rightMargin=0.5 * inch)
    styles = _make_styles()

    story = _header_story("Order Summary", subtitle or "Current view", styles)
    if not rows:
        story.append(Paragraph("No orders in this view.", styles["BodyText"]))
    else:
        columns = _order_summary_columns()
        table_rows = [[label for _, label in columns]]
        for row in rows[: _pdf_max_rows()]:
            table_rows.append([_cell(row.get(key)) for key, _ in columns])
        usable = page_size[0] - doc.leftMargin - doc.rightMargin
        widths = [0.9 * inch, 0.8 * inch] + [(usable - 1.7 * inch) / (len(columns) - 2)] * (len(columns) - 2)
        story.append(_build_table(table_rows, col_widths=widths, font_size=7))

    doc.build(story)
    buffer.seek(0)
    return buffer
