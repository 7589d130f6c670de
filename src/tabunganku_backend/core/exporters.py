'''
Renders the savings recap as PDF / Excel and handles the student import
workbook (template + parsing).
'''
import io
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

import openpyxl
from openpyxl.utils import get_column_letter
import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..common.exceptions import ValidationError
from ..common.logger import log
from ..models.finance import PeriodTotals, StudentPeriodSummary

RECAP_TITLE = "Rekapitulasi Tabungan Siswa"
RECAP_SHEET_NAME = "Rekapitulasi Tabungan"
RECAP_COLUMNS = [
    "No", "Nama", "NISN", "Kelas",
    "Setoran (Periode Ini)", "Penarikan (Periode Ini)", "Saldo Saat Ini",
]
IMPORT_COLUMNS = ["Nama", "NISN", "Kelas"]
IMPORT_TEMPLATE_FILENAME = "template_siswa.xlsx"

PDF_MEDIA_TYPE = "application/pdf"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

BRAND_GREEN = colors.Color(22 / 255, 163 / 255, 74 / 255)

MONTHS_SHORT_ID = ["Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des"]
MONTHS_LONG_ID = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]


# --- Formatting helpers ---

def format_number_id(amount: Decimal) -> str:
    """1234567.5 -> '1.234.567,5' (Indonesian grouping, no trailing zeros)."""
    amount = Decimal(str(amount))
    sign = "-" if amount < 0 else ""
    integer_part, _, fraction = f"{abs(amount):f}".partition(".")
    grouped = f"{int(integer_part):,}".replace(",", ".")
    fraction = fraction.rstrip("0")[:3]
    return f"{sign}{grouped},{fraction}" if fraction else f"{sign}{grouped}"


def format_rupiah(amount: Decimal) -> str:
    return f"Rp {format_number_id(amount)}"


def format_date_short_id(day: date) -> str:
    return f"{day.day:02d} {MONTHS_SHORT_ID[day.month - 1]} {day.year}"


def format_date_long_id(day: date) -> str:
    return f"{day.day} {MONTHS_LONG_ID[day.month - 1]} {day.year}"


def is_all_classes(class_name: Optional[str]) -> bool:
    return not class_name or class_name == "all"


def recap_filename(class_name: Optional[str], day: Optional[date], extension: str) -> str:
    class_part = "semua-kelas" if is_all_classes(class_name) else class_name
    date_part = day.strftime("%Y%m%d") if day else "semua-tanggal"
    return f"rekapitulasi-tabungan-{class_part}-{date_part}.{extension}"


def teacher_recap_filename(class_taught: Optional[str], day: Optional[date], extension: str) -> str:
    """A teacher's own recap is named after the class they teach, not the filter."""
    class_part = re.sub(r"\s", "-", class_taught) if class_taught else "tidak-ditetapkan"
    date_part = day.strftime("%Y%m%d") if day else "semua-tanggal"
    return f"rekapitulasi-tabungan-guru-{class_part}-{date_part}.{extension}"


# --- Recap exports ---

def recap_dataframe(rows: Iterable[StudentPeriodSummary]) -> pd.DataFrame:
    records = [
        {
            "No": index,
            "Nama": row.student_name,
            "NISN": row.nisn,
            "Kelas": row.class_name,
            "Setoran (Periode Ini)": float(row.period_deposits),
            "Penarikan (Periode Ini)": float(row.period_withdrawals),
            "Saldo Saat Ini": float(row.display_balance),
        }
        for index, row in enumerate(rows, start=1)
    ]
    return pd.DataFrame(records, columns=RECAP_COLUMNS)


def build_recap_xlsx(rows: Iterable[StudentPeriodSummary]) -> bytes:
    df = recap_dataframe(rows)
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=RECAP_SHEET_NAME)

        worksheet = writer.sheets[RECAP_SHEET_NAME]
        for i, col in enumerate(df.columns, start=1):
            values = df[col].astype(str).map(len)
            max_len = max(values.max() if not df.empty else 0, len(str(col))) + 2
            worksheet.column_dimensions[get_column_letter(i)].width = max_len

    log.info(f"Built recap workbook with {len(df)} rows.")
    return output.getvalue()


def _draw_page_footer(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica", 10)
    canvas.drawString(doc.leftMargin, 10 * mm, f"Halaman {doc.page}")
    canvas.setFont("Helvetica", 8)
    canvas.drawCentredString(doc.pagesize[0] / 2, 5 * mm, "TabunganKu")
    canvas.restoreState()


def build_recap_pdf(
    rows: Iterable[StudentPeriodSummary],
    totals: PeriodTotals,
    class_name: Optional[str] = None,
    day: Optional[date] = None,
    printed_on: Optional[date] = None,
) -> bytes:
    """Renders the recap table, the period totals and a page footer."""
    rows = list(rows)
    printed_on = printed_on or datetime.now().date()
    output = io.BytesIO()

    doc = SimpleDocTemplate(
        output,
        pagesize=A4,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=15 * mm,
        bottomMargin=20 * mm,
        title=RECAP_TITLE,
        author="TabunganKu",
    )

    title_style = ParagraphStyle("Title", fontName="Helvetica-Bold", fontSize=18, leading=22, alignment=1)
    subtitle_style = ParagraphStyle("Subtitle", fontName="Helvetica", fontSize=12, leading=15, alignment=1)
    info_style = ParagraphStyle("Info", fontName="Helvetica", fontSize=10, leading=13, alignment=1)
    totals_style = ParagraphStyle("Totals", fontName="Helvetica", fontSize=10, leading=14)

    subtitle = "Semua Kelas" if is_all_classes(class_name) else f"Kelas: {class_name}"
    date_filter = f"Tanggal Filter: {format_date_short_id(day)}" if day else "Semua Tanggal"

    elements = [
        Paragraph(RECAP_TITLE, title_style),
        Paragraph(subtitle, subtitle_style),
        Paragraph(f"Tanggal Cetak: {format_date_long_id(printed_on)}", info_style),
        Paragraph(date_filter, info_style),
        Spacer(1, 6 * mm),
    ]

    table_data = [RECAP_COLUMNS]
    for index, row in enumerate(rows, start=1):
        table_data.append([
            str(index),
            row.student_name,
            row.nisn,
            row.class_name,
            format_rupiah(row.period_deposits),
            format_rupiah(row.period_withdrawals),
            format_rupiah(row.display_balance),
        ])

    table = Table(
        table_data,
        colWidths=[10 * mm, 40 * mm, 25 * mm, 18 * mm, 29 * mm, 29 * mm, 29 * mm],
        repeatRows=1,
    )
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_GREEN),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("ALIGN", (4, 1), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 8 * mm))

    elements.extend([
        Paragraph(
            f"Total Setoran Keseluruhan (Periode Ini): {format_rupiah(totals.total_period_deposits)}",
            totals_style,
        ),
        Paragraph(
            f"Total Penarikan Keseluruhan (Periode Ini): {format_rupiah(totals.total_period_withdrawals)}",
            totals_style,
        ),
        Paragraph(
            f"Total Saldo Bersih (Periode Ini): {format_rupiah(totals.net_period_balance)}",
            totals_style,
        ),
    ])

    doc.build(elements, onFirstPage=_draw_page_footer, onLaterPages=_draw_page_footer)
    log.info(f"Built recap PDF with {len(rows)} rows.")
    return output.getvalue()


# --- Student import workbook ---

def build_import_template() -> bytes:
    df = pd.DataFrame(columns=IMPORT_COLUMNS)
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Siswa")
    return output.getvalue()


def _cell_text(value) -> str:
    if value is None:
        return ""
    # Excel stores NISNs typed as numbers as floats.
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_student_import(content: bytes) -> list[dict]:
    """
    Reads the first sheet of an uploaded workbook into
    `{"Nama", "NISN", "Kelas"}` dicts, one per non-empty row.
    """
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), data_only=True, read_only=True)
    except Exception as e:
        log.warning(f"Could not read uploaded workbook: {e}")
        raise ValidationError("File tidak dapat dibaca. Pastikan file berformat .xlsx.")

    worksheet = workbook.worksheets[0] if workbook.worksheets else None
    if worksheet is None:
        raise ValidationError("File Excel tidak memiliki lembar kerja.")

    rows = list(worksheet.iter_rows(values_only=True))
    workbook.close()
    if not rows:
        raise ValidationError("File Excel kosong.")

    header = [_cell_text(cell) for cell in rows[0]]
    missing = [column for column in IMPORT_COLUMNS if column not in header]
    if missing:
        raise ValidationError(f"Kolom wajib tidak ditemukan: {', '.join(missing)}.")
    indices = {column: header.index(column) for column in IMPORT_COLUMNS}

    records = []
    for row in rows[1:]:
        record = {
            column: _cell_text(row[index]) if index < len(row) else ""
            for column, index in indices.items()
        }
        if any(record.values()):
            records.append(record)
    return records
