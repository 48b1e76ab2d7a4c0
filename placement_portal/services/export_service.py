"""
Student Export Service

Exports the students selected by the listing filter (without pagination)
as CSV, Excel or PDF. Rendering functions are pure: rows in, bytes out.
"""

import csv
import logging
from dataclasses import dataclass
from datetime import date, datetime
from io import BytesIO
from itertools import groupby
from typing import Dict, List, Optional, Sequence, Tuple, Union
from xml.sax.saxutils import escape

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import ValidationError
from placement_portal.schemas.schemas import ExportFormat, FilterCriteria
from placement_portal.services.branch_names import BranchNameLookup, get_branch_lookup
from placement_portal.services.student_filter import fetch_export_rows

logger = logging.getLogger(__name__)


# ============================================================
# FIELD REGISTRY
# ============================================================

@dataclass(frozen=True)
class ExportField:
    key: str
    sql: str
    label: str
    is_flag: bool = False


_FIELDS = [
    ExportField("prn", "s.prn", "PRN"),
    ExportField("student_name", "s.student_name", "Student Name"),
    ExportField("email", "s.email", "Email ID"),
    ExportField("mobile_number", "s.mobile_number", "Mobile No"),
    ExportField("branch", "s.branch", "Branch"),
    ExportField("college_name", "c.college_name", "College"),
    ExportField("region_name", "r.region_name", "Region"),
    ExportField("district", "s.district", "District"),
    ExportField("date_of_birth", "s.date_of_birth", "Date of Birth"),
    ExportField("gender", "s.gender", "Gender"),
    ExportField("height", "s.height", "Height (cm)"),
    ExportField("weight", "s.weight", "Weight (kg)"),
    ExportField("programme_cgpa", "s.programme_cgpa", "Programme CGPA"),
    *[ExportField(f"cgpa_sem{n}", f"s.cgpa_sem{n}", f"Sem {n} CGPA") for n in range(1, 7)],
    ExportField("backlog_count", "s.backlog_count", "Backlogs"),
    ExportField("has_driving_license", "s.has_driving_license", "Driving License", is_flag=True),
    ExportField("has_pan_card", "s.has_pan_card", "PAN Card", is_flag=True),
    ExportField("has_aadhar_card", "s.has_aadhar_card", "Aadhar Card", is_flag=True),
    ExportField("has_passport", "s.has_passport", "Passport", is_flag=True),
    ExportField("registration_status", "s.registration_status", "Status"),
    ExportField("is_blacklisted", "s.is_blacklisted", "Blacklisted", is_flag=True),
]

EXPORT_FIELDS: Dict[str, ExportField] = {f.key: f for f in _FIELDS}

DEFAULT_EXPORT_FIELDS = [
    "prn", "student_name", "email", "mobile_number", "branch", "college_name", "programme_cgpa"
]

MEDIA_TYPES = {
    ExportFormat.csv: "text/csv",
    ExportFormat.excel: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ExportFormat.pdf: "application/pdf",
}

EXTENSIONS = {ExportFormat.csv: "csv", ExportFormat.excel: "xlsx", ExportFormat.pdf: "pdf"}

PORTRAIT_MAX_COLUMNS = 6


@dataclass
class ExportOptions:
    use_short_names: bool = False
    separate_colleges: bool = False
    company_name: Optional[str] = None
    drive_date: Optional[date] = None
    include_signature: bool = False


@dataclass
class ExportResult:
    content: bytes
    media_type: str
    filename: str
    total_matches: int
    exported_count: int
    truncated: bool

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Disposition": f'attachment; filename="{self.filename}"',
            "Access-Control-Expose-Headers":
                "Content-Disposition, X-Total-Count, X-Exported-Count, X-Export-Truncated",
            "X-Total-Count": str(self.total_matches),
            "X-Exported-Count": str(self.exported_count),
            "X-Export-Truncated": "true" if self.truncated else "false",
        }


def resolve_fields(fields: Optional[Sequence[str]]) -> List[ExportField]:
    """Validate requested field names, keeping their order and dropping repeats."""
    if not fields:
        raise ValidationError("Please select at least one field to export")
    unknown = [name for name in fields if name not in EXPORT_FIELDS]
    if unknown:
        raise ValidationError(f"Unknown export field(s): {', '.join(unknown)}")
    return [EXPORT_FIELDS[name] for name in dict.fromkeys(fields)]


def resolve_format(export_format: Union[str, ExportFormat]) -> ExportFormat:
    try:
        return ExportFormat(export_format)
    except ValueError:
        raise ValidationError(
            f"Unsupported export format '{export_format}'. Use csv, excel or pdf"
        ) from None


def _cell_value(field: ExportField, value, options: ExportOptions, branch_lookup: BranchNameLookup):
    if field.is_flag:
        return "Yes" if value else "No"
    if value is None:
        return ""
    if field.key == "branch" and options.use_short_names:
        return branch_lookup.short_name(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, float):
        return round(value, 2)
    return value


# ============================================================
# RENDERERS
# ============================================================

def render_csv(labels: List[str], rows: List[list]) -> bytes:
    df = pd.DataFrame(rows, columns=labels)
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL).encode("utf-8")


def render_excel(labels: List[str], rows: List[list]) -> bytes:
    df = pd.DataFrame(rows, columns=labels)

    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Students", index=False)
        worksheet = writer.sheets["Students"]

        header_fill = PatternFill(start_color="001C80", end_color="001C80", fill_type="solid")
        for col, label in enumerate(labels, start=1):
            cell = worksheet.cell(row=1, column=col)
            cell.font = Font(bold=True, color="FFFFFF")
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center", vertical="center")

            width = max([len(label)] + [len(str(row[col - 1])) for row in rows]) + 2
            worksheet.column_dimensions[get_column_letter(col)].width = min(width, 50)
        worksheet.freeze_panes = "A2"

    return output.getvalue()


_CACHED_PDF_STYLES = None


def get_pdf_styles():
    global _CACHED_PDF_STYLES
    if _CACHED_PDF_STYLES is None:
        styles = getSampleStyleSheet()
        styles.add(ParagraphStyle(
            name='CenteredTitle', fontSize=14, leading=18,
            alignment=TA_CENTER,
            textColor=colors.HexColor('#001c80'),
            fontName='Helvetica-Bold',
            spaceAfter=4
        ))
        styles.add(ParagraphStyle(
            name='ListTitle', fontSize=11, leading=14,
            alignment=TA_CENTER,
            textColor=colors.black,
            fontName='Helvetica-Bold',
            spaceAfter=4
        ))
        styles.add(ParagraphStyle(
            name='TableHeader', fontSize=8, leading=10,
            alignment=TA_CENTER,
            textColor=colors.white,
            fontName='Helvetica-Bold'
        ))
        styles.add(ParagraphStyle(
            name='TableCell', fontSize=8, leading=10,
            alignment=TA_LEFT,
            textColor=colors.black,
            fontName='Helvetica'
        ))
        styles.add(ParagraphStyle(
            name='LegendTitle', fontSize=10, leading=12,
            textColor=colors.HexColor('#001c80'),
            fontName='Helvetica-Bold',
            spaceBefore=10, spaceAfter=4
        ))
        _CACHED_PDF_STYLES = styles
    return _CACHED_PDF_STYLES


def _title_block(college_name: Optional[str], options: ExportOptions, styles) -> list:
    story = []
    if college_name:
        story.append(Paragraph(escape(college_name.upper()), styles['CenteredTitle']))

    company = options.company_name.strip().upper() if options.company_name else None
    drive_date = options.drive_date.strftime("%d-%m-%Y") if options.drive_date else None
    if company and drive_date:
        story.append(Paragraph(escape(f"PLACEMENT DRIVE OF {company} ON {drive_date}"), styles['ListTitle']))
    elif company:
        story.append(Paragraph(escape(f"PLACEMENT DRIVE OF {company}"), styles['ListTitle']))
    elif drive_date:
        story.append(Paragraph(f"PLACEMENT DRIVE ON {drive_date}", styles['ListTitle']))

    title = "REGISTRATION LIST" if (company or drive_date) else "STUDENT LIST"
    story.append(Paragraph(title, styles['ListTitle']))
    story.append(Spacer(1, 4 * mm))
    return story


def _student_table(columns: List[str], rows: List[list], include_signature: bool, width: float, styles) -> Table:
    data = [[Paragraph(escape(c), styles['TableHeader']) for c in columns]]
    for index, row in enumerate(rows, start=1):
        cells = [str(index)] + [Paragraph(escape(str(v)), styles['TableCell']) for v in row]
        if include_signature:
            cells.append("")
        data.append(cells)

    serial_width = 12 * mm
    signature_width = 30 * mm if include_signature else 0
    field_count = len(columns) - 1 - (1 if include_signature else 0)
    field_width = (width - serial_width - signature_width) / max(field_count, 1)
    col_widths = [serial_width] + [field_width] * field_count
    if include_signature:
        col_widths.append(signature_width)

    commands = [
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#001c80')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#9aa5b1')),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]
    if rows:
        commands += [
            ('ALIGN', (0, 1), (0, -1), 'CENTER'),
            ('FONTSIZE', (0, 1), (0, -1), 8),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f2f4f8')]),
            # Room to sign
            ('BOTTOMPADDING', (0, 1), (-1, -1), 8 if include_signature else 3),
        ]

    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle(commands))
    return table


def _legend_block(legend: List[Tuple[str, str]], styles) -> list:
    data = [[Paragraph("Short Name", styles['TableHeader']), Paragraph("Branch", styles['TableHeader'])]]
    data += [[short, Paragraph(escape(full), styles['TableCell'])] for short, full in legend]
    table = Table(data, colWidths=[30 * mm, 110 * mm], hAlign='LEFT')
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#001c80')),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#9aa5b1')),
        ('FONTSIZE', (0, 1), (0, -1), 8),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    return [Paragraph("Branch Legend", styles['LegendTitle']), table]


def pdf_page_size(column_count: int) -> Tuple[float, float]:
    return landscape(A4) if column_count > PORTRAIT_MAX_COLUMNS else A4


def _draw_page_number(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.drawRightString(doc.pagesize[0] - doc.rightMargin, 8 * mm, f"Page {doc.page}")
    canvas.restoreState()


def college_sections(colleges: List[Tuple[int, str]], rows: List[list]) -> List[Tuple[str, List[list]]]:
    """Split rows into consecutive per-college runs, keyed by college id."""
    sections = []
    for (_, college_name), pairs in groupby(zip(colleges, rows), key=lambda pair: pair[0]):
        sections.append((college_name, [row for _, row in pairs]))
    return sections


def render_pdf(
    labels: List[str],
    rows: List[list],
    colleges: List[Tuple[int, str]],
    options: ExportOptions,
    legend: Optional[List[Tuple[str, str]]] = None,
) -> bytes:
    """
    Render the student list as a PDF.

    colleges holds the (college_id, college_name) of each row (rows arrive
    ordered by college). Portrait A4 fits up to six columns; wider tables
    go landscape.
    With separate_colleges every college starts on its own page under its
    own heading and the serial numbers restart.
    """
    styles = get_pdf_styles()
    columns = ["SL NO"] + labels + (["Signature"] if options.include_signature else [])
    pagesize = pdf_page_size(len(columns))

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=pagesize,
        leftMargin=12 * mm, rightMargin=12 * mm, topMargin=12 * mm, bottomMargin=15 * mm,
        title="Student List",
    )

    story = []
    if options.separate_colleges and rows:
        for index, (college, section_rows) in enumerate(college_sections(colleges, rows)):
            if index:
                story.append(PageBreak())
            story += _title_block(college, options, styles)
            story.append(_student_table(columns, section_rows, options.include_signature, doc.width, styles))
    else:
        distinct = set(colleges)
        college_title = next(iter(distinct))[1] if len(distinct) == 1 else None
        story += _title_block(college_title, options, styles)
        story.append(_student_table(columns, rows, options.include_signature, doc.width, styles))

    if legend:
        story += _legend_block(legend, styles)

    doc.build(story, onFirstPage=_draw_page_number, onLaterPages=_draw_page_number)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes


# ============================================================
# EXPORT
# ============================================================

def export_students(
    criteria: FilterCriteria,
    fields: Optional[Sequence[str]],
    export_format: Union[str, ExportFormat],
    options: Optional[ExportOptions] = None,
    college_scope: Optional[int] = None,
    cap: Optional[int] = None,
    branch_lookup: Optional[BranchNameLookup] = None,
    today: Optional[date] = None,
) -> ExportResult:
    """
    Export every student matching criteria, up to cap rows.

    When more students match than the cap allows, the first cap rows are
    exported and the result is flagged as truncated.
    """
    selected = resolve_fields(fields)
    fmt = resolve_format(export_format)
    options = options or ExportOptions()
    branch_lookup = branch_lookup or get_branch_lookup()
    cap = get_settings().export_row_cap if cap is None else cap
    if cap <= 0:
        raise ValidationError("Export row cap must be greater than 0")

    columns = [f"{f.sql} AS {f.key}" for f in selected]
    columns += ["c.college_id AS export_college_id", "c.college_name AS export_college"]
    fetched = fetch_export_rows(criteria, columns, cap, college_scope=college_scope, today=today)

    truncated = fetched.total > len(fetched.rows)
    if truncated:
        logger.warning(
            f"Export truncated: {fetched.total} students matched, exporting first {len(fetched.rows)}"
        )

    values = [[_cell_value(f, row[f.key], options, branch_lookup) for f in selected]
              for row in fetched.rows]
    labels = [f.label for f in selected]

    if fmt == ExportFormat.csv:
        content = render_csv(labels, values)
    elif fmt == ExportFormat.excel:
        content = render_excel(labels, values)
    else:
        legend = None
        if options.use_short_names and any(f.key == "branch" for f in selected):
            legend = branch_lookup.legend(row["branch"] for row in fetched.rows)
        colleges = [(row["export_college_id"], row["export_college"]) for row in fetched.rows]
        content = render_pdf(labels, values, colleges, options, legend)

    stamp = (today or date.today()).strftime("%Y%m%d")
    filename = f"students_{stamp}.{EXTENSIONS[fmt]}"
    logger.info(f"Exported {len(values)} of {fetched.total} students as {fmt.value}")

    return ExportResult(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        filename=filename,
        total_matches=fetched.total,
        exported_count=len(values),
        truncated=truncated,
    )
