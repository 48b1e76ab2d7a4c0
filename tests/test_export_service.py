import csv
import io

import pytest
from openpyxl import load_workbook
from reportlab.lib.pagesizes import A4, landscape

from placement_portal.core.exceptions import ValidationError
from placement_portal.schemas.schemas import FilterCriteria
from placement_portal.services.branch_names import BranchNameLookup
from placement_portal.services.export_service import (
    DEFAULT_EXPORT_FIELDS, ExportOptions, college_sections, export_students, pdf_page_size, render_pdf,
    resolve_fields, resolve_format
)
from placement_portal.services.student_filter import list_students


def read_csv(content: bytes):
    return list(csv.reader(io.StringIO(content.decode("utf-8"))))


@pytest.fixture
def exportable(factory, campus):
    factory.student(campus["college_a"], campus["north"], prn="A1", student_name="Anu",
                    branch="Computer Engineering", registration_status="approved", has_pan_card=True)
    factory.student(campus["college_a"], campus["north"], prn="A2", student_name="Binu",
                    branch="Civil Engineering", registration_status="approved", has_pan_card=None)
    factory.student(campus["college_b"], campus["south"], prn="B1", student_name="Cini",
                    branch="Mechanical Engineering", registration_status="pending")
    return campus


def test_empty_field_selection_is_rejected():
    with pytest.raises(ValidationError, match="at least one field"):
        resolve_fields([])


def test_unknown_field_is_rejected():
    with pytest.raises(ValidationError, match="password_hash"):
        resolve_fields(["prn", "password_hash"])


def test_repeated_fields_are_exported_once():
    assert [f.key for f in resolve_fields(["prn", "email", "prn"])] == ["prn", "email"]


def test_unsupported_format_is_rejected():
    with pytest.raises(ValidationError, match="Unsupported export format"):
        resolve_format("xml")


def test_csv_export_quotes_values_and_uses_labels(exportable):
    result = export_students(FilterCriteria(status="approved"), ["prn", "student_name", "has_pan_card"], "csv")

    rows = read_csv(result.content)
    assert rows[0] == ["PRN", "Student Name", "PAN Card"]
    assert sorted(rows[1:]) == [["A1", "Anu", "Yes"], ["A2", "Binu", "No"]]
    assert b'"A1"' in result.content
    assert result.media_type == "text/csv"
    assert result.filename.endswith(".csv")
    assert (result.total_matches, result.exported_count, result.truncated) == (2, 2, False)


def test_export_ignores_pagination_and_matches_listing_filter(exportable):
    result = export_students(FilterCriteria(), ["prn"], "csv")
    assert {row[0] for row in read_csv(result.content)[1:]} == {"A1", "A2", "B1"}


def test_export_is_ordered_by_college_branch_and_prn(exportable):
    result = export_students(FilterCriteria(), ["college_name", "branch", "prn"], "csv")
    assert [row[2] for row in read_csv(result.content)[1:]] == ["A2", "A1", "B1"]


def test_export_respects_college_scope(exportable):
    result = export_students(FilterCriteria(), ["prn"], "csv", college_scope=exportable["college_b"])
    assert read_csv(result.content)[1:] == [["B1"]]


def test_export_over_cap_is_truncated(exportable):
    result = export_students(FilterCriteria(), ["prn"], "csv", cap=2)

    assert len(read_csv(result.content)) == 3
    assert result.truncated
    assert result.total_matches == 3
    assert result.exported_count == 2
    assert result.headers["X-Export-Truncated"] == "true"


def test_export_with_no_matches_has_header_only(exportable):
    result = export_students(FilterCriteria(search="nobody"), DEFAULT_EXPORT_FIELDS, "csv")
    rows = read_csv(result.content)
    assert len(rows) == 1
    assert rows[0][0] == "PRN"


def test_short_branch_names_use_injected_lookup(exportable):
    lookup = BranchNameLookup({"Computer Engineering": "CMP"})
    result = export_students(FilterCriteria(status="approved"), ["prn", "branch"], "csv",
                             ExportOptions(use_short_names=True), branch_lookup=lookup)
    rows = dict(read_csv(result.content)[1:])
    assert rows == {"A1": "CMP", "A2": "Civil Engineering"}


def test_excel_export_has_styled_header(exportable):
    result = export_students(FilterCriteria(), ["prn", "student_name", "college_name"], "excel")

    sheet = load_workbook(io.BytesIO(result.content)).active
    assert [c.value for c in sheet[1]] == ["PRN", "Student Name", "College"]
    assert sheet["A1"].font.bold
    assert sheet.max_row == 4
    assert result.filename.endswith(".xlsx")


def test_pdf_export_renders_document(exportable):
    options = ExportOptions(company_name="Acme", include_signature=True, separate_colleges=True,
                            use_short_names=True)
    result = export_students(FilterCriteria(), DEFAULT_EXPORT_FIELDS, "pdf", options)

    assert result.content.startswith(b"%PDF")
    assert result.media_type == "application/pdf"
    assert result.exported_count == 3


def test_pdf_goes_landscape_beyond_six_columns():
    assert pdf_page_size(6) == A4
    assert pdf_page_size(7) == landscape(A4)


def test_render_pdf_handles_empty_rows():
    content = render_pdf(["PRN"], [], [], ExportOptions())
    assert content.startswith(b"%PDF")


def test_branch_lookup_defaults_and_legend():
    lookup = BranchNameLookup()
    assert lookup.short_name("Computer Science and Engineering") == "CSE"
    assert lookup.short_name("electronics & communication  engineering") == "ECE"
    assert lookup.short_name("Marine Biology") == "Marine Biology"
    assert lookup.legend(["Civil Engineering", "Marine Biology", "Civil Engineering", None]) == [
        ("CE", "Civil Engineering")
    ]


def exported_prns(result, export_format):
    if export_format == "csv":
        return [row[0] for row in read_csv(result.content)[1:]]
    sheet = load_workbook(io.BytesIO(result.content)).active
    return [row[0] for row in sheet.iter_rows(min_row=2, values_only=True)]


@pytest.mark.parametrize("export_format", ["csv", "excel"])
@pytest.mark.parametrize("criteria", [
    FilterCriteria(),
    FilterCriteria(status="approved"),
    FilterCriteria(status="pending"),
    FilterCriteria(branches=["Civil Engineering", "Mechanical Engineering"]),
    FilterCriteria(search="nobody"),
])
def test_export_contains_exactly_the_listed_students(exportable, export_format, criteria):
    listed = {row["prn"] for row in list_students(criteria, 1, 1000).rows}
    result = export_students(criteria, ["prn"], export_format)

    exported = exported_prns(result, export_format)
    assert sorted(exported) == sorted(listed)
    assert result.exported_count == len(listed)


def test_college_sections_split_same_named_colleges_by_id():
    colleges = [(1, "Govt Polytechnic"), (1, "Govt Polytechnic"), (2, "Govt Polytechnic")]
    sections = college_sections(colleges, [["a"], ["b"], ["c"]])

    assert sections == [("Govt Polytechnic", [["a"], ["b"]]), ("Govt Polytechnic", [["c"]])]


def test_same_named_colleges_export_in_separate_runs(factory, campus):
    twin = factory.college(campus["south"], name="Alpha Polytechnic")
    factory.student(campus["college_a"], campus["north"], prn="P1", branch="Civil Engineering")
    factory.student(twin, campus["south"], prn="P2", branch="Civil Engineering")
    factory.student(campus["college_a"], campus["north"], prn="P3", branch="Civil Engineering")

    result = export_students(FilterCriteria(), ["college_name", "prn"], "csv")
    assert [row[1] for row in read_csv(result.content)[1:]] == ["P1", "P3", "P2"]

    pdf = export_students(FilterCriteria(), ["college_name", "prn"], "pdf", ExportOptions(separate_colleges=True))
    assert pdf.content.startswith(b"%PDF")
