"""Report rendering tests — change filters, JSON and Markdown exports."""

from __future__ import annotations

import json

import pytest

from impact_portal.errors import ValidationError
from impact_portal.schemas.results import AssessmentResults
from impact_portal.services.report_renderer import (
    export_report,
    filter_changes,
    parse_json,
    render_json,
    render_markdown,
)

REQUEST = {"id": "abcdef12-3456-7890-abcd-ef1234567890", "report_type": "API + Database"}


@pytest.fixture
def results(results_payload) -> AssessmentResults:
    return AssessmentResults(request_id=REQUEST["id"], **results_payload)


class TestFilterChanges:

    def test_all_keeps_order(self, results):
        changes = filter_changes(results.api_changes)
        assert [c.endpoint for c in changes] == [c.endpoint for c in results.api_changes]

    def test_by_type(self, results):
        removed = filter_changes(results.database_changes, "Removed")
        assert [c.table_name for c in removed] == ["old_reports"]

    def test_no_changes(self):
        assert filter_changes(None, "Added") == []

    def test_unknown_filter(self, results):
        with pytest.raises(ValidationError) as exc_info:
            filter_changes(results.api_changes, "Renamed")
        assert "change_type" in exc_info.value.errors


class TestJsonExport:

    def test_parses_back_to_equal_record(self, results):
        assert parse_json(render_json(results)) == results

    def test_pretty_printed(self, results):
        payload = render_json(results)
        assert payload.startswith("{\n  ")
        assert json.loads(payload)["summary"]["risk_level"] == "Medium"

    def test_export_metadata(self, results):
        report = export_report(REQUEST, results, "json")
        assert report.filename == "assessment-abcdef12.json"
        assert report.media_type == "application/json"

    def test_pdf_yields_json_export(self, results):
        assert export_report(REQUEST, results, "pdf") == export_report(REQUEST, results, "json")

    def test_unknown_format(self, results):
        with pytest.raises(ValidationError):
            export_report(REQUEST, results, "docx")


class TestMarkdownExport:

    def test_deterministic(self, results):
        assert render_markdown(REQUEST, results) == render_markdown(REQUEST, results)

    def test_header(self, results):
        lines = render_markdown(REQUEST, results).splitlines()
        assert lines[0] == "# Impact Assessment Report"
        assert f"**Request ID:** {REQUEST['id']}" in lines
        assert "**Report Type:** API + Database" in lines
        assert "**Generated:** 2026-01-02T09:30:00+00:00" in lines

    def test_section_order(self, results):
        text = render_markdown(REQUEST, results)
        positions = [
            text.index("## Summary"),
            text.index("## Key Findings"),
            text.index("## API Changes"),
            text.index("## Database Changes"),
        ]
        assert positions == sorted(positions)

    def test_summary_lines(self, results):
        text = render_markdown(REQUEST, results)
        assert "- **API Endpoints Modified:** 2" in text
        assert "- **Database Tables Removed:** 1" in text
        assert "- **Risk Level:** Medium" in text
        assert "- **Breaking Changes:** Yes" in text

    def test_change_entries(self, results):
        text = render_markdown(REQUEST, results)
        assert "### /api/v1/auth/token\n- **Method:** POST\n- **Type:** Removed\n" in text
        assert "### audit_logs\n- **Type:** Added\n" in text

    def test_empty_sections_omitted(self, results):
        bare = results.model_copy(update={
            "api_changes": None,
            "database_changes": [],
            "summary": results.summary.model_copy(update={"key_findings": []}),
        })
        text = render_markdown(REQUEST, bare)
        assert "## Summary" in text
        assert "## Key Findings" not in text
        assert "## API Changes" not in text
        assert "## Database Changes" not in text
        assert text.endswith("\n")

    def test_export_metadata(self, results):
        report = export_report(REQUEST, results, "markdown")
        assert report.filename == "assessment-abcdef12.md"
        assert report.media_type == "text/markdown"
        assert report.content == render_markdown(REQUEST, results)
