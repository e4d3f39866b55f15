"""Results rendering — change filters and downloadable report exports.

Two real export formats exist: the JSON record and a Markdown report.
The "pdf" option is kept for the download menu but produces the JSON
export unchanged; no PDF rendering is performed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from impact_portal.domain import CHANGE_TYPES
from impact_portal.errors import ValidationError
from impact_portal.schemas.results import ApiChange, AssessmentResults, DatabaseChange

ALL_CHANGES = "all"
CHANGE_FILTERS = (ALL_CHANGES, *CHANGE_TYPES)
EXPORT_FORMATS = ("json", "markdown", "pdf")

ChangeT = TypeVar("ChangeT", ApiChange, DatabaseChange)


@dataclass(frozen=True)
class ExportedReport:
    """A rendered report ready to be downloaded."""

    filename: str
    content: str
    media_type: str


def filter_changes(changes: list[ChangeT] | None, change_type: str = ALL_CHANGES) -> list[ChangeT]:
    """Keep changes of one type, preserving their order."""
    if change_type not in CHANGE_FILTERS:
        raise ValidationError({"change_type": f"Filter must be one of: {', '.join(CHANGE_FILTERS)}"})
    changes = changes or []
    if change_type == ALL_CHANGES:
        return list(changes)
    return [c for c in changes if c.change_type == change_type]


def render_json(results: AssessmentResults) -> str:
    """Pretty-printed serialisation of the full result record."""
    return results.model_dump_json(indent=2)


def parse_json(payload: str) -> AssessmentResults:
    return AssessmentResults.model_validate_json(payload)


def render_markdown(request: dict[str, Any], results: AssessmentResults) -> str:
    """Markdown report: Summary, Key Findings, API Changes, Database Changes.

    Sections without content are omitted. The output depends only on the
    inputs, so repeated calls are byte-identical.
    """
    summary = results.summary
    lines = [
        "# Impact Assessment Report",
        "",
        f"**Request ID:** {request['id']}",
        f"**Report Type:** {request['report_type']}",
        f"**Generated:** {results.generated_at.isoformat()}",
        "",
        "## Summary",
        "",
        f"- **API Endpoints Modified:** {summary.api_endpoints_modified}",
        f"- **API Endpoints Added:** {summary.api_endpoints_added}",
        f"- **API Endpoints Removed:** {summary.api_endpoints_removed}",
        f"- **Database Tables Modified:** {summary.database_tables_modified}",
        f"- **Database Tables Added:** {summary.database_tables_added}",
        f"- **Database Tables Removed:** {summary.database_tables_removed}",
        f"- **Risk Level:** {summary.risk_level}",
        f"- **Breaking Changes:** {'Yes' if summary.breaking_changes else 'No'}",
        "",
    ]

    if summary.key_findings:
        lines += ["## Key Findings", ""]
        lines += [f"- {finding}" for finding in summary.key_findings]
        lines.append("")

    if results.api_changes:
        lines += ["## API Changes", ""]
        for change in results.api_changes:
            lines += [
                f"### {change.endpoint}",
                f"- **Method:** {change.method}",
                f"- **Type:** {change.change_type}",
                f"- **Summary:** {change.summary}",
                "",
            ]

    if results.database_changes:
        lines += ["## Database Changes", ""]
        for change in results.database_changes:
            lines += [
                f"### {change.table_name}",
                f"- **Type:** {change.change_type}",
                f"- **Summary:** {change.summary}",
                "",
            ]

    return "\n".join(lines) + "\n"


def export_filename(request_id: str, extension: str) -> str:
    return f"assessment-{request_id[:8]}.{extension}"


def export_report(request: dict[str, Any], results: AssessmentResults, fmt: str) -> ExportedReport:
    """Render ``results`` in one of the downloadable formats."""
    if fmt not in EXPORT_FORMATS:
        raise ValidationError({"format": f"Format must be one of: {', '.join(EXPORT_FORMATS)}"})
    if fmt == "markdown":
        return ExportedReport(
            filename=export_filename(request["id"], "md"),
            content=render_markdown(request, results),
            media_type="text/markdown",
        )
    # "pdf" falls through to the JSON export
    return ExportedReport(
        filename=export_filename(request["id"], "json"),
        content=render_json(results),
        media_type="application/json",
    )
