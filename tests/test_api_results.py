"""Results API tests — summary, change tabs, raw data, exports and the full flow."""

from __future__ import annotations

import json

from impact_portal.store import data_store


def _results_url(request_id: str, suffix: str = "") -> str:
    return f"/api/requests/{request_id}/results{suffix}"


# ─── Results endpoints ──────────────────────────────────────────────────────

class TestResultsOverview:
    """GET /api/requests/{id}/results."""

    def test_summary_counts(self, client, auth_headers, completed_request):
        resp = client.get(_results_url(completed_request["id"]), headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["summary"]["api_endpoints_modified"] == 2
        assert body["summary"]["database_tables_removed"] == 1
        assert body["summary"]["risk_level"] == "Medium"
        assert body["summary"]["breaking_changes"] is True
        assert body["api_change_count"] == 4
        assert body["database_change_count"] == 3
        assert body["current_release"]["version"] == "EB20"
        assert body["request"]["status"] == "Completed"

    def test_not_ready_is_404(self, client, auth_headers, make_request):
        row = make_request()
        resp = client.get(_results_url(row["id"]), headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Results not available"

    def test_other_user_is_404(self, client, other_headers, completed_request):
        resp = client.get(_results_url(completed_request["id"]), headers=other_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Request not found"

    def test_malformed_result_is_502(self, client, auth_headers, make_request, results_payload):
        """A result row that does not fit the report shape is reported, not raised."""
        row = make_request()
        data_store.update_request(row["id"], {"status": "Running"})
        data_store.update_request(row["id"], {"status": "Completed"})
        data_store.insert_result(row["id"], {**results_payload, "raw_data": [{"engine": "v2"}]})
        for suffix in ("", "/api-changes", "/raw", "/export"):
            resp = client.get(_results_url(row["id"], suffix), headers=auth_headers)
            assert resp.status_code == 502, suffix
            assert resp.json()["detail"] == "Results could not be read"

    def test_summary_missing_risk_level_is_502(self, client, auth_headers, make_request, results_payload):
        row = make_request()
        summary = {k: v for k, v in results_payload["summary"].items() if k != "risk_level"}
        data_store.insert_result(row["id"], {**results_payload, "summary": summary})
        resp = client.get(_results_url(row["id"]), headers=auth_headers)
        assert resp.status_code == 502


class TestChangeTabs:
    """API and database change lists with type filters."""

    def test_all_api_changes(self, client, auth_headers, completed_request):
        body = client.get(_results_url(completed_request["id"], "/api-changes"), headers=auth_headers).json()
        assert body["change_type"] == "all"
        assert body["total"] == 4
        assert body["changes"][0]["endpoint"] == "/api/v2/users/{id}"
        assert body["changes"][0]["details"]["parameters_changed"] == ["includeMetadata"]

    def test_filter_api_changes(self, client, auth_headers, completed_request):
        resp = client.get(
            _results_url(completed_request["id"], "/api-changes"),
            params={"change_type": "Modified"},
            headers=auth_headers,
        )
        assert [c["endpoint"] for c in resp.json()["changes"]] == ["/api/v2/users/{id}", "/api/v2/webhooks"]

    def test_filter_database_changes(self, client, auth_headers, completed_request):
        resp = client.get(
            _results_url(completed_request["id"], "/database-changes"),
            params={"change_type": "Added"},
            headers=auth_headers,
        )
        assert [c["table_name"] for c in resp.json()["changes"]] == ["audit_logs"]

    def test_bad_filter(self, client, auth_headers, completed_request):
        resp = client.get(
            _results_url(completed_request["id"], "/database-changes"),
            params={"change_type": "Renamed"},
            headers=auth_headers,
        )
        assert resp.status_code == 422

    def test_raw_data_passthrough(self, client, auth_headers, completed_request, results_payload):
        body = client.get(_results_url(completed_request["id"], "/raw"), headers=auth_headers).json()
        assert body == results_payload["raw_data"]


class TestExport:
    """GET /api/requests/{id}/results/export."""

    def test_json_export(self, client, auth_headers, completed_request, results_payload):
        resp = client.get(_results_url(completed_request["id"], "/export"), headers=auth_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        filename = f"assessment-{completed_request['id'][:8]}.json"
        assert f'filename="{filename}"' in resp.headers["content-disposition"]
        payload = json.loads(resp.text)
        assert payload["id"] == results_payload["id"]
        assert payload["request_id"] == completed_request["id"]
        assert len(payload["api_changes"]) == 4

    def test_markdown_export(self, client, auth_headers, completed_request):
        resp = client.get(
            _results_url(completed_request["id"], "/export"),
            params={"format": "markdown"},
            headers=auth_headers,
        )
        assert resp.headers["content-type"].startswith("text/markdown")
        assert resp.text.startswith("# Impact Assessment Report\n")
        assert f"**Request ID:** {completed_request['id']}" in resp.text
        assert "**Report Type:** API + Database" in resp.text

    def test_pdf_matches_json(self, client, auth_headers, completed_request):
        url = _results_url(completed_request["id"], "/export")
        as_json = client.get(url, params={"format": "json"}, headers=auth_headers)
        as_pdf = client.get(url, params={"format": "pdf"}, headers=auth_headers)
        assert as_pdf.text == as_json.text

    def test_unknown_format(self, client, auth_headers, completed_request):
        resp = client.get(
            _results_url(completed_request["id"], "/export"),
            params={"format": "docx"},
            headers=auth_headers,
        )
        assert resp.status_code == 422


# ─── Full flow ──────────────────────────────────────────────────────────────

class TestEndToEnd:
    """Submit, watch the engine run, and read the report."""

    def test_submit_run_and_report(self, client, auth_headers, releases, user, results_payload):
        """An EB20 to EB21 API assessment goes from Queued to a readable report."""
        resp = client.post(
            "/api/requests",
            data={
                "report_type": "API",
                "current_release_id": releases["EB20"]["id"],
                "target_release_id": releases["EB21"]["id"],
            },
            headers=auth_headers,
        )
        assert resp.status_code == 201
        request_id = resp.json()["request"]["id"]
        assert resp.json()["request"]["status"] == "Queued"

        listing = client.get("/api/requests", headers=auth_headers).json()
        assert listing["requests"][0]["presentation"]["can_cancel"] is True

        # The assessment engine picks the request up and finishes it
        data_store.update_request(request_id, {"status": "Running"})
        detail = client.get(f"/api/requests/{request_id}", headers=auth_headers).json()
        assert detail["presentation"]["in_progress"] is True

        data_store.update_request(request_id, {"status": "Completed"})
        data_store.insert_result(request_id, results_payload)

        detail = client.get(f"/api/requests/{request_id}", headers=auth_headers).json()
        assert detail["presentation"]["results_available"] is True
        assert detail["presentation"]["can_cancel"] is False
        assert detail["request"]["completed_at"] is not None

        overview = client.get(_results_url(request_id), headers=auth_headers).json()
        assert overview["summary"]["api_endpoints_added"] == 1
        assert overview["summary"]["key_findings"][0].startswith("Deprecated API endpoint")

        resp = client.post(f"/api/requests/{request_id}/cancel", headers=auth_headers)
        assert resp.status_code == 409

    def test_cancel_before_engine_runs(self, client, auth_headers, make_request):
        row = make_request()
        client.post(f"/api/requests/{row['id']}/cancel", headers=auth_headers)
        detail = client.get(f"/api/requests/{row['id']}", headers=auth_headers).json()
        assert detail["presentation"]["error_state"] is True
        assert detail["request"]["error_message"] == "Canceled by user"
