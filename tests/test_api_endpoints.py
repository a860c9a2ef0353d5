"""
NDIS Compliance Platform - API Endpoint Tests

HTTP tests for the health check and audit report endpoints.
"""

import pytest
from httpx import AsyncClient


class TestHealth:
    """Service endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_api_info(self, client: AsyncClient):
        response = await client.get("/api")

        assert response.status_code == 200
        assert response.json()["status"] == "running"


class TestAuditReportPDF:
    """POST /api/v1/audit-reports/pdf"""

    @pytest.mark.asyncio
    async def test_returns_pdf(self, client: AsyncClient, full_report_data):
        response = await client.post(
            "/api/v1/audit-reports/pdf",
            json=full_report_data.model_dump(mode="json"),
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")
        assert response.headers["content-disposition"] == \
            "attachment; filename=audit_report_recertification_audit_2026.pdf"
        assert int(response.headers["x-report-pages"]) >= 10

    @pytest.mark.asyncio
    async def test_minimal_payload(self, client: AsyncClient, minimal_report_data):
        response = await client.post(
            "/api/v1/audit-reports/pdf",
            json=minimal_report_data.model_dump(mode="json"),
        )

        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_missing_list_rejected(self, client: AsyncClient, minimal_report_data):
        payload = minimal_report_data.model_dump(mode="json")
        del payload["findings"]

        response = await client.post("/api/v1/audit-reports/pdf", json=payload)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "VALIDATION_ERROR"
        assert any(error["field"] == "body.findings" for error in detail["details"]["errors"])

    @pytest.mark.asyncio
    async def test_duplicate_indicator_rejected(self, client: AsyncClient, minimal_report_data, response_factory):
        payload = minimal_report_data.model_dump(mode="json")
        duplicate = response_factory("ind-1", "CONFORMITY", "Police checks").model_dump(mode="json")
        payload["indicator_responses"] = [duplicate, duplicate]

        response = await client.post("/api/v1/audit-reports/pdf", json=payload)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_render_failure_maps_to_500(self, client: AsyncClient, minimal_report_data, monkeypatch):
        from app.services import audit_report_pdf_service

        def broken(self, layout, data, section):
            raise RuntimeError("font missing")

        monkeypatch.setattr(audit_report_pdf_service.AuditReportPDFService, "_executive_summary", broken)

        response = await client.post(
            "/api/v1/audit-reports/pdf",
            json=minimal_report_data.model_dump(mode="json"),
        )

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["code"] == "REPORT_GENERATION_FAILED"
        assert detail["details"]["section"] == "executive_summary"


class TestAuditScores:
    """POST /api/v1/audit-reports/scores"""

    @pytest.mark.asyncio
    async def test_scores(self, client: AsyncClient, full_report_data):
        response = await client.post(
            "/api/v1/audit-reports/scores",
            json=full_report_data.model_dump(mode="json"),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["total"] == 6
        assert data["summary"]["points"] == 10
        assert data["summary"]["percentage"] == 56
        assert data["summary"]["band"] == "fair"
        assert data["unmapped_count"] == 1
        assert [d["division"] for d in data["divisions"]] == [2, 4]
        standards = {s["number"]: s for d in data["divisions"] for s in d["standards"]}
        assert standards["17"]["count"] == 2
        assert float(standards["17"]["average"]) == 2.5

    @pytest.mark.asyncio
    async def test_empty_scores(self, client: AsyncClient, minimal_report_data):
        response = await client.post(
            "/api/v1/audit-reports/scores",
            json=minimal_report_data.model_dump(mode="json"),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["percentage"] == 0
        assert data["summary"]["band"] == "poor"
        assert data["divisions"] == []
