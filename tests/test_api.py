"""
Tests for API endpoints.
"""
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from api.main import app
from nfe_config import settings

client = TestClient(app)

pytestmark = pytest.mark.api

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def upload(files):
    return client.post(
        "/api/upload",
        files=[("files", (name, content, "text/xml")) for name, content in files],
    )


def test_health_check():
    """Test health endpoint returns 200 and correct structure."""
    response = client.get("/health")
    assert response.status_code == 200
    
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == settings.APP_VERSION
    assert data["checks"]["api"] is True


def test_upload_process_and_export(batch_files):
    response = upload(batch_files)
    assert response.status_code == 200
    batch_id = response.json()["batch_id"]
    assert response.json()["total_files"] == 3

    # background task já rodou quando o TestClient devolve a resposta
    status_response = client.get(f"/api/batches/{batch_id}")
    assert status_response.status_code == 200
    batch = status_response.json()
    assert batch["status"] == "completed"
    assert (batch["total_files"], batch["processed_files"], batch["error_files"]) == (3, 2, 1)

    rows = client.get(f"/api/invoices/batch/{batch_id}").json()
    assert [r["status"] for r in rows] == ["processed", "error", "processed"]
    assert rows[0]["numero_nf"] == "000123"
    assert rows[0]["record"]["valor_total"] == "1234.50"
    assert rows[1]["error_message"]
    assert rows[1]["numero_nf"] == ""
    assert rows[1]["record"] is None

    excel = client.get(f"/api/invoices/batch/{batch_id}/excel")
    assert excel.status_code == 200
    assert excel.headers["content-type"] == XLSX
    assert f'filename="notas_fiscais_{batch_id}_Padr_o.xlsx"' in excel.headers["content-disposition"]
    ws = load_workbook(BytesIO(excel.content)).active
    assert ws.max_row == 3


def test_export_with_custom_template(nfe_bytes):
    batch_id = upload([("nota.xml", nfe_bytes)]).json()["batch_id"]

    response = client.post(
        f"/api/invoices/batch/{batch_id}/excel",
        json={
            "name": "Conferência",
            "columns": ["chave_nf", {"id": "valor_total", "label": "Total R$", "width": 20}, "removida"],
        },
    )

    assert response.status_code == 200
    assert "Confer_ncia.xlsx" in response.headers["content-disposition"]
    ws = load_workbook(BytesIO(response.content)).active
    assert [c.value for c in ws[1]] == ["Chave NF", "Total R$", "Número NF"]


def test_export_with_invalid_width_is_rejected(nfe_bytes):
    batch_id = upload([("nota.xml", nfe_bytes)]).json()["batch_id"]

    response = client.post(
        f"/api/invoices/batch/{batch_id}/excel",
        json={"name": "X", "columns": [{"id": "cfop", "width": 999}]},
    )

    assert response.status_code == 422
    assert "cfop" in response.json()["detail"]


def test_batch_events(nfe_bytes):
    batch_id = upload([("nota.xml", nfe_bytes)]).json()["batch_id"]

    events = client.get(f"/api/batches/{batch_id}/events").json()

    assert [e["stage"] for e in events] == ["SUBMIT", "EXTRACT", "FINALIZE"]
    assert events[1]["file_name"] == "nota.xml"


def test_unknown_batch_returns_404():
    assert client.get("/api/batches/nao-existe").status_code == 404
    assert client.get("/api/invoices/batch/nao-existe").status_code == 404
    response = client.get("/api/invoices/batch/nao-existe/excel")
    assert response.status_code == 404
    assert "nao-existe" in response.json()["detail"]


def test_export_without_processed_records_returns_404(broken_xml):
    batch_id = upload([("quebrado.xml", broken_xml)]).json()["batch_id"]

    response = client.get(f"/api/invoices/batch/{batch_id}/excel")

    assert response.status_code == 404
    assert response.json()["detail"] == "Nenhuma nota fiscal processada encontrada"


def test_upload_rejects_non_xml_files(nfe_bytes):
    response = upload([("nota.xml", nfe_bytes), ("foto.png", b"\x89PNG")])

    assert response.status_code == 400
    assert response.json()["invalid_files"] == ["foto.png"]


def test_upload_without_files():
    response = client.post("/api/upload", data={"observacao": "vazio"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Nenhum arquivo enviado"


def test_upload_too_large(monkeypatch, nfe_bytes):
    monkeypatch.setattr(settings, "API_MAX_UPLOAD_SIZE_MB", 0)

    response = upload([("nota.xml", nfe_bytes)])

    assert response.status_code == 413


def test_template_catalog_endpoints():
    catalog = client.get("/api/templates/columns").json()
    default = client.get("/api/templates/default").json()

    assert len(catalog["columns"]) == 45
    assert len(default["columns"]) == 19
    assert default["name"] == "Padrão"
    assert default["columns"][0] == {
        "id": "numero_nf",
        "label": "Número NF",
        "source_key": "numero_nf",
        "width": None,
        "format": "text",
        "required": True,
    }
