import pytest
from fastapi.testclient import TestClient

from conftest import FakeEngine
from docforge.documents.models import Document
from docforge.server import app, get_services


@pytest.fixture
def client_for(make_services, fake_png_conversion):
    def _make(document=None, engine=None, credentials=False):
        services, _ = make_services(document, engine, credentials=credentials)
        app.dependency_overrides[get_services] = lambda: services
        return TestClient(app), services

    yield _make
    app.dependency_overrides.clear()


def test_document_round_trip(client_for):
    client, services = client_for()
    assert client.get("/document").status_code == 404

    response = client.put(
        "/document",
        json={
            "document": {"textContent": "# Hello\n\nWorld", "visualContent": ""},
            "metadata": {"provider": "openai", "model": "gpt-4o", "prompt": "Describe it"},
        },
    )
    assert response.status_code == 200
    assert client.get("/document").json() == {"textContent": "# Hello\n\nWorld", "visualContent": ""}
    assert services.documents.get_metadata().prompt_text == "Describe it"
    assert "<h1>Hello</h1>" in client.get("/").text


def test_credentials_require_a_key(client_for):
    client, services = client_for()
    assert client.put("/credentials/openai", json={"api_key": "  "}).status_code == 400
    assert client.put("/credentials/openai", json={"api_key": "sk-1"}).status_code == 200
    assert services.documents.get_credential("openai") == "sk-1"


def test_diagram_routes(client_for):
    engine = FakeEngine()
    client, _ = client_for(Document(text_content="```mermaid\ngraph TD\n  A --> B\n```"), engine=engine)
    svg = client.get("/diagram.svg")
    assert svg.status_code == 200
    assert svg.headers["content-type"].startswith("image/svg+xml")
    png = client.get("/diagram.png")
    assert png.status_code == 200
    assert png.content.startswith(b"\x89PNG")
    # One engine call per request; the PNG reuses the rendered SVG.
    assert len(engine.calls) == 2


def test_missing_and_broken_diagrams(client_for):
    client, _ = client_for(Document(text_content="no diagram"))
    assert client.get("/diagram.svg").status_code == 404

    client, _ = client_for(
        Document(text_content="```mermaid\ngraph TD\n  A[[x]] --> B{\n```"),
        engine=FakeEngine(accept=lambda source: False),
    )
    response = client.get("/diagram.svg")
    assert response.status_code == 422
    assert response.json()["detail"]["status"] == "error"


def test_exports(client_for):
    client, _ = client_for(Document(text_content="# Doc\n\n```mermaid\ngraph TD\n  A --> B\n```"))
    pdf = client.get("/export/documentation.pdf")
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")
    markdown = client.get("/export/documentation.md")
    assert markdown.status_code == 200
    assert "data:image/png;base64," in markdown.text
