"""Dev server tests: header delivery, build serving and violation reports."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from csp_injector.config.loader import ServerSettings
from csp_injector.main import _resolve_build_file, create_app

_REPORT_ONLY = "content-security-policy-report-only"

_REPORT = {
    "csp-report": {
        "document-uri": "http://localhost:4200/",
        "violated-directive": "script-src 'self'",
        "blocked-uri": "https://evil.example.com/x.js",
    }
}


@pytest.fixture
def build_dir(tmp_path):
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_text(
        '<html><head>{{content-for "head"}}</head><body>app</body></html>', encoding="utf-8"
    )
    (dist / "assets").mkdir()
    (dist / "assets" / "app.js").write_text("console.log('app');", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("nope", encoding="utf-8")
    return dist


@pytest.fixture
def make_client(build_dir):
    clients = []

    def _make(runtime):
        settings = ServerSettings(build_dir=str(build_dir))
        with patch("csp_injector.main.setup_logging"):
            client = TestClient(create_app(settings, runtime), raise_server_exceptions=False)
            client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


class TestHeaderDelivery:
    def test_static_file_gets_header(self, make_client, make_runtime):
        client = make_client(make_runtime())
        resp = client.get("/assets/app.js")

        assert resp.status_code == 200
        assert resp.text == "console.log('app');"
        assert "report-uri http://localhost:4200/csp-report" in resp.headers[_REPORT_ONLY]
        assert resp.headers["x-" + _REPORT_ONLY] == resp.headers[_REPORT_ONLY]

    def test_enforced_mode(self, make_client, make_runtime):
        client = make_client(make_runtime(own_config={"report_only": False}))
        resp = client.get("/")
        assert "content-security-policy" in resp.headers
        assert _REPORT_ONLY not in resp.headers

    def test_disabled(self, make_client, make_runtime):
        client = make_client(make_runtime(own_config={"enabled": False}))
        resp = client.get("/")
        assert resp.status_code == 200
        assert _REPORT_ONLY not in resp.headers
        assert "content-security-policy" not in resp.headers

    def test_not_found_still_gets_header(self, make_client, make_runtime, build_dir):
        (build_dir / "index.html").unlink()
        client = make_client(make_runtime())
        resp = client.get("/missing")
        assert resp.status_code == 404
        assert _REPORT_ONLY in resp.headers


class TestBuildServing:
    def test_index_rendered(self, make_client, make_runtime):
        client = make_client(make_runtime())
        resp = client.get("/")
        assert resp.status_code == 200
        assert "{{content-for" not in resp.text
        assert "app" in resp.text

    def test_unknown_route_falls_back_to_index(self, make_client, make_runtime):
        client = make_client(make_runtime())
        resp = client.get("/users/42")
        assert resp.status_code == 200
        assert "<body>app</body>" in resp.text

    def test_meta_delivery(self, make_client, make_runtime):
        client = make_client(make_runtime(own_config={"delivery": ["meta"], "report_only": False}))
        resp = client.get("/")
        assert '<meta http-equiv="Content-Security-Policy"' in resp.text
        # the dev server sends the header alongside the tag
        assert resp.headers["content-security-policy"].startswith("default-src 'none'")

    def test_path_outside_build_dir_rejected(self, build_dir):
        assert _resolve_build_file(build_dir, "../secret.txt") is None
        assert _resolve_build_file(build_dir, "assets/app.js") == (build_dir / "assets" / "app.js").resolve()
        assert _resolve_build_file(build_dir, "") == (build_dir / "index.html").resolve()


class TestReportEndpoint:
    def test_csp_report_content_type(self, make_client, make_runtime):
        client = make_client(make_runtime())
        with patch("csp_injector.api.report_routes.logger") as mock_logger:
            resp = client.post(
                "/csp-report",
                content=json.dumps(_REPORT),
                headers={"content-type": "application/csp-report"},
            )

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args[0][0] == "csp_violation"
        assert mock_logger.warning.call_args[1]["report"] == _REPORT

    def test_json_content_type(self, make_client, make_runtime):
        client = make_client(make_runtime())
        with patch("csp_injector.api.report_routes.logger") as mock_logger:
            resp = client.post("/csp-report", json=_REPORT)
        assert resp.json() == {"status": "ok"}
        assert mock_logger.warning.call_args[1]["report"] == _REPORT

    def test_other_content_type_acknowledged(self, make_client, make_runtime):
        client = make_client(make_runtime())
        with patch("csp_injector.api.report_routes.logger") as mock_logger:
            resp = client.post("/csp-report", content="hello", headers={"content-type": "text/plain"})
        assert resp.status_code == 200
        assert mock_logger.warning.call_args[1]["report"] == {}

    def test_malformed_json(self, make_client, make_runtime):
        client = make_client(make_runtime())
        resp = client.post(
            "/csp-report",
            content="{not json",
            headers={"content-type": "application/csp-report"},
        )
        assert resp.status_code == 400

    def test_report_response_has_header(self, make_client, make_runtime):
        client = make_client(make_runtime())
        resp = client.post("/csp-report", json=_REPORT)
        assert _REPORT_ONLY in resp.headers
