import pytest
import requests

import appinsights_client
from appinsights_client import TelemetryQueryError, format_query_error, query_url, run_query


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = text.encode()
        self.headers = {"x-ms-request-id": "rid"}

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def test_query_url():
    assert query_url("abc", "https://example.test/") == "https://example.test/v1/apps/abc/query"


def test_run_query_success(monkeypatch):
    calls = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.update(url=url, json=json, headers=headers, timeout=timeout)
        return FakeResponse(payload={"tables": [{
            "name": "PrimaryResult",
            "columns": [{"name": "timestamp", "type": "datetime"}],
            "rows": [["t1"], ["t2"]],
        }]})

    monkeypatch.setattr(appinsights_client.requests, "post", fake_post)
    res = run_query("traces | take 2", app_id="app", api_key="secret", timeout=5)
    assert res.rows == [["t1"], ["t2"]]
    assert calls["url"].endswith("/v1/apps/app/query")
    assert calls["json"] == {"query": "traces | take 2"}
    assert calls["headers"]["x-api-key"] == "secret"
    assert calls["timeout"] == 5


def test_run_query_http_error(monkeypatch):
    monkeypatch.setattr(appinsights_client.requests, "post",
                        lambda *a, **kw: FakeResponse(status_code=403, text="forbidden"))
    with pytest.raises(TelemetryQueryError) as exc:
        run_query("traces", app_id="app", api_key="k")
    assert exc.value.status_code == 403


def test_run_query_transport_error(monkeypatch):
    def boom(*a, **kw):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(appinsights_client.requests, "post", boom)
    with pytest.raises(TelemetryQueryError):
        run_query("traces", app_id="app", api_key="k")


def test_run_query_requires_credentials(monkeypatch):
    monkeypatch.setattr(appinsights_client.config, "APPINSIGHTS_APP_ID", "")
    monkeypatch.setattr(appinsights_client.config, "APPINSIGHTS_API_KEY", "")
    with pytest.raises(TelemetryQueryError):
        run_query("traces")
    with pytest.raises(TelemetryQueryError):
        run_query("traces", app_id="app")


@pytest.mark.parametrize("err,prefix", [
    (TelemetryQueryError("x", status_code=401), "Authentication failed"),
    (TelemetryQueryError("x", status_code=403), "Access denied"),
    (TelemetryQueryError("timeout: read timed out"), "Query timed out"),
    (TelemetryQueryError("Syntax error near |", status_code=400), "KQL syntax error"),
    (TelemetryQueryError("x", status_code=404), "Application Insights resource not found"),
    (TelemetryQueryError("boom"), "Query execution failed"),
])
def test_format_query_error(err, prefix):
    assert format_query_error(err).startswith(prefix)


def test_format_query_error_none():
    assert format_query_error(None) == ""
