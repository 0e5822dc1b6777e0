# appinsights_client.py
import logging
import time
from typing import Optional

import requests

import config
from models import QueryResult

LOG = logging.getLogger(__name__)


class TelemetryQueryError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def query_url(app_id: str, base_url: Optional[str] = None) -> str:
    base = (base_url or config.APPINSIGHTS_BASE_URL).rstrip("/")
    return f"{base}/v1/apps/{app_id}/query"


def run_query(query: str, app_id: Optional[str] = None, api_key: Optional[str] = None,
              timeout: Optional[int] = None) -> QueryResult:
    """
    Execute a KQL query against the Application Insights REST API and return
    the first result table. The query is sent as-is; bound it first.
    """
    app_id = (app_id or config.APPINSIGHTS_APP_ID).strip()
    api_key = api_key or config.APPINSIGHTS_API_KEY
    if not app_id:
        raise TelemetryQueryError("Application Insights app id not configured (APPINSIGHTS_APP_ID)")
    if not api_key:
        raise TelemetryQueryError("Application Insights API key not configured (APPINSIGHTS_API_KEY)")

    url = query_url(app_id)
    timeout = timeout or config.QUERY_TIMEOUT
    LOG.debug("KQL preflight url=%s query_len=%d timeout=%s", url, len(query), timeout)

    start = time.monotonic()
    try:
        resp = requests.post(
            url,
            json={"query": query},
            headers={"x-api-key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
        )
    except requests.Timeout as e:
        LOG.error("KQL request timed out: %s", e)
        raise TelemetryQueryError(f"timeout: {e}")
    except requests.RequestException as e:
        LOG.error("KQL request failed: %s", e)
        raise TelemetryQueryError(f"failed to execute request: {e}")

    duration_ms = int((time.monotonic() - start) * 1000)
    if resp.status_code != 200:
        LOG.error(
            "KQL API error status=%d duration_ms=%d x-ms-request-id=%s resp_bytes=%d",
            resp.status_code, duration_ms, resp.headers.get("x-ms-request-id", ""), len(resp.content or b""),
        )
        raise TelemetryQueryError(
            f"API request failed with status {resp.status_code}: {resp.text}", status_code=resp.status_code
        )

    try:
        payload = resp.json()
    except ValueError as e:
        LOG.error("KQL response parse failed: %s", e)
        raise TelemetryQueryError(f"failed to parse response: {e}", status_code=resp.status_code)

    result = QueryResult.from_response(payload)
    LOG.info(
        "KQL request success duration_ms=%d rows=%d cols=%d table=%s",
        duration_ms, len(result.rows), len(result.columns), result.table_name or "PrimaryResult",
    )
    return result


def format_query_error(err: Optional[Exception]) -> str:
    """User-facing wording for a failed query."""
    if err is None:
        return ""
    text = str(err)
    lower = text.lower()
    status = getattr(err, "status_code", None)

    if status == 401 or "unauthorized" in lower or "401" in text:
        return "Authentication failed. Check the Application Insights API key."
    if status == 403 or "forbidden" in lower or "403" in text:
        return "Access denied. Check the API key permissions for Application Insights data access."
    if "timeout" in lower or "timed out" in lower:
        return "Query timed out. Try simplifying your query or reducing the time range."
    if "syntax" in lower or "parse" in lower:
        return f"KQL syntax error: {text}"
    if status == 404 or "not found" in lower or "404" in text:
        return "Application Insights resource not found. Check your configuration."
    return f"Query execution failed: {text}"
