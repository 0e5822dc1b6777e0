# main.py
import logging

from flask import Flask, request, jsonify

import config
from appinsights_client import TelemetryQueryError, format_query_error, run_query
from details import build_details
from models import Column, QueryResult
from pipeline import build_view, run_pipeline
from query_guard import QueryValidationError, apply_fetch_limit, validate_query
from ranking import compute_ranked_headers

LOG = logging.getLogger(__name__)

app = Flask(__name__)


def _body() -> dict:
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict):
        raise ValueError("JSON object body required")
    return body


def _max_rows(body: dict) -> int:
    val = body.get("max_rows", config.LOG_FETCH_SIZE)
    if isinstance(val, bool):
        raise ValueError("max_rows must be an integer")
    try:
        return int(val)
    except (TypeError, ValueError):
        raise ValueError("max_rows must be an integer")


def _result_from_body(body: dict) -> QueryResult:
    cols = body.get("columns")
    rows = body.get("rows")
    if not isinstance(cols, list):
        raise ValueError("columns must be an array")
    if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
        raise ValueError("rows must be an array of arrays")
    return QueryResult(columns=[Column.coerce(c) for c in cols], rows=rows)


def _validation_error(e: QueryValidationError):
    return jsonify({"error": str(e), "code": e.code}), 400


@app.route("/")
def home():
    return jsonify({
        "service": "telemetry result pipeline",
        "allowed_tables": config.ALLOWED_TABLES,
        "fetch_size": config.LOG_FETCH_SIZE,
    })


@app.route("/validate", methods=["POST"])
def validate():
    try:
        body = _body()
        query = body.get("query", "")
        if not isinstance(query, str):
            return jsonify({"error": "query must be a string"}), 400
        validate_query(query)
    except QueryValidationError as e:
        return _validation_error(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"ok": True})


@app.route("/fetch_limit", methods=["POST"])
def fetch_limit():
    try:
        body = _body()
        query = body.get("query")
        if not isinstance(query, str):
            return jsonify({"error": "query required"}), 400
        result = apply_fetch_limit(query, _max_rows(body))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(result._asdict())


@app.route("/details", methods=["POST"])
def details():
    try:
        body = _body()
        columns = body.get("columns") or []
        if not isinstance(columns, list):
            return jsonify({"error": "columns must be an array"}), 400
        cols = [Column.coerce(c) for c in columns]
        row = body.get("row")
        if not isinstance(row, list):
            return jsonify({"error": "row must be an array"}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    ts, msg, fields = build_details(cols, row)
    return jsonify({"timestamp": ts, "message": msg, "fields": [f.to_dict() for f in fields]})


@app.route("/headers", methods=["POST"])
def headers():
    try:
        result = _result_from_body(_body())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"headers": compute_ranked_headers(result.columns, result.rows)})


@app.route("/view", methods=["POST"])
def view():
    try:
        result = _result_from_body(_body())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(build_view(result))


@app.route("/query", methods=["POST"])
def query():
    try:
        body = _body()
        kql = body.get("query")
        if not isinstance(kql, str):
            return jsonify({"error": "query required"}), 400
        res = run_pipeline(kql, _max_rows(body), run_query)
    except QueryValidationError as e:
        return _validation_error(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except TelemetryQueryError as e:
        return jsonify({"error": format_query_error(e)}), 502
    return jsonify(res)


if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    LOG.info("Registered routes: %s", ", ".join(sorted(r.rule for r in app.url_map.iter_rules())))
    app.run(host="0.0.0.0", port=8000)
