# pipeline.py
# validate -> bound -> execute (injected) -> flatten rows -> rank headers
from typing import Any, Callable, Dict, Optional

from details import FlattenOptions, build_details, standard_fields
from models import FetchLimitResult, QueryResult
from query_guard import maybe_apply_fetch_limit, validate_query
from ranking import RankOptions, compute_ranked_headers


def prepare_query(query: str, max_rows: int) -> FetchLimitResult:
    """Raises QueryValidationError; otherwise returns the query to send."""
    validate_query(query)
    return maybe_apply_fetch_limit(query, max_rows)


def build_view(result: QueryResult, rank_options: Optional[RankOptions] = None,
               flatten_options: Optional[FlattenOptions] = None) -> Dict[str, Any]:
    rows = []
    for row in result.rows:
        ts, msg, fields = build_details(result.columns, row, flatten_options)
        values = {"timestamp": ts, "message": msg}
        for f in fields:
            values.setdefault(f.key, f.value)
        details = standard_fields(ts, msg) + fields
        rows.append({
            "timestamp": ts,
            "message": msg,
            "fields": values,
            "details": [f.to_dict() for f in details],
        })
    headers = compute_ranked_headers(result.columns, result.rows, rank_options, flatten_options)
    return {"headers": headers, "rows": rows, "row_count": len(rows)}


def run_pipeline(query: str, max_rows: int, executor: Callable[[str], QueryResult],
                 rank_options: Optional[RankOptions] = None,
                 flatten_options: Optional[FlattenOptions] = None) -> Dict[str, Any]:
    prepared = prepare_query(query, max_rows)
    result = executor(prepared.query)
    view = build_view(result, rank_options, flatten_options)
    view["query"] = prepared.query
    view["fetch_limit"] = {"applied": prepared.applied, "reason": prepared.reason, "limit": max_rows}
    return view
