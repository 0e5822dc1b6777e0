import pytest

from models import Column, QueryResult
from pipeline import build_view, prepare_query, run_pipeline
from query_guard import UnknownTableError
from ranking import RankOptions, default_rank_rules


def _result():
    cols = [Column("timestamp"), Column("message"), Column("customDimensions", "dynamic")]
    rows = [
        ["t1", "first", {"eventId": "RT0019", "note": "n"}],
        ["t2", "second", '{"errorCode": 500}'],
    ]
    return QueryResult(columns=cols, rows=rows)


def test_prepare_query_applies_limit():
    prepared = prepare_query("traces | where a == 1", 25)
    assert prepared.query == "traces | where a == 1 | take 25"
    assert prepared.applied


def test_prepare_query_rejects_invalid():
    with pytest.raises(UnknownTableError):
        prepare_query("nope", 25)


def test_build_view():
    opts = RankOptions(rules=tuple(default_rank_rules()), pinned=())
    view = build_view(_result(), rank_options=opts)
    assert view["row_count"] == 2
    assert view["headers"][:2] == ["timestamp", "message"]
    assert set(view["headers"][2:]) == {"eventId", "note", "errorCode"}
    first = view["rows"][0]
    assert first["fields"] == {"timestamp": "t1", "message": "first", "eventId": "RT0019", "note": "n"}
    assert [d["key"] for d in first["details"]] == ["timestamp", "message", "eventId", "note"]
    assert first["details"][0]["group"] == "standard"
    assert first["details"][2]["group"] == "custom"


def test_run_pipeline_uses_bounded_query():
    seen = []

    def executor(q):
        seen.append(q)
        return _result()

    view = run_pipeline("exceptions", 10, executor)
    assert seen == ["exceptions | take 10"]
    assert view["query"] == "exceptions | take 10"
    assert view["fetch_limit"] == {"applied": True, "reason": "applied_table_no_user_limit", "limit": 10}


def test_run_pipeline_does_not_execute_invalid_query():
    def executor(q):
        raise AssertionError("should not run")

    with pytest.raises(ValueError):
        run_pipeline("traces | where (x", 10, executor)


def test_query_result_from_response():
    payload = {"tables": [{
        "name": "PrimaryResult",
        "columns": [{"name": "timestamp", "type": "datetime"}, {"name": "customDimensions", "type": "dynamic"}],
        "rows": [["2025-01-01", "{\"a\":1}"]],
    }]}
    res = QueryResult.from_response(payload)
    assert res.column_names() == ["timestamp", "customDimensions"]
    assert res.columns[0].type == "datetime"
    assert res.rows == [["2025-01-01", "{\"a\":1}"]]
    assert QueryResult.from_response({}).rows == []
