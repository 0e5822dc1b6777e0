# models.py
# simple containers shared by the guard, the flattener and the ranking code
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple


@dataclass(frozen=True)
class Column:
    name: str
    type: str = "string"

    @classmethod
    def coerce(cls, value: Any) -> "Column":
        """Accept a Column, a bare name or a {"name", "type"} mapping."""
        if isinstance(value, Column):
            return value
        if isinstance(value, dict):
            name = value.get("name")
            if not isinstance(name, str):
                raise ValueError(f"column entry missing name: {value!r}")
            return cls(name=name, type=str(value.get("type") or "string"))
        if isinstance(value, str):
            return cls(name=value)
        raise ValueError(f"unsupported column entry: {value!r}")


class Group(Enum):
    STANDARD = "standard"
    CUSTOM = "custom"


@dataclass(frozen=True)
class DetailField:
    key: str
    value: str
    group: Group
    priority: int  # lower renders first

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "value": self.value, "group": self.group.value, "priority": self.priority}


class FetchLimitResult(NamedTuple):
    query: str
    applied: bool
    reason: str


@dataclass
class QueryResult:
    columns: List[Column] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)
    table_name: str = ""

    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "QueryResult":
        """
        Build a result from an Application Insights response body.
        Only the first table is used (KQL queries typically return one).
        """
        tables = (payload or {}).get("tables") or []
        if not tables:
            return cls()
        table = tables[0]
        cols = [Column.coerce(c) for c in table.get("columns") or []]
        rows = [list(r) for r in table.get("rows") or []]
        return cls(columns=cols, rows=rows, table_name=table.get("name") or "PrimaryResult")
