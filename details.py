# details.py
# Flattens one row's customDimensions payload into sorted, bounded display fields.
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import config
from models import Column, DetailField, Group

RAW_KEY = "raw"
PARSE_WARNING_KEY = "(parse_warning)"
PARSE_WARNING_TEXT = "customDimensions is not valid JSON; showing raw string"

# recursion ceiling for max_depth; deeper compound values are serialized
MAX_DEPTH_CEILING = 32
TOO_DEEP_TEXT = "(nested too deeply to display)"

PRIORITY_WARNING = 0
PRIORITY_FIELD = 10


@dataclass(frozen=True)
class FlattenOptions:
    max_depth: int = config.FLATTEN_MAX_DEPTH
    max_entries: int = config.FLATTEN_MAX_ENTRIES
    timestamp_columns: Tuple[str, ...] = ("timestamp", "timeGenerated")
    message_columns: Tuple[str, ...] = ("message",)
    payload_columns: Tuple[str, ...] = ("customDimensions",)


DEFAULT_OPTIONS = FlattenOptions()


def find_column_index(columns: Sequence[Any], *names: str) -> int:
    """Index of the first of `names` present in `columns` (case-insensitive), or -1."""
    lowered = [(c.name if isinstance(c, Column) else str(c)).strip().lower() for c in columns]
    for name in names:
        try:
            return lowered.index(name.lower())
        except ValueError:
            continue
    return -1


def json_compact(value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False, default=str)
    except RecursionError:
        return TOO_DEEP_TEXT
    except (TypeError, ValueError):
        # mixed-type dict keys cannot be sorted
        return str(value)


def format_scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (dict, list, tuple)):
        return json_compact(value)
    return str(value)


def _cell(row: Sequence[Any], idx: int) -> Any:
    if idx < 0 or idx >= len(row):
        return None
    return row[idx]


class _Flattener:
    """Collects path -> string entries, stopping once max_entries is reached."""

    def __init__(self, max_depth: int, max_entries: int):
        self.max_depth = max(0, min(max_depth, MAX_DEPTH_CEILING))
        self.max_entries = max_entries
        self.out: Dict[str, str] = {}

    def full(self) -> bool:
        return len(self.out) >= self.max_entries

    def put(self, key: str, value: str) -> None:
        if key in self.out or not self.full():
            self.out[key] = value

    def walk(self, value: Any, prefix: str, depth: int) -> None:
        key = prefix if prefix.strip() else RAW_KEY
        if isinstance(value, dict):
            if not value:
                self.put(key, "{}")
            elif depth > self.max_depth:
                self.put(key, json_compact(value))
            elif not self.full():
                for k in sorted(value, key=str):
                    if self.full():
                        return
                    child = f"{prefix}.{k}" if prefix else str(k)
                    self.walk(value[k], child, depth + 1)
        elif isinstance(value, (list, tuple)):
            if not value:
                self.put(key, "[]")
            elif depth > self.max_depth:
                self.put(key, json_compact(value))
            elif not self.full():
                for i, elem in enumerate(value):
                    if self.full():
                        return
                    self.walk(elem, f"{prefix}[{i}]", depth + 1)
        else:
            self.put(key, format_scalar(value))


def sort_keys(keys) -> List[str]:
    # case-insensitive, exact ordinal order breaks ties
    return sorted(keys, key=lambda k: (k.lower(), k))


def build_details(columns: Sequence[Any], row: Sequence[Any],
                  options: Optional[FlattenOptions] = None) -> Tuple[str, str, List[DetailField]]:
    """
    Extract the timestamp, the message and the flattened customDimensions of one row.

    The payload may be a dict, a list, a JSON string or anything else; strings
    that are not JSON and non-string scalars are shown verbatim under "raw"
    with a parse warning field in front. This never raises for payload shape.

    Returns (timestamp, message, fields); missing columns give "" / [].
    """
    opts = options or DEFAULT_OPTIONS
    ts_val = _cell(row, find_column_index(columns, *opts.timestamp_columns))
    msg_val = _cell(row, find_column_index(columns, *opts.message_columns))
    ts = format_scalar(ts_val)
    msg = format_scalar(msg_val)

    raw = _cell(row, find_column_index(columns, *opts.payload_columns))
    if raw is None:
        return ts, msg, []

    flattener = _Flattener(opts.max_depth, opts.max_entries)
    parse_warn = False
    if isinstance(raw, (dict, list, tuple)):
        flattener.walk(raw, "", 0)
    elif isinstance(raw, str):
        try:
            root = json.loads(raw)
        except (ValueError, RecursionError):
            parse_warn = True
            flattener.put(RAW_KEY, raw)
        else:
            if root is None:
                return ts, msg, []
            flattener.walk(root, "", 0)
    else:
        parse_warn = True
        flattener.put(RAW_KEY, format_scalar(raw))

    fields: List[DetailField] = []
    if parse_warn:
        fields.append(DetailField(PARSE_WARNING_KEY, PARSE_WARNING_TEXT, Group.CUSTOM, PRIORITY_WARNING))
    for k in sort_keys(flattener.out):
        fields.append(DetailField(k, flattener.out[k], Group.CUSTOM, PRIORITY_FIELD))
    return ts, msg, fields


def standard_fields(timestamp: str, message: str) -> List[DetailField]:
    fields = []
    if timestamp:
        fields.append(DetailField("timestamp", timestamp, Group.STANDARD, 0))
    if message:
        fields.append(DetailField("message", message, Group.STANDARD, 1))
    return fields
