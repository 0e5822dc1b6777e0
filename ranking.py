# ranking.py
# Orders the dynamic customDimensions columns of a result batch.
# Primaries (timestamp, message) come first, then pinned keys, then keys by
# keyword boost minus a penalty for long values. Pure; safe to call on every redraw.
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import config
from details import PARSE_WARNING_KEY, FlattenOptions, build_details, sort_keys

LOG = logging.getLogger(__name__)

PRIMARY_COLUMNS = ("timestamp", "message")


@dataclass(frozen=True)
class RankRule:
    pattern: "re.Pattern"
    boost: int

    def matches(self, key: str) -> bool:
        return self.pattern.search(key) is not None


DEFAULT_RULE_PATTERNS = [
    (r"^(request|operation|correlation|trace|span)", 3),
    (r"(status|result|outcome|code)", 2),
    (r"(error|exception|severity|fault|fail)", 3),
    (r"(duration|latency|elapsed)", 2),
    (r"(user|session|tenant|company|environment)", 2),
    (r"id$", 2),
]


def default_rank_rules() -> List[RankRule]:
    return [RankRule(re.compile(p, re.IGNORECASE), boost) for p, boost in DEFAULT_RULE_PATTERNS]


def parse_rank_rules(spec: str) -> List[RankRule]:
    """
    Parse custom boost rules from either "pattern=boost;pattern=boost" or a
    JSON object {"pattern": boost}. Raises ValueError on malformed input.
    """
    spec = (spec or "").strip()
    if not spec:
        return []
    pairs: List[Tuple[str, Any]] = []
    if spec.startswith("{"):
        try:
            obj = json.loads(spec)
        except ValueError as e:
            raise ValueError(f"invalid rank regex JSON: {e}")
        if not isinstance(obj, dict):
            raise ValueError("rank regex JSON must be an object")
        pairs = sorted(obj.items())
    else:
        for part in spec.split(";"):
            part = part.strip()
            if not part:
                continue
            pattern, eq, boost = part.rpartition("=")
            if not eq or not pattern.strip() or not boost.strip():
                raise ValueError(f"invalid rank regex entry: {part}")
            pairs.append((pattern.strip(), boost.strip()))

    rules = []
    for pattern, boost in pairs:
        if isinstance(boost, bool):
            raise ValueError(f"invalid boost for {pattern}: {boost}")
        try:
            boost_val = int(boost)
        except (TypeError, ValueError):
            raise ValueError(f"invalid boost for {pattern}: {boost}")
        try:
            rules.append(RankRule(re.compile(pattern), boost_val))
        except re.error as e:
            raise ValueError(f"invalid rank regex {pattern!r}: {e}")
    return rules


def parse_pinned_list(spec: str) -> List[str]:
    out: List[str] = []
    seen = set()
    for part in (spec or "").split(","):
        v = part.strip()
        if not v or v.lower() in seen:
            continue
        seen.add(v.lower())
        out.append(v)
    return out


def _configured_rules() -> List[RankRule]:
    rules = default_rank_rules()
    try:
        rules.extend(parse_rank_rules(config.RANK_REGEX))
    except ValueError as e:
        LOG.error("Failed to parse custom rank regex; using defaults: %s", e)
    return rules


# parsed once at import; a bad RANK_REGEX is reported a single time
CONFIGURED_RULES: Tuple[RankRule, ...] = tuple(_configured_rules())
CONFIGURED_PINNED: Tuple[str, ...] = tuple(parse_pinned_list(config.RANK_PINNED))


@dataclass(frozen=True)
class RankOptions:
    enabled: bool = config.RANK_ENABLE
    sample_size: int = config.RANK_SAMPLE_SIZE
    len_threshold: int = config.RANK_LEN_THRESHOLD
    len_penalty: int = config.RANK_LEN_PENALTY
    rules: Tuple[RankRule, ...] = CONFIGURED_RULES
    pinned: Tuple[str, ...] = CONFIGURED_PINNED


def average_length(values: Iterable[str]) -> float:
    lengths = [len(v) for v in values if v]
    if not lengths:
        return 0.0
    return sum(lengths) / len(lengths)


def score_key(key: str, values: Sequence[str], options: RankOptions) -> int:
    score = 0
    for rule in options.rules:
        if rule.matches(key):
            score += rule.boost
    if average_length(values) > options.len_threshold:
        score -= options.len_penalty
    return score


def _distinct_keys(primary_columns: Sequence[str], custom_keys: Iterable[str]) -> List[str]:
    seen = set(primary_columns)
    out = []
    for k in custom_keys:
        if k in seen:
            continue
        seen.add(k)
        out.append(k)
    return out


def rank_headers(primary_columns: Sequence[str], custom_keys: Iterable[str],
                 samples: Optional[Mapping[str, Sequence[str]]] = None,
                 options: Optional[RankOptions] = None) -> List[str]:
    """
    Return primary_columns followed by every distinct custom key exactly once.

    custom_keys must be in first-seen order; that order breaks score ties
    before the case-insensitive name does. samples maps a key to the string
    values seen for it in the sampled rows.
    """
    opts = options or RankOptions()
    samples = samples or {}
    keys = _distinct_keys(primary_columns, custom_keys)
    if not opts.enabled:
        return list(primary_columns) + sort_keys(keys)

    pinned_idx = {}
    for i, p in enumerate(opts.pinned):
        pinned_idx.setdefault(p.lower(), i)

    def order(item):
        first_seen, key = item
        pin = pinned_idx.get(key.lower())
        score = score_key(key, samples.get(key, ()), opts)
        return (
            pin is None,
            pin if pin is not None else 0,
            -score,
            first_seen,
            key.lower(),
            key,
        )

    ranked = sorted(enumerate(keys), key=order)
    return list(primary_columns) + [k for _, k in ranked]


def collect_samples(columns: Sequence[Any], rows: Sequence[Sequence[Any]],
                    sample_size: int,
                    flatten_options: Optional[FlattenOptions] = None) -> Tuple[List[str], Dict[str, List[str]]]:
    """
    Discover custom keys across all rows in first-seen order and gather the
    values of the first `sample_size` rows for scoring.
    """
    keys: List[str] = []
    seen = set()
    samples: Dict[str, List[str]] = {}
    for i, row in enumerate(rows):
        _, _, fields = build_details(columns, row, flatten_options)
        for f in fields:
            if f.key == PARSE_WARNING_KEY:
                continue
            if f.key not in seen:
                seen.add(f.key)
                keys.append(f.key)
            if i < sample_size:
                samples.setdefault(f.key, []).append(f.value)
    return keys, samples


def compute_ranked_headers(columns: Sequence[Any], rows: Sequence[Sequence[Any]],
                           options: Optional[RankOptions] = None,
                           flatten_options: Optional[FlattenOptions] = None) -> List[str]:
    opts = options or RankOptions()
    if not rows:
        return list(PRIMARY_COLUMNS)
    start = time.monotonic()
    sample_size = opts.sample_size if opts.sample_size > 0 else len(rows)
    keys, samples = collect_samples(columns, rows, sample_size, flatten_options)
    if not keys:
        return list(PRIMARY_COLUMNS)
    headers = rank_headers(PRIMARY_COLUMNS, keys, samples, opts)
    LOG.debug(
        "Ranking complete sample_size=%d total_keys=%d top_keys=%s took_ms=%d",
        min(sample_size, len(rows)), len(keys),
        ";".join(headers[len(PRIMARY_COLUMNS):len(PRIMARY_COLUMNS) + 10]),
        int((time.monotonic() - start) * 1000),
    )
    return headers
