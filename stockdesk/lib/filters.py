"""
Table filter <-> URL query parameter encoding

Multi-select values are joined with FILTER_DELIMITER, order preserved.
Date ranges are encoded as "start|end" with either side allowed to be empty.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

FILTER_DELIMITER = "|"

FILTER_TYPES = ("text", "select", "multi", "date-range")


@dataclass(frozen=True)
class FilterDef:
    column_id: str
    type: str = "text"  # text, select, multi, date-range

    def __post_init__(self):
        if self.type not in FILTER_TYPES:
            raise ValueError(f"Unknown filter type: {self.type}")


def strip_outer_quotes(value: str) -> str:
    text = value.strip()
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def _is_empty(value: Any) -> bool:
    if value is None or value == "":
        return True
    if isinstance(value, (list, tuple)) and len(value) == 0:
        return True
    return False


def encode_filters_to_params(
    filters: Sequence[Dict[str, Any]],
    filter_defs: Optional[Sequence[FilterDef]] = None,
) -> Dict[str, Optional[str]]:
    """
    Encode column filters ([{"id": ..., "value": ...}]) to query params.
    Empty values map to None so the caller can drop the parameter.
    """
    params: Dict[str, Optional[str]] = {}
    allowed_ids = [f.column_id for f in filter_defs] if filter_defs is not None else None
    types = {f.column_id: f.type for f in filter_defs or []}

    for f in filters:
        column_id = f["id"]
        value = f.get("value")
        if allowed_ids is not None and column_id not in allowed_ids:
            continue

        if _is_empty(value):
            params[column_id] = None
            continue

        if types.get(column_id) == "date-range":
            params[column_id] = encode_date_range(*value)
        elif isinstance(value, (list, tuple)):
            params[column_id] = FILTER_DELIMITER.join(strip_outer_quotes(str(v)) for v in value)
        else:
            params[column_id] = strip_outer_quotes(str(value))

    return params


def decode_params_to_filters(
    search: Dict[str, Optional[str]],
    filter_defs: Sequence[FilterDef],
) -> List[Dict[str, Any]]:
    """Decode query params back into column filters, in filter_defs order"""
    out: List[Dict[str, Any]] = []

    for f in filter_defs:
        raw = search.get(f.column_id)
        if raw is None or raw == "":
            continue

        normalized = strip_outer_quotes(raw)

        if f.type == "multi":
            values = [strip_outer_quotes(v) for v in normalized.split(FILTER_DELIMITER)]
            out.append({"id": f.column_id, "value": [v for v in values if v]})
        elif f.type == "date-range":
            start, end = decode_date_range(normalized)
            if start or end:
                out.append({"id": f.column_id, "value": (start, end)})
        else:
            out.append({"id": f.column_id, "value": normalized})

    return out


def split_multi(raw: Optional[str]) -> List[str]:
    """Split a multi-select query value; empty parts are dropped"""
    if not raw:
        return []
    values = [strip_outer_quotes(v) for v in strip_outer_quotes(raw).split(FILTER_DELIMITER)]
    return [v for v in values if v]


def encode_date_range(start: Optional[str] = None, end: Optional[str] = None) -> Optional[str]:
    if not start and not end:
        return None
    return f"{start or ''}{FILTER_DELIMITER}{end or ''}"


def decode_date_range(raw: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    if not raw:
        return None, None
    start, _, end = raw.partition(FILTER_DELIMITER)
    return (start.strip() or None), (end.strip() or None)
