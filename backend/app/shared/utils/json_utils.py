"""
JSON Utility Functions
Parsing of JSON-ish settings and conversion of run summaries for JSONB columns.
"""
import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Union, List, Dict


def safe_json_parse(data: Any, default: Any = None) -> Union[Dict, List, Any]:
    """
    Parse a JSON string, passing through already-parsed dicts/lists.

    Examples:
        >>> safe_json_parse('{"news": 5}')
        {'news': 5}

        >>> safe_json_parse('not json', default={})
        {}
    """
    if data is None:
        return default

    if isinstance(data, (dict, list)):
        return data

    if isinstance(data, str):
        if not data.strip():
            return default
        try:
            return json.loads(data)
        except (json.JSONDecodeError, ValueError):
            return default

    return default


def to_jsonable(data: Any) -> Any:
    """
    Recursively convert a summary into JSON-safe values.

    datetimes/dates become ISO strings, enums their value, tuples and sets lists.
    """
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    if isinstance(data, dict):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in data.items()}
    if isinstance(data, (list, tuple, set)):
        return [to_jsonable(v) for v in data]
    return data
