from __future__ import annotations
import json
from typing import Any, NoReturn, Union

from logstream.errors import ParseError


def _reject_constant(name: str) -> NoReturn:
    # NaN and Infinity are not JSON
    raise ValueError(f"Non-standard constant {name}")


def decode_record(raw: Union[str, bytes]) -> Any:
    """
    Decode one inbound frame into a log record.

    Text frames are parsed as JSON directly, binary frames are decoded as
    UTF-8 first. Any JSON value is accepted, no schema is enforced.

    Raises:
        ParseError: the frame is not UTF-8, not valid JSON or nested too deeply
    """
    text = raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Invalid UTF-8: {e}", raw) from e
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        raise ParseError(f"Invalid JSON: {e}", raw) from e


def format_record(value: Any) -> str:
    """One-line JSON rendering of a decoded record"""
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (ValueError, TypeError, RecursionError) as e:
        raise ParseError(f"Cannot render {type(value).__name__} record: {e}", "") from e
