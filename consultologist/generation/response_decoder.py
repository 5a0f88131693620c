"""
Response Decoder - Generated Text to Candidate Record

Parses the raw generation text as exactly one JSON object. Only syntax is
checked here; whether the object matches the schema is the validator's job.

Rejected:
    - Malformed JSON
    - Trailing content after the object
    - A root that is not an object (array, string, number, null)
    - NaN / Infinity literals (not JSON)
    - Duplicate keys (json.loads would silently keep the last one)
    - Nesting deeper than the interpreter recursion limit
"""

import json
from typing import Any, Dict, List, Tuple

from loguru import logger

from consultologist.core.exceptions import DecodeError


class _DuplicateKeyError(ValueError):
    pass


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise _DuplicateKeyError(f"duplicate key {key!r}")
        result[key] = value
    return result


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-JSON constant {name}")


def decode(text: Any) -> Dict[str, Any]:
    """
    Decode generation text into a candidate consultation record.

    Args:
        text: Raw text returned by the generation backend

    Returns:
        The decoded JSON object (untrusted, not yet validated)

    Raises:
        DecodeError: If text is not exactly one JSON object; carries raw text

    Example:
        >>> decode('{"front_matter": {}}')
        {'front_matter': {}}
    """
    if not isinstance(text, str):
        raise DecodeError(str(text), f"expected text, got {type(text).__name__}")

    try:
        value = json.loads(
            text,
            object_pairs_hook=_reject_duplicate_keys,
            parse_constant=_reject_constant,
        )
    except json.JSONDecodeError as e:
        logger.debug(f"Decode failed | {e.msg} at line {e.lineno} column {e.colno}")
        raise DecodeError(text, f"{e.msg} at line {e.lineno} column {e.colno}")
    except ValueError as e:
        raise DecodeError(text, str(e))
    except RecursionError:
        logger.debug(f"Decode failed | nesting too deep | Length: {len(text)} chars")
        raise DecodeError(text, "nesting too deep")

    if not isinstance(value, dict):
        raise DecodeError(text, f"expected a JSON object at the root, got {type(value).__name__}")

    return value
