"""Line item parameter bags: opaque JSON documents owned by the presentation layer."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

CORRUPT_PARAMS = {"description": "Corrupt data"}


# PUBLIC_INTERFACE
def encode_params(params: Union[dict, str, None]) -> str:
    """Serialize a bag for storage; strings are stored verbatim."""
    if params is None:
        return "{}"
    if isinstance(params, str):
        return params
    return json.dumps(params, ensure_ascii=False)


# PUBLIC_INTERFACE
def decode_params(raw: Optional[str], item_id: Optional[int] = None) -> Any:
    """
    Parse a stored bag. A malformed bag is logged and replaced by the
    CORRUPT_PARAMS sentinel instead of failing the caller.
    """
    if raw is None or raw == "":
        return {}
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.error("Error parsing params for item %s: %s", item_id, exc)
        return dict(CORRUPT_PARAMS)


# PUBLIC_INTERFACE
def params_description(params: Any) -> str:
    """The `description` key used to look up product composition."""
    if isinstance(params, dict):
        value = params.get("description")
        return value if isinstance(value, str) else ""
    return ""
