"""Conversion of script return values into JSON-compatible structures."""

import json
import math
from datetime import date, datetime
from typing import Any


def to_jsonable(obj: Any) -> Any:
    """Convert a script result into plain JSON-compatible Python objects."""
    # pandas objects
    if hasattr(obj, "to_json") and hasattr(obj, "__class__"):
        class_name = obj.__class__.__name__
        if class_name == "DataFrame":
            return json.loads(obj.to_json(orient="records", date_format="iso"))
        elif class_name == "Series":
            return json.loads(obj.to_json(date_format="iso"))

    # numpy arrays and scalars
    if hasattr(obj, "tolist") and hasattr(obj, "__array__"):
        return to_jsonable(obj.tolist())
    if hasattr(obj, "item") and hasattr(obj, "dtype"):
        return to_jsonable(obj.item())

    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in obj]
    if isinstance(obj, float) and (math.isnan(obj) or math.isinf(obj)):
        return None
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)


def dumps_result(obj: Any, indent: int = 2) -> str:
    """Serialize a script result to pretty JSON."""
    return json.dumps(to_jsonable(obj), indent=indent)
