"""Serialization of schema and AST objects to JSON-compatible dicts."""

from __future__ import annotations

import dataclasses
import json

from .ast import Node, Param
from .schema import FieldDef, Schema, StructDef, Version


def serialize(obj: object) -> object:
    """Recursively serialize an object to a JSON-compatible structure."""
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [serialize(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): serialize(v) for k, v in obj.items()}
    if isinstance(obj, Version):
        return str(obj)
    if isinstance(obj, Schema):
        return {s.name: serialize(s) for s in obj.structs}
    if isinstance(obj, StructDef):
        return {"named": obj.named, "fields": serialize(obj.fields)}
    if isinstance(obj, FieldDef):
        d: dict[str, object] = {"type": obj.type, "index": obj.index}
        if obj.name is not None:
            d["name"] = obj.name
        if obj.version is not None:
            d["version"] = str(obj.version)
        return d
    if isinstance(obj, (Node, Param)):
        d = {"_type": type(obj).__name__}
        for f in dataclasses.fields(obj):
            d[f.name] = serialize(getattr(obj, f.name))
        return d
    raise TypeError("cannot serialize " + type(obj).__name__)


def to_json(obj: object) -> str:
    """Serialize object to pretty-printed JSON."""
    return json.dumps(serialize(obj), indent=2)
