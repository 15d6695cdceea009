"""Schema reader: ordered struct and field declarations from JSON.

The schema is a JSON object whose key order is the struct order:

    {
      "Position": {"fields": [{"name": "x", "type": "f32"},
                              {"name": "y", "type": "f32"}]},
      "End": {"fields": [{"name": "latest_finalized_frame", "type": "i32",
                          "version": "3.0"}]}
    }

A field's "type" is a primitive token, null, or the name of another struct.
"index", when given, must equal the field's position; "version" is the first
format version that carries the field.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path

from .types import check_type

DEFAULT_SCHEMA: Path = Path(__file__).parent / "structs.json"

# Named structs carry their validity bitmap in a field of this name.
VALIDITY: str = "validity"

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)$")


class SchemaError(Exception):
    """Malformed or inconsistent struct declaration."""


@dataclass(frozen=True, order=True)
class Version:
    """Format version, ordered as (major, minor)."""

    major: int
    minor: int

    @classmethod
    def parse(cls, text: str) -> Version:
        m = _VERSION_RE.match(text)
        if not m:
            raise SchemaError("invalid version '" + text + "' (expected MAJOR.MINOR)")
        return cls(int(m.group(1)), int(m.group(2)))

    def __str__(self) -> str:
        return str(self.major) + "." + str(self.minor)


@dataclass(frozen=True)
class FieldDef:
    """One field. name is None for positional (tuple-struct) fields."""

    name: str | None
    type: str | None
    index: int
    version: Version | None = None

    @property
    def key(self) -> str:
        """Column name: the field name, or its index for positional fields."""
        if self.name is not None:
            return self.name
        return str(self.index)


@dataclass(frozen=True)
class StructDef:
    name: str
    fields: tuple[FieldDef, ...]

    @property
    def named(self) -> bool:
        """True if every field has a name; such structs carry a validity bitmap."""
        return all(f.name is not None for f in self.fields)


@dataclass(frozen=True)
class Schema:
    structs: tuple[StructDef, ...]

    def names(self) -> frozenset[str]:
        return frozenset(s.name for s in self.structs)


def check_versions(struct_name: str, fields: tuple[FieldDef, ...]) -> None:
    """Reject minVersions that decrease in declaration order."""
    floor: Version | None = None
    for f in fields:
        if f.version is None:
            if floor is not None:
                raise SchemaError(
                    struct_name + "." + f.key + ": unversioned field follows field added in " + str(floor)
                )
            continue
        if floor is not None and f.version < floor:
            raise SchemaError(
                struct_name + "." + f.key + ": version " + str(f.version) + " precedes " + str(floor)
            )
        floor = f.version


def _parse_field(struct_name: str, position: int, raw: object) -> FieldDef:
    where = struct_name + ".fields[" + str(position) + "]"
    if not isinstance(raw, dict):
        raise SchemaError(where + ": expected an object")
    if "type" not in raw:
        raise SchemaError(where + ": missing 'type'")
    ty = raw["type"]
    if ty is not None and not isinstance(ty, str):
        raise SchemaError(where + ": 'type' must be a string or null")
    name = raw.get("name")
    if name is not None and not isinstance(name, str):
        raise SchemaError(where + ": 'name' must be a string")
    index = raw.get("index", position)
    if not isinstance(index, int) or isinstance(index, bool):
        raise SchemaError(where + ": 'index' must be an integer")
    if index != position:
        raise SchemaError(where + ": 'index' " + str(index) + " does not match position " + str(position))
    version = raw.get("version")
    if version is not None:
        if not isinstance(version, str):
            raise SchemaError(where + ": 'version' must be a string")
        try:
            version = Version.parse(version)
        except SchemaError as e:
            raise SchemaError(where + ": " + str(e)) from None
    return FieldDef(name, ty, index, version)


def _parse_struct(name: str, raw: object) -> StructDef:
    if not isinstance(raw, dict):
        raise SchemaError(name + ": expected an object")
    raw_fields = raw.get("fields")
    if not isinstance(raw_fields, list):
        raise SchemaError(name + ": 'fields' must be a list")
    fields = tuple(_parse_field(name, i, f) for i, f in enumerate(raw_fields))
    seen: set[str] = set()
    for f in fields:
        if f.name is None:
            continue
        if f.name == VALIDITY:
            raise SchemaError(name + ": field name '" + VALIDITY + "' is reserved")
        if f.name in seen:
            raise SchemaError(name + ": duplicate field '" + f.name + "'")
        seen.add(f.name)
    check_versions(name, fields)
    return StructDef(name, fields)


def schema_from_dict(data: object) -> Schema:
    """Build a Schema from decoded JSON, validating every declaration."""
    if not isinstance(data, dict):
        raise SchemaError("schema must be a JSON object of structs")
    schema = Schema(tuple(_parse_struct(name, raw) for name, raw in data.items()))
    known = schema.names()
    for s in schema.structs:
        for f in s.fields:
            check_type(f.type, known)
    return schema


def parse_schema(text: str) -> Schema:
    try:
        data = json.loads(text)
    except ValueError as e:
        raise SchemaError("invalid JSON: " + str(e)) from None
    return schema_from_dict(data)


def load_schema(path: str | Path | None = None) -> Schema:
    """Load a schema file; the bundled structs.json when path is None."""
    source = DEFAULT_SCHEMA if path is None else Path(path)
    with open(source, encoding="utf-8") as f:
        text = f.read()
    return parse_schema(text)
