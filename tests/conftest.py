"""Pytest configuration for colgen test suite."""

import sys
from pathlib import Path

import pytest

# Add project root to path for src imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.schema import Schema, StructDef, parse_schema  # noqa: E402


@pytest.fixture
def load():
    """Parse a schema from a dict literal written as JSON text."""

    def _load(text: str) -> Schema:
        return parse_schema(text)

    return _load


@pytest.fixture
def first_struct(load):
    """Parse a one-struct schema and return (StructDef, known struct names)."""

    def _first(text: str) -> tuple[StructDef, frozenset[str]]:
        schema = load(text)
        assert len(schema.structs) >= 1
        return schema.structs[0], schema.names()

    return _first
