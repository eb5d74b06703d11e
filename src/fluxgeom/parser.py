"""Loading Flux JSON documents from text or files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from fluxgeom.errors import ParseError


def _make_yaml() -> YAML:
    """Create a ruamel.yaml safe loader that errors on duplicate keys.

    JSON is a subset of YAML 1.2, so the same loader reads both.
    """
    yml = YAML(typ="safe")
    yml.allow_duplicate_keys = False
    return yml


def _read_source_text(source: str | Path) -> str:
    """Read document content from a path or treat the input as raw text."""
    if isinstance(source, Path):
        try:
            return source.read_text(encoding="utf-8")
        except OSError as e:
            raise ParseError(f"Cannot read file: {e}") from e
    return source


def load_document(source: str | Path) -> Any:
    """Parse a Flux JSON (or YAML) document into plain dicts and lists.

    Strict JSON is tried first; anything else goes through the YAML loader.
    Any value is accepted; deciding what is geometry is up to the builder.
    """
    text = _read_source_text(source)
    if not text.strip():
        raise ParseError("Document is empty")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return _make_yaml().load(text)
    except YAMLError as e:
        raise ParseError(f"Invalid document: {e}") from e
