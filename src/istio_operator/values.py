"""Helm values overlay with typed, dotted-path accessors."""

from __future__ import annotations

import copy
from typing import Any

import yaml

from .errors import ValuesDecodeError


class HelmValues(dict):
    """A JSON-shaped values tree (mappings, sequences, scalars).

    Lookups use dotted paths such as ``"istio_cni.enabled"``. Typed getters
    return ``(value, found)`` and raise ValuesDecodeError when the value at
    the path exists but has the wrong type.
    """

    @classmethod
    def from_raw(cls, raw: Any) -> HelmValues:
        """Parse ``spec.values``, which may be a mapping or a JSON/YAML blob."""
        if raw is None or raw == "" or raw == b"":
            return cls()
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        if isinstance(raw, str):
            try:
                raw = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                raise ValuesDecodeError("<root>", "mapping", raw) from e
            if raw is None:
                return cls()
        if not isinstance(raw, dict):
            raise ValuesDecodeError("<root>", "mapping", raw)
        return cls(copy.deepcopy(raw))

    def get_value(self, path: str) -> tuple[Any, bool]:
        node: Any = self
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return None, False
            node = node[part]
        return node, True

    def _get_typed(self, path: str, expected: type, name: str, default: Any):
        value, found = self.get_value(path)
        if not found or value is None:
            return default, False
        if not isinstance(value, expected):
            raise ValuesDecodeError(path, name, value)
        return value, True

    def get_bool(self, path: str) -> tuple[bool, bool]:
        return self._get_typed(path, bool, "bool", False)

    def get_string(self, path: str) -> tuple[str, bool]:
        return self._get_typed(path, str, "string", "")

    def set(self, path: str, value: Any) -> None:
        """Set a value, creating intermediate mappings as needed."""
        parts = path.split(".")
        node: dict[str, Any] = self
        walked = []
        for part in parts[:-1]:
            walked.append(part)
            child = node.get(part)
            if child is None:
                child = node[part] = {}
            elif not isinstance(child, dict):
                raise ValuesDecodeError(".".join(walked), "mapping", child)
            node = child
        node[parts[-1]] = value

    def deep_copy(self) -> HelmValues:
        return HelmValues(copy.deepcopy(dict(self)))
