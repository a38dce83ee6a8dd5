"""
Per-request resolution context.

A Context is an ordered, read-only mapping assembled for one broker call. It
feeds template placeholders and is overlaid onto the rendered plan. Deriving
a context never mutates the original, so one context can be shared freely
between concurrent tasks.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterator, Mapping
from typing import Any

_MISSING = object()


class _FoldedDict(dict):
    """dict that falls back to a case-insensitive match for missing keys."""

    def __init__(self, data: Mapping[str, Any]) -> None:
        super().__init__(data)
        self._folded: dict[str, Any] = {}
        for key in self:
            if isinstance(key, str):
                self._folded.setdefault(key.lower(), key)

    def __missing__(self, key: Any) -> Any:
        if isinstance(key, str) and key.lower() in self._folded:
            return dict.__getitem__(self, self._folded[key.lower()])
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        if dict.__contains__(self, key):
            return True
        return isinstance(key, str) and key.lower() in self._folded

    def get(self, key: Any, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default


def _fold(value: Any) -> Any:
    if isinstance(value, dict):
        return _FoldedDict({key: _fold(item) for key, item in value.items()})
    if isinstance(value, list):
        return [_fold(item) for item in value]
    return value


class Context(Mapping[str, Any]):
    """Immutable key/value structure used to resolve a plan."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None, /, **values: Any) -> None:
        merged: dict[str, Any] = dict(data or {})
        merged.update(values)
        self._data = copy.deepcopy(merged)

    @classmethod
    def build(
        cls,
        parameters: Mapping[str, Any] | None = None,
        *,
        project: Mapping[str, Any] | None = None,
    ) -> Context:
        """Assemble a context from request parameters and a project reference.

        The explicit ``project`` reference wins over a ``project`` key inside
        ``parameters``.
        """
        data = dict(parameters or {})
        if project is not None:
            data["project"] = dict(project)
        return cls(data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Context(keys={list(self._data)!r})"

    def with_value(self, key: str, value: Any) -> Context:
        """Return a copy of this context extended with one more key."""
        derived = Context.__new__(Context)
        data = dict(self._data)
        data[key] = copy.deepcopy(value)
        derived._data = data
        return derived

    def lookup(self, path: str, default: Any = None) -> Any:
        """Resolve a dotted path such as ``credentials.projects.p1.publicKey``."""
        current: Any = self._data
        for part in path.split("."):
            if isinstance(current, Mapping):
                current = current.get(part, _MISSING)
            elif isinstance(current, (list, tuple)) and part.isdigit():
                index = int(part)
                current = current[index] if index < len(current) else _MISSING
            else:
                current = _MISSING
            if current is _MISSING:
                return default
        return current

    def view(self) -> dict[str, Any]:
        """Return a private deep copy suitable for handing to a template engine."""
        return copy.deepcopy(self._data)

    def template_view(self) -> dict[str, Any]:
        """Return a private copy whose keys resolve case-insensitively.

        ``project.orgId`` finds a value supplied as ``Project.OrgID``. Top-level
        keys also get a lowercase alias unless that exact name is present, so an
        injected ``credentials`` wins over a caller's ``Credentials``.
        """
        view = {key: _fold(value) for key, value in self.view().items()}
        for key in list(view):
            if isinstance(key, str):
                view.setdefault(key.lower(), view[key])
        return view

    def to_document(self) -> dict[str, Any]:
        """Serialize to a generic JSON-compatible document.

        Raises:
            TypeError: if a value is not JSON serializable
        """
        return json.loads(json.dumps(self._data))
