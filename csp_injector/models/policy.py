"""Immutable CSP policy model: directive name -> raw string or source list."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Union

from pydantic_core import core_schema


class InvalidPolicyValue(ValueError):
    """A directive value is neither absent, a string, nor a list of sources."""


@dataclass(frozen=True)
class RawString:
    """Opaque directive value, emitted exactly as configured."""

    value: str


@dataclass(frozen=True)
class SourceList:
    """Ordered source tokens for a directive."""

    sources: tuple[str, ...] = ()


DirectiveValue = Union[RawString, SourceList]


def normalize(value: Any) -> list[str]:
    """Normalize a directive value into an ordered list of source tokens.

    Example:
        >>> normalize("'self' example.com")
        ["'self'", "example.com"]
    """
    if value is None:
        return []
    if isinstance(value, RawString):
        value = value.value
    elif isinstance(value, SourceList):
        value = value.sources
    if isinstance(value, str):
        return value.split(" ") if value else []
    if isinstance(value, (list, tuple)):
        if not all(isinstance(token, str) for token in value):
            raise InvalidPolicyValue(f"Source list entries must be strings: {value!r}")
        return list(value)
    raise InvalidPolicyValue(f"Unknown source list value: {value!r}")


def to_directive_value(value: Any) -> DirectiveValue:
    """Decide the storage form of a configured value once, at the boundary."""
    if isinstance(value, (RawString, SourceList)):
        return value
    if value is None:
        return SourceList()
    if isinstance(value, str):
        return RawString(value)
    return SourceList(tuple(normalize(value)))


def render_value(value: DirectiveValue) -> str:
    if isinstance(value, RawString):
        return value.value
    return " ".join(value.sources)


class Policy(Mapping[str, DirectiveValue]):
    """Insertion-ordered, read-only mapping of CSP directives.

    Derived policies are produced with ``replace()``; the original is never
    touched, so a configured base policy can be shared between requests.
    """

    __slots__ = ("_directives",)

    def __init__(self, directives: Mapping[str, DirectiveValue] | None = None) -> None:
        self._directives: dict[str, DirectiveValue] = dict(directives or {})

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> Policy:
        """Build a policy from plain config data (strings, lists or None).

        Raises InvalidPolicyValue for any other value type.
        """
        if mapping is None:
            return cls()
        if not isinstance(mapping, Mapping):
            raise InvalidPolicyValue(f"Policy must be a mapping, got {type(mapping).__name__}")
        directives: dict[str, DirectiveValue] = {}
        for name, value in mapping.items():
            try:
                directives[str(name)] = to_directive_value(value)
            except InvalidPolicyValue as exc:
                raise InvalidPolicyValue(f"Invalid value for directive '{name}': {exc}") from exc
        return cls(directives)

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.is_instance_schema(cls)

    def replace(self, name: str, value: DirectiveValue) -> Policy:
        """Return a copy with one directive set. Other values are shared."""
        directives = dict(self._directives)
        directives[name] = value
        return Policy(directives)

    def sources(self, name: str) -> list[str]:
        return normalize(self._directives.get(name))

    def to_dict(self) -> dict[str, str | list[str]]:
        """Plain-data view, used for logging and the CLI."""
        return {
            name: value.value if isinstance(value, RawString) else list(value.sources)
            for name, value in self._directives.items()
        }

    def __getitem__(self, name: str) -> DirectiveValue:
        return self._directives[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._directives)

    def __len__(self) -> int:
        return len(self._directives)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Policy):
            return list(self._directives.items()) == list(other._directives.items())
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self._directives.items()))

    def __repr__(self) -> str:
        return f"Policy({self.to_dict()!r})"
