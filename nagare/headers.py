from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TypeVar

V = TypeVar("V")


@dataclass(frozen=True)
class Single:
    """Header received on a single line."""

    value: str

    def joined(self) -> str:
        return self.value

    def __iter__(self):
        yield self.value


@dataclass(frozen=True)
class Multiple:
    """Header received on several lines, in arrival order."""

    values: tuple[str, ...]

    def joined(self) -> str:
        return ",".join(self.values)

    def __iter__(self):
        return iter(self.values)


HeaderValue = Single | Multiple


def collect_headers(pairs: Iterable[tuple[str, str]]) -> dict[str, HeaderValue]:
    """
    Group raw header lines into one entry per header name.

    Names are matched case-insensitively; the spelling of the first line seen
    is kept as the key. Repeated lines become a Multiple value so later stages
    never have to guess whether a value was split.
    """
    names: dict[str, str] = {}
    grouped: dict[str, list[str]] = {}
    for name, value in pairs:
        key = names.setdefault(name.lower(), name)
        grouped.setdefault(key, []).append(value)

    out: dict[str, HeaderValue] = {}
    for name, values in grouped.items():
        if len(values) == 1:
            out[name] = Single(values[0])
        else:
            out[name] = Multiple(tuple(values))
    return out


def flatten_headers(headers: Mapping[str, str | HeaderValue | Iterable[str]]) -> list[tuple[str, str]]:
    """
    Turn a header mapping back into raw (name, value) lines.

    Values may be plain strings, Single/Multiple values decided upstream, or
    a sequence of strings; anything but a plain string contributes one line
    per value.
    """
    pairs: list[tuple[str, str]] = []
    for name, value in headers.items():
        if isinstance(value, str):
            pairs.append((name, value))
        else:
            pairs.extend((name, item) for item in value)
    return pairs


def normalize_headers(headers: Mapping[str, HeaderValue]) -> dict[str, str]:
    """Collapse every header to a single comma-joined string."""
    return {name: value.joined() for name, value in headers.items()}


def find_header(headers: Mapping[str, V], name: str) -> V | None:
    """Look a header up by name, ignoring case."""
    key = name.lower()
    for candidate, value in headers.items():
        if candidate.lower() == key:
            return value
    return None
