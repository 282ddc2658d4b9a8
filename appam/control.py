"""Reading and writing of deb822 control data (paragraphs of ``Field: value`` lines)."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple, Union


class Paragraph:
    """An ordered set of control fields with case-insensitive names."""

    def __init__(self, fields: Optional[Iterable[Tuple[str, str]]] = None) -> None:
        self._fields: dict[str, tuple[str, str]] = {}
        for name, value in fields or ():
            self.set(name, value)

    def get(self, field: str, default: Optional[str] = None) -> Optional[str]:
        """Return the value of a field, or ``default`` if it is absent."""
        entry = self._fields.get(field.casefold())
        return default if entry is None else entry[1]

    def set(self, field: str, value: str) -> None:
        """Set a field, keeping its position (and spelling) if it already exists."""
        key = field.casefold()
        existing = self._fields.get(key)
        name = existing[0] if existing is not None else field
        self._fields[key] = (name, value)

    def remove(self, field: str) -> None:
        """Remove a field if present."""
        self._fields.pop(field.casefold(), None)

    def __contains__(self, field: object) -> bool:
        return isinstance(field, str) and field.casefold() in self._fields

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Paragraph({list(self._fields.values())!r})"

    def __str__(self) -> str:
        lines = []
        for name, value in self._fields.values():
            first, *rest = value.split("\n")
            lines.append(f"{name}: {first}" if first else f"{name}:")
            lines.extend(f" {line}" for line in rest)
        return "".join(f"{line}\n" for line in lines)


class Deb822:
    """A sequence of paragraphs separated by blank lines."""

    def __init__(self, paragraphs: Optional[Iterable[Paragraph]] = None) -> None:
        self._paragraphs = list(paragraphs or ())

    @classmethod
    def parse(cls, text: str) -> "Deb822":
        """Parse deb822 text; raise ValueError on malformed lines."""
        paragraphs: list[Paragraph] = []
        current: Optional[Paragraph] = None
        last_key: Optional[str] = None

        for lineno, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                if current is not None:
                    paragraphs.append(current)
                current, last_key = None, None
                continue
            if line.startswith("#"):
                continue
            if line[0] in " \t":
                if current is None or last_key is None:
                    raise ValueError(f"line {lineno}: continuation line without a field")
                current.set(last_key, f"{current.get(last_key, '')}\n{line[1:].rstrip()}")
                continue

            name, sep, value = line.partition(":")
            if not sep or not name or any(ch.isspace() for ch in name):
                raise ValueError(f"line {lineno}: expected 'Field: value', got {line!r}")
            if current is None:
                current = Paragraph()
            if name in current:
                raise ValueError(f"line {lineno}: duplicate field {name!r}")
            current.set(name, value.strip())
            last_key = name

        if current is not None:
            paragraphs.append(current)
        return cls(paragraphs)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Deb822":
        """Parse the deb822 file at ``path``."""
        return cls.parse(Path(path).read_text(encoding="utf-8"))

    def paragraphs(self) -> list[Paragraph]:
        """Return the paragraphs; they may be modified in place."""
        return self._paragraphs

    def __repr__(self) -> str:
        return f"Deb822({self._paragraphs!r})"

    def __str__(self) -> str:
        return "\n".join(str(paragraph) for paragraph in self._paragraphs)