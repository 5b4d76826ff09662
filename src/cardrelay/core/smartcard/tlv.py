from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class TLV:
    """A single simple-TLV node (one-byte tag, one-byte length)."""

    tag: int
    value: bytes = b""

    def __repr__(self) -> str:
        return f"TLV({self.tag:02X}, {self.value.hex().upper()})"


def iter_simple(data: bytes, offset: int = 0) -> Iterator[TLV]:
    """Walk tag/length/value triples starting at ``offset``.

    Stops quietly at the first node whose value would run past the end
    of ``data``.
    """
    while offset + 1 < len(data):
        tag = data[offset]
        length = data[offset + 1]
        start = offset + 2
        end = start + length
        if end > len(data):
            return
        yield TLV(tag=tag, value=bytes(data[start:end]))
        offset = end


def find(data: bytes, tag: int, offset: int = 0) -> TLV | None:
    """Return the first node with the given tag, or None."""
    for node in iter_simple(data, offset):
        if node.tag == tag:
            return node
    return None
