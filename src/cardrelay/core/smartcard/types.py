from __future__ import annotations

from dataclasses import dataclass, field


def to_hex(data: bytes | list[int] | None, sep: str = ":") -> str:
    """Uppercase hex with a byte separator ("" for no data)."""
    if not data:
        return ""
    return bytes(data).hex(sep).upper()


@dataclass(frozen=True)
class APDU:
    """ISO 7816 short-form command APDU."""

    cla: int
    ins: int
    p1: int
    p2: int
    data: bytes = b""
    le: int | None = None

    def to_bytes(self) -> bytes:
        if len(self.data) > 255:
            raise ValueError(f"command data too long for short APDU: {len(self.data)}")
        buf = bytearray([self.cla, self.ins, self.p1, self.p2])
        if self.data:
            buf.append(len(self.data))
            buf.extend(self.data)
        if self.le is not None:
            buf.append(0x00 if self.le == 256 else self.le)
        return bytes(buf)

    def to_list(self) -> list[int]:
        return list(self.to_bytes())

    def __repr__(self) -> str:
        return self.to_bytes().hex(" ").upper()


@dataclass(frozen=True)
class Response:
    """ISO 7816 response APDU."""

    data: bytes
    sw1: int
    sw2: int

    @classmethod
    def from_bytes(cls, raw: bytes | list[int]) -> Response | None:
        """Split raw response bytes into data and status word; None if < 2 bytes."""
        raw = bytes(raw)
        if len(raw) < 2:
            return None
        return cls(data=raw[:-2], sw1=raw[-2], sw2=raw[-1])

    @property
    def sw(self) -> int:
        return (self.sw1 << 8) | self.sw2

    @property
    def success(self) -> bool:
        return self.sw1 == 0x90 and self.sw2 == 0x00

    def __repr__(self) -> str:
        sw = f"SW={self.sw:04X}"
        if self.data:
            return f"{self.data.hex(' ').upper()} {sw}"
        return sw


# Pseudo-APDU understood by PC/SC contactless readers: GET DATA, UID.
GET_UID = APDU(cla=0xFF, ins=0xCA, p1=0x00, p2=0x00, le=0x00)


@dataclass(frozen=True)
class CardHandle:
    """A connected card: broker handle plus negotiated protocol."""

    handle: int
    protocol: int


@dataclass(frozen=True)
class CardStatus:
    reader_name: str
    state: int
    protocol: int
    atr: bytes = b""


@dataclass
class ReaderState:
    """One entry of an SCardGetStatusChange reader-state list."""

    reader_name: str
    current_state: int = 0
    event_state: int = 0
    atr: bytes = field(default=b"", repr=False)

    def to_wire(self) -> dict:
        return {"reader_name": self.reader_name, "current_state": self.current_state}

    @classmethod
    def from_wire(cls, data: dict) -> ReaderState:
        return cls(
            reader_name=data.get("reader_name", ""),
            current_state=int(data.get("current_state") or 0),
            event_state=int(data.get("event_state") or 0),
            atr=bytes(data.get("atr") or b""),
        )
