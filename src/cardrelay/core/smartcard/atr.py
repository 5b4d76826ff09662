"""ATR (Answer-To-Reset) decoding.

Only what is needed to label a contactless card: the historical bytes,
the application identifier a PC/SC reader synthesises into them, and
the storage-card standard/name codes defined by PC/SC part 3. Anything
that does not decode leaves the corresponding field as None.
"""

from __future__ import annotations

from dataclasses import dataclass

from cardrelay.core.smartcard import names
from cardrelay.core.smartcard.tlv import find as find_tlv
from cardrelay.core.smartcard.types import to_hex


@dataclass(frozen=True)
class AtrInfo:
    """Card metadata derived from an ATR."""

    atr: bytes = b""
    card_type: str | None = None
    standard: str | None = None
    card_name: str | None = None
    rid: str | None = None
    historical_bytes: str | None = None

    @property
    def atr_hex(self) -> str | None:
        return to_hex(self.atr) or None

    def fields(self) -> dict[str, str]:
        """Notification fields that could be derived, keyed by wire name."""
        out = {
            "card_atr": self.atr_hex,
            "card_name": self.card_name,
            "card_standard": self.standard,
            "card_type": self.card_type,
            "card_rid": self.rid,
        }
        return {k: v for k, v in out.items() if v}


def historical_offset(atr: bytes) -> int | None:
    """Return the index of the first historical byte, or None if the
    interface-byte chain runs past the end of ``atr``."""
    if len(atr) < 2:
        return None
    idx = 2
    td = atr[1]
    while td & 0xF0:
        # TA(i), TB(i), TC(i)
        for bit in (0x10, 0x20, 0x40):
            if td & bit:
                idx += 1
        if not td & 0x80:
            break
        if idx >= len(atr):
            return None
        td = atr[idx]
        idx += 1
    if idx > len(atr):
        return None
    return idx


def historical_bytes(atr: bytes) -> bytes | None:
    if len(atr) < 2:
        return None
    count = atr[1] & 0x0F
    if count == 0:
        return None
    start = historical_offset(atr)
    if start is None or start + count > len(atr):
        return None
    return bytes(atr[start : start + count])


def _is_contactless(atr: bytes) -> bool:
    """3B 8x 80 01: the ATR a PC/SC reader builds for an ISO 14443 card."""
    return (
        len(atr) >= 4
        and atr[0] == 0x3B
        and (atr[1] & 0xF0) == 0x80
        and atr[2] == 0x80
        and atr[3] == 0x01
    )


def _decode_application_id(hist: bytes) -> dict[str, str]:
    out: dict[str, str] = {}
    if len(hist) < 5 or hist[0] != names.CATEGORY_COMPACT_TLV:
        return out
    node = find_tlv(hist, names.TAG_APPLICATION_ID, offset=1)
    if node is None or len(node.value) < 5:
        return out

    rid = node.value[:5]
    out["rid"] = names.RID_NAMES.get(rid, rid.hex().upper())
    if rid != names.RID_PCSC_STORAGE:
        return out

    # PC/SC part 3: RID, SS (standard), NN NN (card name)
    pix = node.value[5:]
    if len(pix) >= 1:
        ss = pix[0]
        out["standard"] = names.CARD_STANDARDS.get(ss, f"Standard 0x{ss:02X}")
    if len(pix) >= 3:
        nn = int.from_bytes(pix[1:3], "big")
        out["card_name"] = names.CARD_NAMES.get(nn, f"Type 0x{nn:04X}")
    return out


def parse(atr: bytes | list[int] | None) -> AtrInfo:
    """Decode card metadata from raw ATR bytes. Never raises."""
    try:
        raw = bytes(atr or b"")
    except (TypeError, ValueError):
        return AtrInfo()
    if len(raw) < 2:
        return AtrInfo(atr=raw)

    fields: dict[str, str] = {}
    hist = historical_bytes(raw)
    if hist is not None:
        fields["historical_bytes"] = to_hex(hist)
        fields.update(_decode_application_id(hist))
    if _is_contactless(raw):
        fields["card_type"] = names.CONTACTLESS_ISO14443
    return AtrInfo(atr=raw, **fields)
