from cardrelay.core.smartcard.atr import AtrInfo
from cardrelay.core.smartcard.atr import parse as parse_atr
from cardrelay.core.smartcard.logging import PROTOCOL, TRACE
from cardrelay.core.smartcard.types import (
    APDU,
    GET_UID,
    CardHandle,
    CardStatus,
    ReaderState,
    Response,
    to_hex,
)

__all__ = [
    "APDU",
    "AtrInfo",
    "CardHandle",
    "CardStatus",
    "GET_UID",
    "PROTOCOL",
    "ReaderState",
    "Response",
    "TRACE",
    "parse_atr",
    "to_hex",
]
