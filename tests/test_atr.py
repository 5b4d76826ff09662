import pytest

from cardrelay.core.smartcard import parse_atr
from cardrelay.core.smartcard.atr import historical_bytes, historical_offset

MIFARE_1K = bytes.fromhex("3B8F8001804F0CA000000306030001000000006A")


def test_mifare_classic_1k():
    info = parse_atr(MIFARE_1K)
    assert info.card_name == "MIFARE Classic 1K"
    assert "ISO 14443 A, Part 3" in info.standard
    assert info.rid == "NXP (PC/SC standard)"
    assert info.card_type == "Contactless (ISO 14443)"
    assert info.historical_bytes == "80:4F:0C:A0:00:00:03:06:03:00:01:00:00:00:00"


def test_notification_fields():
    fields = parse_atr(MIFARE_1K).fields()
    assert fields == {
        "card_atr": "3B:8F:80:01:80:4F:0C:A0:00:00:03:06:03:00:01:00:00:00:00:6A",
        "card_name": "MIFARE Classic 1K",
        "card_standard": "ISO 14443 A, Part 3",
        "card_type": "Contactless (ISO 14443)",
        "card_rid": "NXP (PC/SC standard)",
    }


def test_unknown_codes_fall_back_to_hex():
    atr = bytes.fromhex("3B8F8001804F0CA0000003067F12340000000000")
    info = parse_atr(atr)
    assert info.standard == "Standard 0x7F"
    assert info.card_name == "Type 0x1234"


def test_unknown_rid_is_hex():
    atr = bytes.fromhex("3B8A800180" "4F07" "A0000001234501") + b"\x00"
    info = parse_atr(atr)
    assert info.rid == "A000000123"
    assert info.card_name is None


@pytest.mark.parametrize("raw", [None, b"", b"\x3b", [0x3B]])
def test_too_short_is_all_null(raw):
    info = parse_atr(raw)
    assert info.card_type is None
    assert info.standard is None
    assert info.card_name is None
    assert info.rid is None
    assert info.fields() == ({"card_atr": "3B"} if raw else {})


def test_truncated_interface_chain_does_not_raise():
    # TD1 promises TA2..TD2 but the ATR ends
    info = parse_atr(bytes([0x3B, 0x85, 0xF0]))
    assert info.historical_bytes is None
    assert info.card_name is None


def test_contactless_heuristic_without_historical_tlv():
    info = parse_atr(bytes.fromhex("3B80800101"))
    assert info.card_type == "Contactless (ISO 14443)"
    assert info.rid is None


def test_contact_card_has_no_contactless_type():
    info = parse_atr(bytes.fromhex("3B6800000073C84013009000"))
    assert info.card_type is None


def test_historical_offset_with_interface_bytes():
    # T0=0x15: TA1 present, no TD1
    atr = bytes.fromhex("3B1511" "8001020304")
    assert historical_offset(atr) == 3
    assert historical_bytes(atr) == bytes.fromhex("8001020304")


def test_historical_offset_never_exceeds_length():
    for t0 in range(256):
        for td in (0x00, 0x11, 0x81, 0xF1, 0x80):
            atr = bytes([0x3B, t0, td, 0x01, 0x02])
            offset = historical_offset(atr)
            assert offset is None or offset <= len(atr)
            parse_atr(atr)
