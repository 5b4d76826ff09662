"""Lookup tables for ATR-derived card metadata."""

# Compact-TLV tags found in ATR historical bytes
CATEGORY_COMPACT_TLV = 0x80
TAG_APPLICATION_ID = 0x4F

# Registered application provider identifiers (first 5 AID bytes)
RID_PCSC_STORAGE = bytes.fromhex("A000000306")

RID_NAMES: dict[bytes, str] = {
    RID_PCSC_STORAGE: "NXP (PC/SC standard)",
    bytes.fromhex("A000000003"): "Visa",
    bytes.fromhex("A000000004"): "Mastercard",
    bytes.fromhex("A000000025"): "American Express",
    bytes.fromhex("A000000065"): "JCB",
    bytes.fromhex("A000000152"): "Discover",
    bytes.fromhex("A000000333"): "UnionPay",
    bytes.fromhex("D276000085"): "NFC Forum",
}

# PC/SC part 3 storage-card standard byte (SS)
CARD_STANDARDS: dict[int, str] = {
    0x01: "ISO 14443 A, Part 1",
    0x02: "ISO 14443 A, Part 2",
    0x03: "ISO 14443 A, Part 3",
    0x05: "ISO 14443 B, Part 1",
    0x06: "ISO 14443 B, Part 2",
    0x07: "ISO 14443 B, Part 3",
    0x09: "ISO 15693, Part 1",
    0x0A: "ISO 15693, Part 2",
    0x0B: "ISO 15693, Part 3",
    0x0C: "ISO 15693, Part 4",
    0x11: "FeliCa",
}

# PC/SC part 3 storage-card name word (NN NN)
CARD_NAMES: dict[int, str] = {
    0x0001: "MIFARE Classic 1K",
    0x0002: "MIFARE Classic 4K",
    0x0003: "MIFARE Ultralight",
    0x0026: "MIFARE Mini",
    0x003A: "MIFARE Ultralight C",
    0x003B: "MIFARE Ultralight EV1",
    0x0036: "MIFARE Plus 2K SL1",
    0x0037: "MIFARE Plus 4K SL1",
    0x0038: "MIFARE Plus 2K SL2",
    0x0039: "MIFARE Plus 4K SL2",
    0xF004: "Topaz 512",
    0xF011: "FeliCa 212K",
    0xF012: "FeliCa 424K",
    0xFF28: "JCOP 31/36",
    0xFF40: "Java Card",
    0xFF88: "Infineon SLE 66R35",
}

CONTACTLESS_ISO14443 = "Contactless (ISO 14443)"
