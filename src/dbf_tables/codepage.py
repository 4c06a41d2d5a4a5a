"""Code page labels and the Python codecs they map to."""

from __future__ import annotations

import codecs
import logging

from dbf_tables.codec import atoi

logger = logging.getLogger(__name__)

LDID_PREFIX = "LDID/"

# Codec used when a label is missing or unknown. Latin-1 maps every byte,
# so text always decodes and re-encodes to the same bytes.
FALLBACK_ENCODING = "latin-1"

# Language driver ids as written by dBase, FoxPro and ArcGIS
LANGUAGE_DRIVERS: dict[int, str] = {
    0x01: "cp437",
    0x02: "cp850",
    0x03: "cp1252",
    0x08: "cp865",
    0x09: "cp437",
    0x0A: "cp850",
    0x0B: "cp437",
    0x0D: "cp437",
    0x0E: "cp850",
    0x0F: "cp437",
    0x10: "cp850",
    0x11: "cp437",
    0x12: "cp850",
    0x13: "cp932",
    0x14: "cp850",
    0x15: "cp437",
    0x16: "cp850",
    0x17: "cp865",
    0x18: "cp437",
    0x19: "cp437",
    0x1A: "cp850",
    0x1B: "cp437",
    0x1C: "cp863",
    0x1D: "cp850",
    0x1F: "cp852",
    0x22: "cp852",
    0x23: "cp852",
    0x24: "cp860",
    0x25: "cp850",
    0x26: "cp866",
    0x37: "cp850",
    0x40: "cp852",
    0x4D: "gbk",
    0x4E: "cp949",
    0x4F: "cp950",
    0x50: "cp874",
    0x57: "latin-1",
    0x58: "cp1252",
    0x59: "cp1252",
    0x64: "cp852",
    0x65: "cp866",
    0x66: "cp865",
    0x67: "cp861",
    0x6A: "cp737",
    0x6B: "cp857",
    0x6C: "cp863",
    0x78: "cp950",
    0x79: "cp949",
    0x7A: "gbk",
    0x7B: "cp932",
    0x7C: "cp874",
    0x86: "cp737",
    0x87: "cp852",
    0x88: "cp857",
    0x96: "mac_cyrillic",
    0x97: "mac_latin2",
    0x98: "mac_greek",
    0xC8: "cp1250",
    0xC9: "cp1251",
    0xCA: "cp1254",
    0xCB: "cp1253",
    0xCC: "cp1257",
}


def split_ldid(label: str | None) -> int | None:
    """Return the language driver id of an 'LDID/<n>' label.

    Labels that are not of that form, or whose id does not fit in the
    header byte, return None and are stored in a .cpg sidecar instead.
    'LDID/' followed by something non-numeric is id 0, which is valid.
    """
    if label is None or not label.startswith(LDID_PREFIX):
        return None
    ldid = atoi(label[len(LDID_PREFIX):])
    if ldid < 0 or ldid > 255:
        return None
    return ldid


def _lookup(name: str) -> str | None:
    try:
        return codecs.lookup(name).name
    except LookupError:
        return None


def resolve_encoding(label: str | None) -> str:
    """Map a code page label to a Python codec name."""
    if not label:
        return FALLBACK_ENCODING

    ldid = split_ldid(label)
    if ldid is not None:
        encoding = LANGUAGE_DRIVERS.get(ldid)
        if encoding is None:
            logger.warning("Unknown language driver id %d, using %s", ldid, FALLBACK_ENCODING)
            return FALLBACK_ENCODING
        return encoding

    candidate = label.strip()
    encoding = _lookup(candidate)
    if encoding is None and candidate.isdigit():
        encoding = _lookup(f"cp{candidate}")
    if encoding is None and candidate.upper().startswith("ANSI "):
        encoding = _lookup(f"cp{candidate[5:].strip()}")
    if encoding is None:
        logger.warning("Unknown code page %r, using %s", label, FALLBACK_ENCODING)
        return FALLBACK_ENCODING
    return encoding
