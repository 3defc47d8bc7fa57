"""
BIP32 derivation path helpers.

The device expects a path as a 1-byte component count followed by each
component as a 4-byte big-endian integer (hardened components have bit 31 set).
"""

from __future__ import annotations

from kaspa_ledger.constants import HARDENED_OFFSET, KASPA_COIN_TYPE, MAX_UINT32

# Deepest path the device app accepts
MAX_PATH_DEPTH = 10


def parse_path(path: str) -> list[int]:
    """
    Parse a path string such as "m/44'/111111'/0'/0/0" into integers.

    ', h and H mark hardened components. The leading "m/" is optional.

    Raises:
        ValueError: On an empty, too deep or malformed path
    """
    parts = path.strip().split("/")
    if parts and parts[0] in ("m", "M"):
        parts = parts[1:]

    if not parts or parts == [""]:
        raise ValueError("Derivation path has no components")
    if len(parts) > MAX_PATH_DEPTH:
        raise ValueError(f"Derivation path deeper than {MAX_PATH_DEPTH} components: {path}")

    result = []
    for part in parts:
        hardened = part.endswith(("'", "h", "H"))
        index_str = part[:-1] if hardened else part

        if not index_str.isdigit():
            raise ValueError(f"Invalid path component {part!r} in {path}")

        index = int(index_str)
        if index >= HARDENED_OFFSET:
            raise ValueError(f"Path component {part!r} out of range")

        if hardened:
            index += HARDENED_OFFSET

        result.append(index)

    return result


def serialize_path(components: list[int]) -> bytes:
    """Encode path components as [count:1][component:4 BE]..."""
    if len(components) > MAX_PATH_DEPTH:
        raise ValueError(f"Derivation path deeper than {MAX_PATH_DEPTH} components")

    result = bytes([len(components)])
    for component in components:
        if component < 0 or component > MAX_UINT32:
            raise ValueError(f"Path component {component} does not fit in 32 bits")
        result += component.to_bytes(4, "big")
    return result


def path_to_bytes(path: str) -> bytes:
    return serialize_path(parse_path(path))


def address_path(address_type: int = 0, address_index: int = 0, account: int = 0) -> str:
    """Build the standard Kaspa path m/44'/111111'/{account}'/{type}/{index}."""
    return f"m/44'/{KASPA_COIN_TYPE}'/{account}'/{address_type}/{address_index}"
