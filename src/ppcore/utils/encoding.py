"""Encoding and decoding utilities for field elements."""

import math
from typing import Union

from ppcore.crypto.poseidon import SNARK_SCALAR_FIELD
from ppcore.exceptions import InvalidInputError


def is_field_element(value: object) -> bool:
    """Return True for a plain int in [0, SNARK_SCALAR_FIELD)."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < SNARK_SCALAR_FIELD
    )


def ensure_field_element(value: object, name: str = "value") -> int:
    """
    Validate a field element.

    Args:
        value: Candidate field element
        name: Argument name used in the error message

    Returns:
        int: The value unchanged

    Raises:
        InvalidInputError: If value is not an int in the field
    """
    if not is_field_element(value):
        raise InvalidInputError(f"{name} must be an integer in [0, SNARK_SCALAR_FIELD), got {value!r}")
    return value


def field_to_hex(value: int) -> str:
    """
    Convert field element to 0x-prefixed, 64-digit hexadecimal string.

    Args:
        value: Field element

    Returns:
        str: Hex string with '0x' prefix, zero-padded to 32 bytes
    """
    ensure_field_element(value)
    return "0x" + format(value, "064x")


def hex_to_int(hex_str: str) -> int:
    """
    Convert hexadecimal string to int.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix)

    Returns:
        int: Decoded integer

    Raises:
        InvalidInputError: If hex string is invalid
    """
    if not isinstance(hex_str, str):
        raise InvalidInputError(f"Expected hex string, got {type(hex_str)}")
    body = hex_str.strip()
    if body[:2].lower() == "0x":
        body = body[2:]
    if not body:
        raise InvalidInputError("Hex string is empty")
    try:
        return int(body, 16)
    except ValueError:
        raise InvalidInputError(f"Invalid hex string: {hex_str!r}") from None


def parse_big_int(value: Union[int, str, bytes]) -> int:
    """
    Parse a non-negative arbitrary-precision integer.

    Accepts ints, '0x' hex strings, decimal strings and big-endian bytes.

    Raises:
        InvalidInputError: On empty, negative or malformed input
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"Expected integer input, got {value!r}")

    if isinstance(value, int):
        result = value
    elif isinstance(value, (bytes, bytearray)):
        if not value:
            raise InvalidInputError("Byte string is empty")
        result = int.from_bytes(value, "big")
    elif isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            result = hex_to_int(text)
        elif text.isascii() and text.isdigit():
            result = int(text)
        else:
            raise InvalidInputError(f"Invalid integer string: {value!r}")
    else:
        raise InvalidInputError(f"Unsupported integer type: {type(value)}")

    if result < 0:
        raise InvalidInputError("Integer must be non-negative")
    return result


def parse_field_element(value: Union[int, str, bytes], name: str = "value") -> int:
    """Parse any accepted integer encoding and check it lies in the field."""
    return ensure_field_element(parse_big_int(value), name)


def is_finite_number(value: object) -> bool:
    """True for non-bool ints and finite floats."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)
