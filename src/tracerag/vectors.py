"""Embedding vector helpers.

Vectors are handled as lists of Python floats holding IEEE-754 single
precision values. On disk a vector is a flat sequence of 4-byte floats in
big-endian byte order, with no header; the element count is the byte length
divided by four.
"""

import struct
from collections.abc import Sequence

FLOAT_SIZE = 4
BYTE_ORDER = ">"  # big-endian


def to_float32(values: Sequence[float]) -> list[float]:
    """Round every value to the nearest single precision float.

    Args:
        values: Numeric values, typically parsed from a JSON response

    Returns:
        list[float]: The values as they will be stored and compared

    Raises:
        OverflowError: If a value does not fit in single precision
    """
    # Native mode ("@") does not range-check floats
    fmt = f"{BYTE_ORDER}{len(values)}f"
    return list(struct.unpack(fmt, struct.pack(fmt, *values)))


def serialize_embedding(vector: Sequence[float]) -> bytes:
    """Serialize a vector to big-endian 4-byte floats."""
    return struct.pack(f"{BYTE_ORDER}{len(vector)}f", *vector)


def deserialize_embedding(data: bytes) -> list[float]:
    """Deserialize bytes produced by serialize_embedding.

    Raises:
        ValueError: If the byte length is not a multiple of four
    """
    if len(data) % FLOAT_SIZE != 0:
        raise ValueError(
            f"Embedding blob length {len(data)} is not a multiple of {FLOAT_SIZE}"
        )
    return list(struct.unpack(f"{BYTE_ORDER}{len(data) // FLOAT_SIZE}f", data))
