"""Vector math and storage encoding for embeddings."""

import math
import struct
from typing import Sequence


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity dot(a, b) / (|a| * |b|).

    Vectors of different length or with a zero norm score 0.0.
    """
    if len(a) != len(b) or not a:
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def pack_vector(vector: Sequence[float]) -> bytes:
    """Encode a vector as little-endian float32 bytes."""
    return struct.pack(f"<{len(vector)}f", *vector)


def unpack_vector(blob: bytes) -> list[float]:
    """Decode little-endian float32 bytes produced by pack_vector()."""
    if len(blob) % 4:
        raise ValueError(f"Embedding blob length {len(blob)} is not a multiple of 4")
    return list(struct.unpack(f"<{len(blob) // 4}f", blob))
