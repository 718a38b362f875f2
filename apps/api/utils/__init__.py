"""Shared utilities for the Project Memory API."""

from utils.json_extraction import extract_json_from_response, extract_json_or_default
from utils.vectors import cosine_similarity, pack_vector, unpack_vector

__all__ = [
    # Vector utilities
    "cosine_similarity",
    "pack_vector",
    "unpack_vector",
    # JSON extraction
    "extract_json_from_response",
    "extract_json_or_default",
]
