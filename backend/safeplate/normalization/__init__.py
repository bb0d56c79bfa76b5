from .normalizer import NormalizedItem, normalize_item, normalize_term, letters_only

__all__ = [
    "NormalizedItem",
    "normalize_item",
    "normalize_term",
    "letters_only",
]
