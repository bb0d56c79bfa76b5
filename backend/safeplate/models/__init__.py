from .content_item import ContentItem, ItemKind
from .outcome import FilterOutcome, Removal
from .profile import DietaryProfile

__all__ = [
    "ContentItem",
    "ItemKind",
    "FilterOutcome",
    "Removal",
    "DietaryProfile",
]
