"""
Emergency meals for when filtering leaves too few options. Each slot gets one
plain staple (oats, rice and carrots, sweet potato, apple). Every meal is run
through the pipeline against the caller's profile; one that fails is still
returned, unfiltered, so a slot is never empty.
"""
from typing import Any, Dict, Optional
import logging

from safeplate.errors import FallbackExhaustion
from safeplate.filtering.pipeline import FilterPipeline
from safeplate.models.content_item import ContentItem, ItemKind

logger = logging.getLogger(__name__)

MEAL_SLOTS = ("breakfast", "lunch", "dinner", "snack")
EMERGENCY_ID_PREFIX = "emergency-"

_SAFE_TAGS = ("vegan", "dairy-free", "nut-free", "gluten-free", "soy-free")

# Wording avoids substrings that would trip keyword rules (e.g. "minutes" contains "nut").
_EMERGENCY_MEALS: Dict[str, dict] = {
    "breakfast": {
        "name": "Simple Oatmeal Bowl",
        "description": "Plain oats cooked in water",
        "mealType": "Breakfast",
        "ingredients": ["certified gluten-free oats", "water", "salt"],
        "instructions": ["Boil water", "Stir in oats", "Simmer until soft", "Add a pinch of salt"],
    },
    "lunch": {
        "name": "Plain Rice Bowl",
        "description": "Simple rice with steamed carrots",
        "mealType": "Lunch",
        "ingredients": ["white rice", "water", "carrots", "salt"],
        "instructions": ["Cook rice in water", "Steam carrots", "Combine and add salt"],
    },
    "dinner": {
        "name": "Baked Sweet Potato",
        "description": "Sweet potato baked with olive oil and herbs",
        "mealType": "Dinner",
        "ingredients": ["sweet potato", "olive oil", "salt", "dried herbs"],
        "instructions": ["Wash the sweet potato", "Bake until tender", "Finish with salt and herbs"],
    },
    "snack": {
        "name": "Apple Slices",
        "description": "Fresh apple slices",
        "mealType": "Snack",
        "ingredients": ["apple"],
        "instructions": ["Wash the apple", "Slice into pieces", "Serve fresh"],
    },
}


def build_emergency_meal(slot: str) -> ContentItem:
    """A fresh synthetic meal for one slot. Never persisted."""
    recipe = _EMERGENCY_MEALS[slot]
    return ContentItem(
        kind=ItemKind.MEAL,
        id=f"{EMERGENCY_ID_PREFIX}{slot}",
        name=recipe["name"],
        description=recipe["description"],
        ingredients=tuple(recipe["ingredients"]),
        instructions=tuple(recipe["instructions"]),
        dietary_tags=_SAFE_TAGS,
        meal_type=recipe["mealType"],
    )


class EmergencyFallbackGenerator:
    """Builds the per-slot emergency meals and filters each against the profile."""

    def __init__(self, pipeline: Optional[FilterPipeline] = None):
        self._pipeline = pipeline or FilterPipeline()

    def generate(self, profile: Any) -> Dict[str, ContentItem]:
        """Exactly one meal per slot, filtered when possible, unfiltered as a last resort."""
        meals: Dict[str, ContentItem] = {}
        for slot in MEAL_SLOTS:
            meal = build_emergency_meal(slot)
            safe = self._pipeline.filter([meal], profile).safe_items
            if safe:
                meals[slot] = safe[0]
            else:
                logger.critical("FALLBACK_EXHAUSTION %s", FallbackExhaustion(slot, meal.id))
                meals[slot] = meal
        logger.info("FALLBACK generated slots=%s", list(meals))
        return meals


def generate_fallback(profile: Any, pipeline: Optional[FilterPipeline] = None) -> Dict[str, ContentItem]:
    return EmergencyFallbackGenerator(pipeline).generate(profile)
