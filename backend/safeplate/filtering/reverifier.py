"""
Second, independent check for the most severe allergens (nuts, dairy) on meals
that already passed the pipeline. Uses its own short stem lists rather than the
registry, so a bad registry entry cannot hide a nut or dairy meal. Any removal
here means the primary filter under-matched and is logged as CRITICAL.
"""
from typing import Any, Dict, List, Optional, Tuple
import logging

from safeplate.models.content_item import ContentItem, ItemKind
from safeplate.models.profile import DietaryProfile

logger = logging.getLogger(__name__)

# category -> (allergy triggers, core stems scanned in the item text)
CRITICAL_STEMS: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "nuts": (("nut", "peanut"), ("nut", "almond", "peanut")),
    "dairy": (("dairy", "milk"), ("cheese", "milk", "dairy")),
}


class SafetyReverifier:

    def __init__(self, critical_stems: Optional[Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]]] = None):
        self._stems = dict(critical_stems or CRITICAL_STEMS)

    def declared_categories(self, profile: DietaryProfile) -> List[str]:
        """Critical categories the profile's allergy strings declare, in table order."""
        allergies = [a.lower() for a in profile.allergies]
        return [
            category
            for category, (triggers, _) in self._stems.items()
            if any(t in a for a in allergies for t in triggers)
        ]

    def reverify(self, items: List[Any], profile: Any) -> List[Any]:
        """Drop any item whose text still contains a core stem of a declared critical allergen."""
        dietary_profile = DietaryProfile.coerce(profile)
        if dietary_profile is None or not items:
            return list(items or [])
        categories = self.declared_categories(dietary_profile)
        if not categories:
            return list(items)

        kept: List[Any] = []
        for raw in items:
            item = ContentItem.from_any(raw, kind=ItemKind.MEAL)
            if item is None:
                logger.warning("SAFETY_REVERIFY malformed_item type=%s excluded", type(raw).__name__)
                continue
            text = item.normalize().text
            hit = self._first_hit(text, categories)
            if hit:
                category, stem = hit
                logger.critical(
                    "SAFETY_REVERIFY meal=%r contains %s (stem %r) despite filtering; removed",
                    item.display_name, category, stem,
                )
                continue
            kept.append(raw)
        return kept

    def _first_hit(self, text: str, categories: List[str]) -> Optional[Tuple[str, str]]:
        for category in categories:
            for stem in self._stems[category][1]:
                if stem in text:
                    return category, stem
        return None
