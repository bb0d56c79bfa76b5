"""
Caller-facing facade over the pipeline, the re-verifier and the fallback
generator. One instance is built at startup and shared.

  filter_items           any catalog content
  filter_meals           pipeline -> missing-tags check -> nut/dairy re-verify
  filter_shopping_list   strings or dicts
  safe_meals_for_plan    filter_meals, topped up with emergency meals below the weekly minimum
  is_ingredient_safe     single ingredient
  safe_alternatives      substitutes for an ingredient, filtered for the profile
"""
from typing import Any, Dict, List, Optional
import logging

from safeplate.config import get_weekly_minimum
from safeplate.errors import MissingSafetyMetadataError
from safeplate.filtering.fallback import EmergencyFallbackGenerator
from safeplate.filtering.pipeline import FilterPipeline
from safeplate.filtering.reverifier import SafetyReverifier
from safeplate.models.content_item import ContentItem, ItemKind
from safeplate.models.outcome import FilterOutcome
from safeplate.models.profile import DietaryProfile
from safeplate.rules.rule_registry import RuleRegistry

logger = logging.getLogger(__name__)


class DietaryFilterService:

    def __init__(
        self,
        registry: Optional[RuleRegistry] = None,
        pipeline: Optional[FilterPipeline] = None,
        reverifier: Optional[SafetyReverifier] = None,
        fallback: Optional[EmergencyFallbackGenerator] = None,
        weekly_minimum: Optional[int] = None,
    ):
        if pipeline is None:
            pipeline = FilterPipeline(registry)
        self._pipeline = pipeline
        self._registry = pipeline.registry
        self._reverifier = reverifier or SafetyReverifier()
        self._fallback = fallback or EmergencyFallbackGenerator(pipeline)
        self._weekly_minimum = get_weekly_minimum() if weekly_minimum is None else weekly_minimum

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    @property
    def weekly_minimum(self) -> int:
        return self._weekly_minimum

    def filter_items_with_outcome(self, items: Any, profile: Any) -> FilterOutcome:
        return self._pipeline.filter(items, profile)

    def filter_items(self, items: Any, profile: Any) -> List[Any]:
        return self._pipeline.filter(items, profile).safe_items

    def filter_meals(self, meals: Any, profile: Any) -> List[Any]:
        """
        Pipeline, then drop meals with no tag collection at all (cannot be judged),
        then re-verify nut and dairy allergies on the survivors.
        """
        if not isinstance(meals, (list, tuple)):
            logger.error("MEAL_FILTER invalid meals data type=%s; returning no meals", type(meals).__name__)
            return []
        logger.info("MEAL_FILTER start meals=%d", len(meals))
        safe = self._pipeline.filter(meals, profile, kind=ItemKind.MEAL).safe_items

        tagged: List[Any] = []
        for raw in safe:
            item = ContentItem.from_any(raw, kind=ItemKind.MEAL)
            if item is None:
                logger.warning("MEAL_FILTER malformed_item type=%s excluded", type(raw).__name__)
                continue
            try:
                item.require_tags()
            except MissingSafetyMetadataError as e:
                logger.warning("MEAL_FILTER missing_safety_metadata %s; excluded", e)
                continue
            tagged.append(raw)

        verified = self._reverifier.reverify(tagged, profile)
        logger.info(
            "MEAL_FILTER done original=%d safe=%d removed=%d",
            len(meals), len(verified), len(meals) - len(verified),
        )
        return verified

    def filter_shopping_list(self, entries: Any, profile: Any) -> List[Any]:
        if not isinstance(entries, (list, tuple)):
            return []
        logger.info("SHOPPING_FILTER start entries=%d", len(entries))
        return self._pipeline.filter(entries, profile, kind=ItemKind.SHOPPING).safe_items

    def generate_fallback(self, profile: Any) -> Dict[str, ContentItem]:
        return self._fallback.generate(profile)

    def safe_meals_for_plan(self, meals: Any, profile: Any) -> List[Any]:
        """Safe meals for a weekly plan; appends the four emergency meals when fewer than the weekly minimum survive."""
        safe = self.filter_meals(meals, profile)
        if len(safe) < self._weekly_minimum:
            logger.warning(
                "MEAL_PLAN too few safe meals safe=%d minimum=%d; adding emergency meals",
                len(safe), self._weekly_minimum,
            )
            safe = safe + list(self._fallback.generate(profile).values())
        return safe

    def is_ingredient_safe(self, ingredient: Any, profile: Any) -> bool:
        if not ingredient or profile is None:
            return False
        return bool(self._pipeline.filter([ingredient], profile, kind=ItemKind.INGREDIENT).safe_items)

    def safe_alternatives(self, ingredient: str, profile: Any) -> List[str]:
        """Substitutes for every allergen the ingredient contains, keeping only those safe for the profile."""
        if not isinstance(ingredient, str) or not ingredient.strip():
            return []
        candidates = self._registry.alternatives_for(ingredient)
        if not candidates:
            return []
        if DietaryProfile.coerce(profile) is None:
            return candidates
        safe = self._pipeline.filter(candidates, profile, kind=ItemKind.INGREDIENT).safe_items
        return list(dict.fromkeys(safe))
