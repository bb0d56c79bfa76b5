"""
Dietary filter pipeline. Four narrowing stages, each a pure filter over the
output of the previous one:

  1) allergens        every allergy string resolved to an allergen rule
  2) restrictions     every restriction string resolved to a diet and/or spice
                      rule, plus the profile's spice preference
  3) primary diet     allow-list (vegan) or deny-list
  4) boolean flags    nut-free, dairy-free, gluten-free (allow-list)

Output is a subset of the input, by identity, in input order. Malformed input
yields an empty result; unrecognised free-text terms are reported and ignored.
"""
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Callable, List, Optional
import logging

from safeplate.config import get_mild_override_enabled
from safeplate.errors import InvalidInputError, UnknownRestrictionWarning
from safeplate.models.content_item import ContentItem, ItemKind
from safeplate.models.outcome import FilterOutcome, Removal
from safeplate.models.profile import DietaryProfile
from safeplate.normalization.normalizer import NormalizedItem
from safeplate.rules.rule_registry import RuleRegistry
from safeplate.rules.rule_schema import AllergenRule, DietRule, SpiceRule

logger = logging.getLogger(__name__)

STAGE_ALLERGEN = "allergen"
STAGE_RESTRICTION = "restriction"
STAGE_PRIMARY_DIET = "primary_diet"
STAGE_FLAGS = "flags"
STAGE_INPUT = "input"

NUT_FREE_TAG = "nut-free"
DAIRY_FREE_TAG = "dairy-free"
GLUTEN_FREE_TAG = "gluten-free"


@dataclass(frozen=True)
class _Candidate:
    item: ContentItem
    norm: NormalizedItem


# A check returns a reason string when the candidate must go, '' when it stays.
_Check = Callable[[NormalizedItem], str]


def _coerce_items(items: Any) -> list:
    if isinstance(items, (str, bytes, dict)) or not isinstance(items, Sequence):
        raise InvalidInputError(items)
    return list(items)


class FilterPipeline:
    """
    Stateless apart from its registry and the mild-override toggle, so one
    instance can serve concurrent callers.
    """

    def __init__(self, registry: Optional[RuleRegistry] = None, mild_override: Optional[bool] = None):
        self._registry = registry or RuleRegistry()
        self._mild_override = get_mild_override_enabled() if mild_override is None else mild_override

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    @property
    def mild_override(self) -> bool:
        return self._mild_override

    def filter(self, items: Any, profile: Any, kind: Optional[ItemKind] = None) -> FilterOutcome:
        """
        Filter items for a profile. Never raises for bad data.
        - items not a list/tuple -> empty outcome (fail closed).
        - profile None -> items returned unchanged.
        """
        try:
            raw_items = _coerce_items(items)
        except InvalidInputError as e:
            logger.warning("FILTER_PIPELINE invalid_input %s; returning no items", e)
            return FilterOutcome()

        outcome = FilterOutcome(input_count=len(raw_items))
        dietary_profile = DietaryProfile.coerce(profile)
        if dietary_profile is None:
            logger.warning("FILTER_PIPELINE no profile provided; items returned unfiltered count=%d", len(raw_items))
            outcome.safe_items = raw_items
            return outcome

        candidates: List[_Candidate] = []
        for raw in raw_items:
            item = ContentItem.from_any(raw, kind=kind)
            if item is None:
                logger.warning("FILTER_PIPELINE malformed_item type=%s excluded", type(raw).__name__)
                outcome.removals.append(Removal(repr(raw), STAGE_INPUT, "not an item"))
                continue
            candidates.append(_Candidate(item, item.normalize()))

        if dietary_profile.is_empty():
            outcome.safe_items = [c.item.original for c in candidates]
            logger.info("FILTER_PIPELINE empty profile; kept=%d", len(outcome.safe_items))
            return outcome

        logger.info(
            "FILTER_PIPELINE start items=%d allergies=%s restrictions=%s primary_diet=%s spice=%s "
            "nut_free=%s dairy_free=%s gluten_free=%s",
            len(raw_items), dietary_profile.allergies, dietary_profile.dietary_restrictions,
            dietary_profile.primary_diet, dietary_profile.spice_preference,
            dietary_profile.is_nut_free, dietary_profile.is_dairy_free, dietary_profile.is_gluten_free,
        )

        candidates = self._allergen_stage(candidates, dietary_profile, outcome)
        candidates = self._restriction_stage(candidates, dietary_profile, outcome)
        candidates = self._primary_diet_stage(candidates, dietary_profile, outcome)
        candidates = self._flag_stage(candidates, dietary_profile, outcome)

        outcome.safe_items = [c.item.original for c in candidates]
        logger.info(
            "FILTER_PIPELINE done original=%d safe=%d removed=%d unknown_terms=%s",
            outcome.input_count, len(outcome.safe_items), outcome.removed_count, outcome.unknown_terms,
        )
        return outcome

    # --- stage plumbing ---

    def _apply(
        self,
        candidates: List[_Candidate],
        stage: str,
        label: str,
        check: _Check,
        outcome: FilterOutcome,
    ) -> List[_Candidate]:
        kept: List[_Candidate] = []
        for c in candidates:
            reason = check(c.norm)
            if reason:
                logger.info(
                    "FILTER_PIPELINE removed item=%r stage=%s rule=%s reason=%s",
                    c.item.display_name, stage, label, reason,
                )
                outcome.removals.append(Removal(c.item.display_name, stage, f"{label}: {reason}"))
            else:
                kept.append(c)
        logger.debug("FILTER_PIPELINE stage=%s rule=%s in=%d out=%d", stage, label, len(candidates), len(kept))
        return kept

    def _unknown(self, term: str, field_name: str, outcome: FilterOutcome) -> None:
        warning = UnknownRestrictionWarning(term, field_name)
        logger.warning("UNKNOWN_RESTRICTION %s", warning)
        outcome.unknown_terms.append(term)

    # --- checks ---

    @staticmethod
    def _allergen_check(rule: AllergenRule) -> _Check:
        def check(norm: NormalizedItem) -> str:
            keyword = norm.first_keyword(rule.keywords)
            if keyword:
                return f"keyword {keyword!r}"
            tag = norm.tag_containing(rule.disqualifying_tags)
            if tag:
                return f"tag {tag!r}"
            return ""
        return check

    @staticmethod
    def _diet_check(rule: DietRule, use_tags: bool) -> _Check:
        def check(norm: NormalizedItem) -> str:
            if rule.is_allow_list and not norm.has_exact_tag(rule.qualifying_tags):
                return f"missing required tag {sorted(rule.qualifying_tags)}"
            keyword = norm.first_keyword(rule.avoid_keywords)
            if keyword:
                return f"keyword {keyword!r}"
            if use_tags:
                tag = norm.tag_containing(rule.disqualifying_tags)
                if tag:
                    return f"tag {tag!r}"
            return ""
        return check

    def _spice_check(self, rule: SpiceRule) -> _Check:
        override = self._mild_override and bool(rule.mild_override_tags)

        def check(norm: NormalizedItem) -> str:
            keyword = norm.first_keyword(rule.avoid_keywords)
            tag = "" if keyword else norm.tag_containing(rule.disqualifying_tags)
            if not (keyword or tag):
                return ""
            # Mild/bland tag wins over a spicy keyword when the override is on.
            if override and norm.has_exact_tag(rule.mild_override_tags):
                return ""
            return f"keyword {keyword!r}" if keyword else f"tag {tag!r}"
        return check

    # --- stages ---

    def _allergen_stage(self, candidates, profile: DietaryProfile, outcome: FilterOutcome):
        for allergy in profile.allergies:
            rule = self._registry.resolve_allergen(allergy)
            if rule is None:
                self._unknown(allergy, "allergy", outcome)
                continue
            candidates = self._apply(
                candidates, STAGE_ALLERGEN, rule.category, self._allergen_check(rule), outcome,
            )
        return candidates

    def _restriction_stage(self, candidates, profile: DietaryProfile, outcome: FilterOutcome):
        for restriction in profile.dietary_restrictions:
            diet_rule = self._registry.resolve_diet(restriction)
            spice_rule = self._registry.resolve_spice(restriction)
            if diet_rule is None and spice_rule is None:
                self._unknown(restriction, "restriction", outcome)
                continue
            if diet_rule is not None:
                candidates = self._apply(
                    candidates, STAGE_RESTRICTION, diet_rule.diet_type,
                    self._diet_check(diet_rule, use_tags=True), outcome,
                )
            if spice_rule is not None:
                candidates = self._apply(
                    candidates, STAGE_RESTRICTION, spice_rule.level, self._spice_check(spice_rule), outcome,
                )
        preference_rule = self._registry.resolve_spice_preference(profile.spice_preference)
        if preference_rule is not None:
            candidates = self._apply(
                candidates, STAGE_RESTRICTION, f"spice_preference:{preference_rule.level}",
                self._spice_check(preference_rule), outcome,
            )
        return candidates

    def _primary_diet_stage(self, candidates, profile: DietaryProfile, outcome: FilterOutcome):
        if not profile.has_primary_diet:
            return candidates
        rule = self._registry.resolve_diet(profile.primary_diet)
        if rule is None:
            self._unknown(profile.primary_diet, "primary_diet", outcome)
            return candidates
        return self._apply(
            candidates, STAGE_PRIMARY_DIET, rule.diet_type, self._diet_check(rule, use_tags=False), outcome,
        )

    def _flag_stage(self, candidates, profile: DietaryProfile, outcome: FilterOutcome):
        if profile.is_nut_free:
            candidates = self._keyword_flag(candidates, "nuts", NUT_FREE_TAG, outcome)
        if profile.is_dairy_free:
            candidates = self._keyword_flag(candidates, "dairy", DAIRY_FREE_TAG, outcome)
        if profile.is_gluten_free:
            # Allow-list only: gluten is not reliably detectable from keywords.
            candidates = self._apply(
                candidates, STAGE_FLAGS, "is_gluten_free",
                lambda norm: "" if norm.has_exact_tag((GLUTEN_FREE_TAG,)) else f"missing {GLUTEN_FREE_TAG!r} tag",
                outcome,
            )
        return candidates

    def _keyword_flag(self, candidates, category: str, free_tag: str, outcome: FilterOutcome):
        rule = self._registry.get_allergen(category)
        if rule is None:
            # No keywords to scan with: only explicitly tagged items pass.
            logger.warning("FILTER_PIPELINE flag rule %r missing from registry; requiring %r tag", category, free_tag)

        def check(norm: NormalizedItem) -> str:
            if norm.has_exact_tag((free_tag,)):
                return ""
            if rule is None:
                return f"missing {free_tag!r} tag"
            keyword = norm.first_keyword(rule.keywords)
            return f"keyword {keyword!r}" if keyword else ""

        return self._apply(candidates, STAGE_FLAGS, f"is_{category}_free", check, outcome)

