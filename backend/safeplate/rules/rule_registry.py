"""
Loads allergen, diet and spice rules from data/dietary_rules.json and resolves
loose user strings ("peanut allergy", "Gluten Free", "no spicy food") to rules.
Unresolved strings return None; the caller decides how to report them.
"""
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional
import json
import logging

from safeplate.config import get_rules_path
from safeplate.errors import RuleDataError
from safeplate.normalization.normalizer import letters_only, normalize_term
from safeplate.rules.rule_schema import AllergenRule, DietRule, SpiceRule

logger = logging.getLogger(__name__)

# Below this length a user string is too short to be matched in reverse
# ("egg" inside "eggs" is fine, "s" inside "nuts" is not).
_MIN_REVERSE_MATCH = 3


class RuleRegistry:
    """
    Read-only knowledge base. Built once and shared; lookups never mutate it.
    Pass `data` to build from an in-memory dict (custom rule sets in tests).
    """

    def __init__(self, rules_path: Optional[Path] = None, data: Optional[dict] = None):
        self._path = Path(rules_path) if rules_path else get_rules_path()
        self._version = ""
        allergens: Dict[str, AllergenRule] = {}
        diets: Dict[str, DietRule] = {}
        spice: Dict[str, SpiceRule] = {}
        if data is None:
            data = self._read()
        self._load(data, allergens, diets, spice)
        self._allergens: Mapping[str, AllergenRule] = MappingProxyType(allergens)
        self._diets: Mapping[str, DietRule] = MappingProxyType(diets)
        self._spice: Mapping[str, SpiceRule] = MappingProxyType(spice)

    def _read(self) -> dict:
        if not self._path.exists():
            logger.warning("Rules file not found at %s; registry empty.", self._path)
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise RuleDataError(f"rules file {self._path} is not valid JSON: {e}") from e

    def _load(self, data: dict, allergens: dict, diets: dict, spice: dict) -> None:
        if not isinstance(data, dict):
            raise RuleDataError(f"rules data must be an object, got {type(data).__name__}")
        self._version = str(data.get("version", ""))
        for raw in data.get("allergens", []) or []:
            rule = AllergenRule.from_dict(raw)
            allergens[rule.category] = rule
        for raw in data.get("diets", []) or []:
            rule = DietRule.from_dict(raw)
            diets[rule.diet_type] = rule
        for raw in data.get("spice_levels", []) or []:
            rule = SpiceRule.from_dict(raw)
            spice[rule.level] = rule
        logger.info(
            "Loaded rules version=%s allergens=%d diets=%d spice_levels=%d",
            self._version or "-", len(allergens), len(diets), len(spice),
        )

    # --- Direct lookups ---

    def get_allergen(self, category: str) -> Optional[AllergenRule]:
        return self._allergens.get(normalize_term(category))

    def get_diet(self, diet_type: str) -> Optional[DietRule]:
        return self._diets.get(normalize_term(diet_type))

    def get_spice(self, level: str) -> Optional[SpiceRule]:
        return self._spice.get(normalize_term(level))

    def list_allergens(self) -> List[str]:
        return list(self._allergens.keys())

    def list_diets(self) -> List[str]:
        return list(self._diets.keys())

    def list_spice_levels(self) -> List[str]:
        return list(self._spice.keys())

    def get_version(self) -> str:
        return self._version

    def is_empty(self) -> bool:
        return not (self._allergens or self._diets or self._spice)

    # --- Loose resolution of user strings ---

    def resolve_allergen(self, term: str) -> Optional[AllergenRule]:
        """
        Category name inside the term first ("soy milk" -> soy), then the term
        inside a category name ("egg" -> eggs), then aliases ("peanut allergy"
        -> nuts). File order breaks ties, so shellfish is listed before fish.
        """
        key = normalize_term(term)
        if not key:
            return None
        for name, rule in self._allergens.items():
            if name in key:
                return rule
        if len(key) >= _MIN_REVERSE_MATCH:
            for name, rule in self._allergens.items():
                if key in name:
                    return rule
        for rule in self._allergens.values():
            if any(alias in key for alias in rule.match_terms):
                return rule
        return None

    def resolve_diet(self, term: str) -> Optional[DietRule]:
        key = letters_only(term)
        if not key:
            return None
        for rule in self._diets.values():
            if any(letters_only(t) in key for t in rule.match_terms):
                return rule
        return None

    def resolve_spice(self, term: str) -> Optional[SpiceRule]:
        key = letters_only(term)
        if not key:
            return None
        for rule in self._spice.values():
            if any(letters_only(t) in key for t in rule.match_terms):
                return rule
        return None

    def resolve_spice_preference(self, value: str) -> Optional[SpiceRule]:
        """Exact match of a spice preference ('none', 'bland', 'mild'); 'medium'/'hot' -> None."""
        key = letters_only(value)
        if not key:
            return None
        for rule in self._spice.values():
            if key in rule.preference_values:
                return rule
        return None

    def alternatives_for(self, ingredient: str) -> List[str]:
        """Safe substitutes from every allergen category whose keywords appear in the ingredient."""
        text = normalize_term(ingredient)
        found: List[str] = []
        if not text:
            return found
        for rule in self._allergens.values():
            if any(k in text for k in rule.keywords):
                found.extend(rule.safe_alternatives)
        return list(dict.fromkeys(found))

    def to_dict(self) -> dict:
        return {
            "version": self._version,
            "allergens": [r.to_dict() for r in self._allergens.values()],
            "diets": [r.to_dict() for r in self._diets.values()],
            "spice_levels": [r.to_dict() for r in self._spice.values()],
        }
