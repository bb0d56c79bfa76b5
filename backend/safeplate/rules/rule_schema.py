"""
Rule records for allergens, diets and spice levels. All behaviour is data-driven;
adding support for a new allergen, diet or spice level means adding a record
to data/dietary_rules.json.
"""
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Tuple

from safeplate.errors import RuleDataError


def _terms(values: Iterable[Any]) -> FrozenSet[str]:
    return frozenset(str(v).strip().lower() for v in values if str(v).strip())


def _ordered_terms(values: Iterable[Any]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(str(v).strip().lower() for v in values if str(v).strip()))


def _require(d: dict, key: str, kind: str) -> Any:
    if not isinstance(d, dict) or key not in d:
        raise RuleDataError(f"{kind} rule is missing required key {key!r}: {d!r}")
    return d[key]


def _list_field(d: dict, key: str, kind: str) -> list:
    value = d.get(key, [])
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise RuleDataError(f"{kind} rule field {key!r} must be a list, got {type(value).__name__}")
    return list(value)


def _required_list(d: dict, key: str, kind: str) -> list:
    _require(d, key, kind)
    return _list_field(d, key, kind)


@dataclass(frozen=True)
class AllergenRule:
    category: str
    match_terms: FrozenSet[str] = field(default_factory=frozenset)
    keywords: FrozenSet[str] = field(default_factory=frozenset)
    disqualifying_tags: FrozenSet[str] = field(default_factory=frozenset)
    # Ordered so suggestions come out the way they were authored.
    safe_alternatives: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "match_terms": sorted(self.match_terms),
            "keywords": sorted(self.keywords),
            "disqualifying_tags": sorted(self.disqualifying_tags),
            "safe_alternatives": list(self.safe_alternatives),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "AllergenRule":
        category = str(_require(d, "category", "allergen")).strip().lower()
        return cls(
            category=category,
            match_terms=_terms(_list_field(d, "match_terms", "allergen")) | {category},
            keywords=_terms(_required_list(d, "keywords", "allergen")),
            disqualifying_tags=_terms(_list_field(d, "disqualifying_tags", "allergen")),
            safe_alternatives=_ordered_terms(_list_field(d, "safe_alternatives", "allergen")),
        )


@dataclass(frozen=True)
class DietRule:
    """Allow-list diets require a qualifying tag; deny-list diets only exclude."""
    diet_type: str
    match_terms: FrozenSet[str] = field(default_factory=frozenset)
    avoid_keywords: FrozenSet[str] = field(default_factory=frozenset)
    disqualifying_tags: FrozenSet[str] = field(default_factory=frozenset)
    qualifying_tags: FrozenSet[str] = field(default_factory=frozenset)
    is_allow_list: bool = False

    def to_dict(self) -> dict:
        return {
            "diet_type": self.diet_type,
            "match_terms": sorted(self.match_terms),
            "avoid_keywords": sorted(self.avoid_keywords),
            "disqualifying_tags": sorted(self.disqualifying_tags),
            "qualifying_tags": sorted(self.qualifying_tags),
            "is_allow_list": self.is_allow_list,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "DietRule":
        diet_type = str(_require(d, "diet_type", "diet")).strip().lower()
        is_allow_list = bool(d.get("is_allow_list", False))
        qualifying = _terms(_list_field(d, "qualifying_tags", "diet"))
        if is_allow_list and not qualifying:
            raise RuleDataError(f"allow-list diet {diet_type!r} needs at least one qualifying tag")
        return cls(
            diet_type=diet_type,
            match_terms=_terms(_list_field(d, "match_terms", "diet")) | {diet_type},
            avoid_keywords=_terms(_list_field(d, "avoid_keywords", "diet")),
            disqualifying_tags=_terms(_list_field(d, "disqualifying_tags", "diet")),
            qualifying_tags=qualifying,
            is_allow_list=is_allow_list,
        )


@dataclass(frozen=True)
class SpiceRule:
    level: str
    match_terms: FrozenSet[str] = field(default_factory=frozenset)
    preference_values: FrozenSet[str] = field(default_factory=frozenset)
    avoid_keywords: FrozenSet[str] = field(default_factory=frozenset)
    disqualifying_tags: FrozenSet[str] = field(default_factory=frozenset)
    mild_override_tags: FrozenSet[str] = field(default_factory=frozenset)

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "match_terms": sorted(self.match_terms),
            "preference_values": sorted(self.preference_values),
            "avoid_keywords": sorted(self.avoid_keywords),
            "disqualifying_tags": sorted(self.disqualifying_tags),
            "mild_override_tags": sorted(self.mild_override_tags),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "SpiceRule":
        level = str(_require(d, "level", "spice")).strip().lower()
        return cls(
            level=level,
            match_terms=_terms(_list_field(d, "match_terms", "spice")) | {level},
            preference_values=_terms(_list_field(d, "preference_values", "spice")),
            avoid_keywords=_terms(_required_list(d, "avoid_keywords", "spice")),
            disqualifying_tags=_terms(_list_field(d, "disqualifying_tags", "spice")),
            mild_override_tags=_terms(_list_field(d, "mild_override_tags", "spice")),
        )
