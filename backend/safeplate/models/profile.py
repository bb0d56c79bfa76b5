"""
Dietary profile as read by the filter. Owned by the user-profile service; the
filter never writes it.

Field mapping (frontend <-> backend):
  - allergies <-> allergies (free text: ["nuts", "peanut allergy", ...])
  - dietaryRestrictions <-> dietary_restrictions (free text: ["gluten free", "bland"])
  - primaryDiet <-> primary_diet ("vegan", "keto", "omnivore", ...)
  - spicePreference / spiceLevel <-> spice_preference ("none", "mild", "medium", "hot")
  - isGlutenFree / isDairyFree / isNutFree <-> is_gluten_free / is_dairy_free / is_nut_free

Legacy aliases (kept for backward compatibility):
  - allergens -> read as allergies
  - spice_tolerance -> read as spice_preference
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional

NO_DIET_VALUES = ("", "omnivore", "other", "no rules", "none")


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    try:
        return [str(v) for v in value if v is not None and str(v).strip()]
    except TypeError:
        return []


def _first_present(data: dict, *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _flag(value: Any) -> bool:
    # Only an explicit true enables a flag; "false" strings from forms stay off.
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return value is True


@dataclass
class DietaryProfile:
    allergies: List[str] = field(default_factory=list)
    dietary_restrictions: List[str] = field(default_factory=list)
    primary_diet: str = "omnivore"
    spice_preference: str = "medium"
    is_gluten_free: bool = False
    is_dairy_free: bool = False
    is_nut_free: bool = False

    @property
    def has_primary_diet(self) -> bool:
        return (self.primary_diet or "").strip().lower() not in NO_DIET_VALUES

    def is_empty(self) -> bool:
        """True when the profile asks for no filtering at all."""
        return (
            not self.allergies
            and not self.dietary_restrictions
            and not self.has_primary_diet
            and (self.spice_preference or "").strip().lower() in ("", "medium", "hot")
            and not (self.is_gluten_free or self.is_dairy_free or self.is_nut_free)
        )

    def to_dict(self) -> dict:
        return {
            "allergies": list(self.allergies),
            "dietaryRestrictions": list(self.dietary_restrictions),
            "primaryDiet": self.primary_diet,
            "spicePreference": self.spice_preference,
            "isGlutenFree": self.is_gluten_free,
            "isDairyFree": self.is_dairy_free,
            "isNutFree": self.is_nut_free,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "DietaryProfile":
        data = data or {}
        primary = _first_present(data, "primaryDiet", "primary_diet", "diet")
        spice = _first_present(data, "spicePreference", "spice_preference", "spiceLevel", "spice_tolerance")
        return cls(
            allergies=_string_list(_first_present(data, "allergies", "allergens")),
            dietary_restrictions=_string_list(_first_present(data, "dietaryRestrictions", "dietary_restrictions")),
            primary_diet=str(primary).strip() if primary else "omnivore",
            spice_preference=str(spice).strip() if spice else "medium",
            is_gluten_free=_flag(_first_present(data, "isGlutenFree", "is_gluten_free")),
            is_dairy_free=_flag(_first_present(data, "isDairyFree", "is_dairy_free")),
            is_nut_free=_flag(_first_present(data, "isNutFree", "is_nut_free")),
        )

    @classmethod
    def coerce(cls, profile: Any) -> Optional["DietaryProfile"]:
        """Accept a DietaryProfile, a dict, or any object with matching attributes. None stays None."""
        if profile is None:
            return None
        if isinstance(profile, DietaryProfile):
            return profile
        if isinstance(profile, dict):
            return cls.from_dict(profile)
        attrs = {
            name: getattr(profile, name)
            for name in (
                "allergies", "allergens", "dietary_restrictions", "dietaryRestrictions",
                "primary_diet", "primaryDiet", "spice_preference", "spicePreference",
                "spiceLevel", "is_gluten_free", "isGlutenFree", "is_dairy_free",
                "isDairyFree", "is_nut_free", "isNutFree",
            )
            if hasattr(profile, name)
        }
        return cls.from_dict(attrs)
