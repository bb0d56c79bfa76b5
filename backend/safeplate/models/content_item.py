"""
ContentItem: one record the filter reads, whatever its origin (catalog meal,
ingredient string, shopping-list entry). Built from dicts, strings or objects;
keeps a reference to the original so results can be returned by identity.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from safeplate.errors import MissingSafetyMetadataError
from safeplate.normalization.normalizer import NormalizedItem, normalize_item


class ItemKind(str, Enum):
    MEAL = "meal"
    INGREDIENT = "ingredient"
    SHOPPING = "shopping"


# Wire name -> attribute, for the tag collections.
_TAG_FIELDS = (
    ("dietaryTags", "dietary_tags"),
    ("dietary_tags", "dietary_tags"),
    ("tags", "tags"),
    ("categories", "categories"),
    ("labels", "labels"),
)

_OBJECT_ATTRS = (
    "id", "kind", "name", "title", "item", "description", "content", "ingredients",
    "instructions", "dietaryTags", "dietary_tags", "tags", "categories",
    "labels", "mealType", "meal_type",
)


def _as_tuple(value: Any) -> Tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    if isinstance(value, dict):
        return (value,)
    try:
        return tuple(v for v in value if v is not None)
    except TypeError:
        return (value,)


def _is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class ContentItem:
    kind: ItemKind = ItemKind.MEAL
    id: Optional[str] = None
    name: str = ""
    description: str = ""
    ingredients: Tuple[Any, ...] = ()
    instructions: Tuple[Any, ...] = ()
    dietary_tags: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ()
    labels: Tuple[str, ...] = ()
    meal_type: str = ""
    # False when the record carried no tag collection at all (not even an empty one).
    has_tag_collection: bool = True
    source: Any = field(default=None, compare=False, repr=False)

    @property
    def original(self) -> Any:
        """The object this item was built from; the item itself when built directly."""
        return self if self.source is None else self.source

    @property
    def display_name(self) -> str:
        return self.name or self.id or "Unknown Item"

    @property
    def is_emergency(self) -> bool:
        return bool(self.id) and str(self.id).startswith("emergency-")

    def normalize(self) -> NormalizedItem:
        return normalize_item(self)

    def require_tags(self) -> None:
        if not self.has_tag_collection:
            raise MissingSafetyMetadataError(self.display_name)

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "description": self.description,
            "ingredients": list(self.ingredients),
            "instructions": list(self.instructions),
            "dietaryTags": list(self.dietary_tags),
        }
        if self.meal_type:
            d["mealType"] = self.meal_type
        for key, attr in (("tags", "tags"), ("categories", "categories"), ("labels", "labels")):
            values = getattr(self, attr)
            if values:
                d[key] = list(values)
        return d

    @classmethod
    def from_dict(cls, data: dict, kind: Optional[ItemKind] = None, source: Any = None) -> "ContentItem":
        if kind is None:
            raw_kind = str(data.get("kind") or "").lower()
            if raw_kind in {k.value for k in ItemKind}:
                kind = ItemKind(raw_kind)
            elif any(data.get(k) for k in ("mealType", "meal_type", "instructions")):
                kind = ItemKind.MEAL
            else:
                kind = ItemKind.INGREDIENT
        tag_values = {attr: () for _, attr in _TAG_FIELDS}
        has_tags = False
        for key, attr in _TAG_FIELDS:
            if key in data and data[key] is not None:
                tag_values[attr] = tag_values[attr] + tuple(str(t) for t in _as_tuple(data[key]))
                has_tags = has_tags or _is_collection(data[key])
        item_id = data.get("id")
        return cls(
            kind=kind,
            id=str(item_id) if item_id is not None else None,
            name=_text(data.get("name") or data.get("title") or data.get("item")),
            description=_text(data.get("description") or data.get("content")),
            ingredients=_as_tuple(data.get("ingredients")),
            instructions=_as_tuple(data.get("instructions")),
            dietary_tags=tag_values["dietary_tags"],
            tags=tag_values["tags"],
            categories=tag_values["categories"],
            labels=tag_values["labels"],
            meal_type=_text(data.get("mealType") or data.get("meal_type")),
            has_tag_collection=has_tags,
            source=data if source is None else source,
        )

    @classmethod
    def from_any(cls, obj: Any, kind: Optional[ItemKind] = None) -> Optional["ContentItem"]:
        """
        Dicts, strings and attribute-bearing objects become items; existing
        ContentItems pass through. Returns None for values that are not
        item-shaped (None, numbers, booleans).
        """
        if isinstance(obj, ContentItem):
            return obj
        if isinstance(obj, str):
            return cls(
                kind=kind or ItemKind.INGREDIENT,
                name=obj,
                has_tag_collection=False,
                source=obj,
            )
        if isinstance(obj, dict):
            return cls.from_dict(obj, kind=kind)
        if obj is None or isinstance(obj, (bool, int, float)):
            return None
        attrs = {name: getattr(obj, name) for name in _OBJECT_ATTRS if hasattr(obj, name)}
        if not attrs:
            return None
        return cls.from_dict(attrs, kind=kind, source=obj)
