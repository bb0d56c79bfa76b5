"""
Deterministic normalization only. Produces the searchable text blob and the tag
set that every filter stage matches against.
"""
import re
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    from safeplate.models.content_item import ContentItem


_WHITESPACE = re.compile(r"\s+")
_NON_LETTERS = re.compile(r"[^a-z]")


@dataclass(frozen=True)
class NormalizedItem:
    text: str = ""
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def contains_any(self, keywords: Iterable[str]) -> bool:
        return any(k in self.text for k in keywords)

    def first_keyword(self, keywords: Iterable[str]) -> str:
        """First matching keyword (sorted for stable log output), or ''."""
        for k in sorted(keywords):
            if k in self.text:
                return k
        return ""

    def tag_containing(self, needles: Iterable[str]) -> str:
        """Item tag that contains any of the needles, or ''. Used for disqualifying tags."""
        for tag in sorted(self.tags):
            for needle in needles:
                if needle in tag:
                    return tag
        return ""

    def has_exact_tag(self, wanted: Iterable[str]) -> bool:
        return not self.tags.isdisjoint(wanted)


def normalize_term(text: Any) -> str:
    """Lowercase, strip, collapse whitespace. Non-strings become ''."""
    if not isinstance(text, str):
        return ""
    return _WHITESPACE.sub(" ", text.lower()).strip()


def letters_only(text: Any) -> str:
    """'Gluten-Free ' -> 'glutenfree'."""
    return _NON_LETTERS.sub("", normalize_term(text))


def _entry_text(entry: Any) -> str:
    if entry is None:
        return ""
    if isinstance(entry, dict):
        return str(entry.get("name") or entry.get("item") or "")
    return str(entry)


def join_entries(entries: Any) -> str:
    if not entries:
        return ""
    if isinstance(entries, str):
        return entries
    return " ".join(_entry_text(e) for e in entries)


def normalize_item(item: "ContentItem") -> NormalizedItem:
    """
    text = lowercase name + description + ingredients + instructions.
    tags = lowercase union of dietary_tags, tags, categories, labels.
    Missing fields are empty, never an error.
    """
    parts = [
        item.name or "",
        item.description or "",
        join_entries(item.ingredients),
        join_entries(item.instructions),
    ]
    text = _WHITESPACE.sub(" ", " ".join(parts).lower()).strip()
    tags = frozenset(
        str(t).strip().lower()
        for group in (item.dietary_tags, item.tags, item.categories, item.labels)
        for t in (group or ())
        if t is not None and str(t).strip()
    )
    return NormalizedItem(text=text, tags=tags)
