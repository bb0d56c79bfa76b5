"""
Result of one filter run. Diagnostic only: the removals and unknown terms are
for logs and API responses, never persisted.
"""
from dataclasses import dataclass, field
from typing import Any, List


@dataclass(frozen=True)
class Removal:
    item_name: str
    stage: str
    reason: str

    def to_dict(self) -> dict:
        return {"item_name": self.item_name, "stage": self.stage, "reason": self.reason}


@dataclass
class FilterOutcome:
    safe_items: List[Any] = field(default_factory=list)  # caller's own objects, input order
    removals: List[Removal] = field(default_factory=list)
    unknown_terms: List[str] = field(default_factory=list)
    input_count: int = 0

    @property
    def removed_count(self) -> int:
        return self.input_count - len(self.safe_items)

    def to_dict(self) -> dict:
        return {
            "safe_items": list(self.safe_items),
            "removed_count": self.removed_count,
            "removals": [r.to_dict() for r in self.removals],
            "unknown_terms": list(self.unknown_terms),
        }
