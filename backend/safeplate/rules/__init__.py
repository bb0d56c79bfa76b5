from .rule_schema import AllergenRule, DietRule, SpiceRule
from .rule_registry import RuleRegistry

__all__ = [
    "AllergenRule",
    "DietRule",
    "SpiceRule",
    "RuleRegistry",
]
