from .pipeline import FilterPipeline
from .reverifier import SafetyReverifier
from .fallback import EmergencyFallbackGenerator, generate_fallback, MEAL_SLOTS
from .service import DietaryFilterService

__all__ = [
    "FilterPipeline",
    "SafetyReverifier",
    "EmergencyFallbackGenerator",
    "generate_fallback",
    "MEAL_SLOTS",
    "DietaryFilterService",
]
