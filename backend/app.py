"""
SafePlate FastAPI application.

Endpoints:
    GET  /                      Health check
    GET  /rules                 Loaded allergen / diet / spice rules
    POST /filter                Filter any catalog items for a dietary profile
    POST /filter/meals          Filter meals (adds missing-tag check and nut/dairy re-verify)
    POST /filter/shopping-list  Filter shopping-list entries
    POST /meal-plan/safe-meals  Safe meals for a weekly plan, topped up with emergency meals
    POST /fallback              Emergency meal per slot for a profile
    POST /ingredient/check      Is one ingredient safe; safe alternatives
"""
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Any, Dict, Optional
import logging
from dotenv import load_dotenv
from pathlib import Path

# Load env vars
load_dotenv(Path(__file__).parent / ".env")

from safeplate.config import get_log_level, log_config
from safeplate.filtering.service import DietaryFilterService
from safeplate.models.content_item import ContentItem

# Logger
logging.basicConfig(level=get_log_level())
logger = logging.getLogger(__name__)

# Initialize App
app = FastAPI(title="SafePlate Dietary Filter API")

log_config()

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

filter_service = DietaryFilterService()


# --- Request/Response Models ---
class FilterRequest(BaseModel):
    # Left untyped so a malformed payload reaches the pipeline and fails closed instead of a 422.
    items: Any = None
    profile: Optional[Dict[str, Any]] = None


class ProfileRequest(BaseModel):
    profile: Optional[Dict[str, Any]] = None


class IngredientCheckRequest(BaseModel):
    ingredient: str
    profile: Optional[Dict[str, Any]] = None


# --- Helper Functions ---

def _jsonable(item: Any) -> Any:
    """Synthetic meals are ContentItems; everything else goes back as received."""
    if isinstance(item, ContentItem):
        return item.to_dict()
    return item


# --- Endpoints ---

@app.get("/")
def health_check():
    return {
        "status": "ok",
        "service": "SafePlate Dietary Filter",
        "rules_version": filter_service.registry.get_version(),
    }


@app.get("/rules")
def get_rules():
    return filter_service.registry.to_dict()


@app.post("/filter")
async def filter_items(request: FilterRequest):
    try:
        outcome = filter_service.filter_items_with_outcome(request.items, request.profile)
        body = outcome.to_dict()
        body["safe_items"] = [_jsonable(i) for i in outcome.safe_items]
        return body
    except Exception as e:
        logger.error("Filter failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/filter/meals")
async def filter_meals(request: FilterRequest):
    try:
        meals = filter_service.filter_meals(request.items, request.profile)
        return {"safe_items": [_jsonable(m) for m in meals]}
    except Exception as e:
        logger.error("Meal filter failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/filter/shopping-list")
async def filter_shopping_list(request: FilterRequest):
    try:
        entries = filter_service.filter_shopping_list(request.items, request.profile)
        return {"safe_items": [_jsonable(e) for e in entries]}
    except Exception as e:
        logger.error("Shopping list filter failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/meal-plan/safe-meals")
async def safe_meals_for_plan(request: FilterRequest):
    try:
        meals = filter_service.safe_meals_for_plan(request.items, request.profile)
        fallback_used = any(isinstance(m, ContentItem) and m.is_emergency for m in meals)
        logger.info("MEAL_PLAN safe_meals=%d fallback_used=%s", len(meals), fallback_used)
        return {"meals": [_jsonable(m) for m in meals], "fallback_used": fallback_used}
    except Exception as e:
        logger.error("Meal plan filter failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/fallback")
async def fallback_meals(request: ProfileRequest):
    try:
        meals = filter_service.generate_fallback(request.profile)
        return {slot: meal.to_dict() for slot, meal in meals.items()}
    except Exception as e:
        logger.error("Fallback generation failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/ingredient/check")
async def check_ingredient(request: IngredientCheckRequest):
    try:
        return {
            "ingredient": request.ingredient,
            "safe": filter_service.is_ingredient_safe(request.ingredient, request.profile),
            "alternatives": filter_service.safe_alternatives(request.ingredient, request.profile),
        }
    except Exception as e:
        logger.error("Ingredient check failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
