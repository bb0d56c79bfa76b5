"""SafePlate: dietary safety filtering for meals, ingredients and shopping lists."""

__version__ = "0.3.0"
