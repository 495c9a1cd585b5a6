"""Value-for-money metrics derived from resolved nutrition values and a price."""

from __future__ import annotations

import math
from typing import Dict, Optional, Tuple

from .types import ResolvedNutrition

DEFAULT_MEAL_MULTIPLIER = 2.5

# (key, label, higher_is_better)
METRIC_RULES: Tuple[Tuple[str, str, bool], ...] = (
    ("calories_per_dollar", "Calories per $", True),
    ("protein_per_dollar", "Protein per $", True),
    ("calories_per_protein", "Calories per gram protein", False),
    ("cost_per_serving", "Cost per serving", False),
    ("meals_per_container", "Meals per container", True),
    ("cost_per_meal", "Cost per meal", False),
)

METRIC_KEYS = tuple(key for key, _, _ in METRIC_RULES)

_PRICE_METRICS = {"calories_per_dollar", "protein_per_dollar", "cost_per_serving", "cost_per_meal"}


def _finite(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def _valid_price(price: Optional[float]) -> bool:
    return price is not None and math.isfinite(price) and price > 0


def value_metrics(
    resolved: ResolvedNutrition,
    price: Optional[float],
    meal_multiplier: float = DEFAULT_MEAL_MULTIPLIER,
) -> Dict[str, Optional[float]]:
    """Compute per-product value metrics.

    Missing nutrition values count as zero. A metric whose denominator is
    zero comes back as ``None`` rather than infinity. Without a positive
    price only ``calories_per_protein`` and ``meals_per_container`` are
    filled.

    Args:
        resolved: Final nutrition values for one product
        price: Product price; ``None`` or non-positive means unknown
        meal_multiplier: Servings eaten per meal (values <= 0 read as 1)

    Returns:
        Mapping of every key in ``METRIC_KEYS`` to a float or ``None``
    """
    calories = resolved.calories or 0.0
    protein = resolved.protein_grams or 0.0
    servings = resolved.servings_per_container or 0.0
    multiplier = meal_multiplier if meal_multiplier > 0 else 1.0

    total_calories = calories * max(1.0, servings)
    total_protein = protein * max(1.0, servings)
    meals = servings / multiplier if servings > 0 else 0.0

    metrics: Dict[str, Optional[float]] = {
        "calories_per_protein": _finite(calories / protein if protein > 0 else math.inf),
        "meals_per_container": _finite(meals),
    }
    if _valid_price(price):
        metrics["calories_per_dollar"] = _finite(total_calories / price)
        metrics["protein_per_dollar"] = _finite(total_protein / price)
        metrics["cost_per_serving"] = _finite(price / servings if servings > 0 else math.inf)
        metrics["cost_per_meal"] = _finite(price / meals if meals > 0 else math.inf)
    else:
        metrics.update({key: None for key in _PRICE_METRICS})
    return {key: metrics[key] for key in METRIC_KEYS}


def compare_metrics(
    left: Dict[str, Optional[float]], right: Dict[str, Optional[float]]
) -> Dict[str, Optional[str]]:
    """Say which side wins each metric: ``"left"``, ``"right"`` or ``None`` for ties and gaps."""
    winners: Dict[str, Optional[str]] = {}
    for key, _, higher_is_better in METRIC_RULES:
        a, b = left.get(key), right.get(key)
        winner = None
        if a is not None and b is not None and a != b:
            if higher_is_better:
                winner = "left" if a > b else "right"
            else:
                winner = "left" if a < b else "right"
        winners[key] = winner
    return winners


__all__ = [
    "DEFAULT_MEAL_MULTIPLIER",
    "METRIC_KEYS",
    "METRIC_RULES",
    "compare_metrics",
    "value_metrics",
]
