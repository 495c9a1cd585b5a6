import pytest

from nutrition_reader.core.metrics import METRIC_KEYS, compare_metrics, value_metrics
from nutrition_reader.core.types import ResolvedNutrition


def test_value_metrics_for_a_priced_product():
    resolved = ResolvedNutrition(calories=200, protein_grams=10, servings_per_container=5)
    metrics = value_metrics(resolved, price=4.0)

    assert list(metrics) == list(METRIC_KEYS)
    assert metrics["calories_per_dollar"] == pytest.approx(250.0)
    assert metrics["protein_per_dollar"] == pytest.approx(12.5)
    assert metrics["calories_per_protein"] == pytest.approx(20.0)
    assert metrics["cost_per_serving"] == pytest.approx(0.8)
    assert metrics["meals_per_container"] == pytest.approx(2.0)
    assert metrics["cost_per_meal"] == pytest.approx(2.0)


def test_zero_denominators_become_none():
    metrics = value_metrics(ResolvedNutrition(calories=150), price=3.0)

    # A missing servings count still counts the container as one serving
    assert metrics["calories_per_dollar"] == pytest.approx(50.0)
    assert metrics["protein_per_dollar"] == 0.0
    assert metrics["calories_per_protein"] is None
    assert metrics["cost_per_serving"] is None
    assert metrics["meals_per_container"] == 0.0
    assert metrics["cost_per_meal"] is None


@pytest.mark.parametrize("price", [None, 0.0, -2.0, float("nan")])
def test_price_metrics_need_a_positive_price(price):
    resolved = ResolvedNutrition(calories=200, protein_grams=10, servings_per_container=5)
    metrics = value_metrics(resolved, price=price)

    assert metrics["calories_per_protein"] == pytest.approx(20.0)
    assert metrics["meals_per_container"] == pytest.approx(2.0)
    for key in ("calories_per_dollar", "protein_per_dollar", "cost_per_serving", "cost_per_meal"):
        assert metrics[key] is None


def test_non_positive_meal_multiplier_reads_as_one():
    resolved = ResolvedNutrition(servings_per_container=5)
    metrics = value_metrics(resolved, price=10.0, meal_multiplier=0)
    assert metrics["meals_per_container"] == 5.0
    assert metrics["cost_per_meal"] == pytest.approx(2.0)


def test_compare_metrics_uses_direction_per_metric():
    cheap = value_metrics(
        ResolvedNutrition(calories=200, protein_grams=10, servings_per_container=5), price=4.0
    )
    pricey = value_metrics(
        ResolvedNutrition(calories=200, protein_grams=20, servings_per_container=5), price=8.0
    )
    winners = compare_metrics(cheap, pricey)

    assert winners["calories_per_dollar"] == "left"
    assert winners["calories_per_protein"] == "right"
    assert winners["cost_per_serving"] == "left"
    assert winners["meals_per_container"] is None
    assert winners["protein_per_dollar"] is None


def test_compare_metrics_skips_missing_values():
    left = value_metrics(ResolvedNutrition(calories=200), price=None)
    right = value_metrics(ResolvedNutrition(calories=200, servings_per_container=2), price=3.0)
    winners = compare_metrics(left, right)
    assert winners["cost_per_meal"] is None
    assert winners["meals_per_container"] == "right"
