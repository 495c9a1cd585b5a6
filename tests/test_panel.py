import pytest

from nutrition_reader.ocr.base import TextBlock
from nutrition_reader.parsing.panel import (
    PanelTableParser,
    find_column_split,
    group_rows,
    parse_panel,
    pick_number_near_x,
    restrict_to_panel,
)


def test_calories_come_from_the_serving_column(panel_blocks):
    rows = group_rows(panel_blocks)
    assert find_column_split(rows) == 200

    parsed = PanelTableParser().parse(panel_blocks)
    assert parsed.calories == 160
    assert parsed.protein_grams == 4
    assert parsed.servings_per_container == 8
    assert parsed.confidence == pytest.approx(1.0)


def test_pick_number_near_serving_column(panel_blocks):
    assert pick_number_near_x(panel_blocks, row_y=26, target_x=100, row_tolerance=14) == 160
    assert pick_number_near_x(panel_blocks, row_y=26, target_x=290, row_tolerance=14) == 35


def test_percent_and_milligram_tokens_are_ignored():
    blocks = [
        TextBlock("Calories", x=10, y=20, width=60, height=12),
        TextBlock("12%", x=90, y=20, width=20, height=12),
        TextBlock("140mg", x=120, y=20, width=30, height=12),
        TextBlock("210", x=200, y=20, width=20, height=12),
    ]
    assert parse_panel(blocks).calories == 210


def test_header_tokens_define_the_column_split():
    blocks = [
        TextBlock("Per serving", x=80, y=0, width=60, height=12),
        TextBlock("Per 1 cup", x=260, y=0, width=60, height=12),
        TextBlock("Calories", x=10, y=30, width=60, height=12),
        TextBlock("90", x=100, y=30, width=20, height=12),
        TextBlock("250", x=280, y=30, width=20, height=12),
    ]
    rows = group_rows(blocks)
    assert find_column_split(rows) == 200
    assert parse_panel(blocks).calories == 90


def test_rows_group_by_running_center():
    blocks = [
        TextBlock("b", x=50, y=4, width=10, height=10),
        TextBlock("a", x=10, y=0, width=10, height=10),
        TextBlock("c", x=90, y=16, width=10, height=10),
        TextBlock("next", x=10, y=40, width=10, height=10),
        TextBlock("  ", x=10, y=80, width=10, height=10),
    ]
    rows = group_rows(blocks)
    assert [r.text for r in rows] == ["a b c", "next"]


def test_blocks_outside_the_panel_are_dropped():
    blocks = [
        TextBlock("Nutrition Facts", x=100, y=100, width=100, height=20),
        TextBlock("Calories 150", x=110, y=140, width=100, height=12),
        TextBlock("Best before 2025", x=0, y=0, width=80, height=12),
    ]
    kept = restrict_to_panel(blocks)
    assert [b.text for b in kept] == ["Nutrition Facts", "Calories 150"]


def test_calories_line_fallback():
    blocks = [
        TextBlock("Calories", x=10, y=10, width=60, height=12),
        TextBlock("230", x=12, y=40, width=20, height=12),
    ]
    assert parse_panel(blocks).calories == 230


def test_no_values_means_zero_confidence():
    parsed = parse_panel([TextBlock("Ingredients: oats, sugar", x=0, y=0, width=100, height=10)])
    assert parsed.calories is None
    assert parsed.protein_grams is None
    assert parsed.servings_per_container is None
    assert parsed.confidence == 0.0
    assert parsed.raw_text == "Ingredients: oats, sugar"


@pytest.mark.parametrize(
    "line, expected",
    [
        ("Protein 12g", 12),
        ("Protein 199", 19),
        ("Protein 0g", 0),
        ("Protein Og", 0),
        ("Protein", None),
    ],
)
def test_protein_line_fallback(line, expected):
    assert PanelTableParser._protein_from_lines([line]) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Servings Per Container 12", 12),
        ("2.5 servings per container", 2.5),
        ("About 3 servings, about 6 servings", 6),
        ("Servings per container 900", None),
        ("Serving size 1 cup", None),
    ],
)
def test_servings(text, expected):
    assert PanelTableParser._servings(text) == expected


def test_accepts_raw_recognizer_records():
    raw = [
        {"text": "Calories", "bounding": {"x": 10, "y": 20, "width": 60, "height": 12}},
        {"text": "180", "left": 100, "top": 20, "width": 20, "height": 12},
    ]
    assert parse_panel(raw).calories == 180
