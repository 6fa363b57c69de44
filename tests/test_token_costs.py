import pytest

from ocr_benchmark.models.token_costs import FINETUNED_COST, TokenCostTable, build_token_cost_table


def test_known_model_cost() -> None:
    table = build_token_cost_table()

    assert table.cost("gpt-4o", "input", 1_000_000) == pytest.approx(2.5)
    assert table.calculate_cost("gpt-4o-mini", 2_000_000, 500_000) == pytest.approx((0.3, 0.3, 0.6))


def test_local_models_are_free() -> None:
    assert build_token_cost_table().calculate_cost("llava", 5000, 800) == (0.0, 0.0, 0.0)


def test_unknown_model_costs_nothing(caplog) -> None:
    table = build_token_cost_table()

    assert table.cost("mystery-model", "input", 1000) == 0.0
    assert table.cost("mystery-model", "output", 1000) == 0.0
    assert "mystery-model" not in table
    assert len([r for r in caplog.records if "mystery-model" in r.getMessage()]) == 1


def test_missing_token_counts() -> None:
    assert build_token_cost_table().calculate_cost("gpt-4o", None, None) == (0.0, 0.0, 0.0)


def test_finetuned_models_use_flat_rate() -> None:
    table = build_token_cost_table(["ft:gpt-4o-mini:acme:receipts"])

    assert table.price("ft:gpt-4o-mini:acme:receipts") == FINETUNED_COST
    assert table.cost("ft:gpt-4o-mini:acme:receipts", "output", 1_000_000) == pytest.approx(15.0)


def test_table_is_read_only() -> None:
    source = {"model-a": {"input": 1.0, "output": 2.0}}
    table = TokenCostTable(source)
    source["model-a"]["input"] = 100.0

    assert table.price("model-a")["input"] == 1.0
    with pytest.raises(TypeError):
        table.price("model-a")["input"] = 5.0
