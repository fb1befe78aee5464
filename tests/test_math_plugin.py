"""
Unit tests for the math plugin: detection, extraction and evaluation.
"""

import asyncio

import pytest

from orchestrator.plugins.base import PluginContext
from orchestrator.plugins.math_plugin import (
    MathError,
    MathPlugin,
    evaluate,
    extract_expression,
    normalize_result,
)


def ctx(query: str) -> PluginContext:
    return PluginContext(query=query, session_id="s1", user_message=query)


@pytest.fixture
def plugin() -> MathPlugin:
    return MathPlugin()


class TestCanHandle:
    @pytest.mark.parametrize("query", [
        "Calculate 15 + 27",
        "what is 12 * 3?",
        "sqrt(16)",
        "2^8",
        "can you compute the average",
    ])
    def test_math_queries(self, plugin: MathPlugin, query: str) -> None:
        assert plugin.can_handle(ctx(query))

    @pytest.mark.parametrize("query", [
        "Tell me a joke",
        "What is the weather in Paris?",
        "Send it to my address",
    ])
    def test_other_queries(self, plugin: MathPlugin, query: str) -> None:
        assert not plugin.can_handle(ctx(query))


class TestExtraction:
    @pytest.mark.parametrize("query,expected", [
        ("Calculate 15 + 27", "15 + 27"),
        ("What is 3.5 * 2?", "3.5 * 2"),
        ("compute 2^10", "2^10"),
        ("what is sqrt(81)", "sqrt(81)"),
        ("log(10) please", "log(10)"),
        ("1 + 2 * 3 - 4", "1 + 2 * 3 - 4"),
    ])
    def test_extracts_expression(self, query: str, expected: str) -> None:
        assert extract_expression(query) == expected

    def test_nothing_to_extract(self) -> None:
        assert extract_expression("solve my problems") is None


class TestEvaluate:
    def test_arithmetic(self) -> None:
        assert evaluate("15 + 27") == 42
        assert evaluate("2^10") == 1024
        assert evaluate("sqrt(16)") == 4.0

    @pytest.mark.parametrize("expression", ["1 / 0", "__import__('os')", "9^9^9", "2^100000", "abs(1)"])
    def test_rejects_bad_expressions(self, expression: str) -> None:
        with pytest.raises(MathError):
            evaluate(expression)

    def test_normalize_result(self) -> None:
        assert normalize_result(42) == (42, "integer")
        assert normalize_result(4.0) == (4, "integer")
        assert normalize_result(1 / 3) == (0.333333, "decimal")


class TestExecute:
    def test_calculate_scenario(self, plugin: MathPlugin) -> None:
        result = asyncio.run(plugin.execute(ctx("Calculate 15 + 27")))
        assert result.success is True
        assert result.data == {"expression": "15 + 27", "result": 42, "type": "integer"}
        assert "**42**" in result.formatted_response
        assert "(whole number)" in result.formatted_response

    def test_decimal_result(self, plugin: MathPlugin) -> None:
        result = asyncio.run(plugin.execute(ctx("what is 10 / 4")))
        assert result.success is True
        assert result.data["result"] == 2.5
        assert "(decimal)" in result.formatted_response

    def test_division_by_zero_fails_gracefully(self, plugin: MathPlugin) -> None:
        result = asyncio.run(plugin.execute(ctx("calculate 5 / 0")))
        assert result.success is False
        assert "Invalid mathematical expression" in result.error

    def test_no_expression(self, plugin: MathPlugin) -> None:
        result = asyncio.run(plugin.execute(ctx("do some math for me")))
        assert result.success is False
        assert result.formatted_response

    def test_health_check(self, plugin: MathPlugin) -> None:
        assert asyncio.run(plugin.health_check()) is True
