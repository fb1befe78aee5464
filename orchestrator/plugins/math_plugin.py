"""
Math plugin: pull an arithmetic expression out of the message and evaluate it.

Only numbers, + - * / % ^ ( ) and sqrt/sin/cos/tan/log are allowed. ^ is power.
Evaluation runs with no builtins; the expression is whitelisted first.
"""

import logging
import math
import re
from typing import Any

from orchestrator.plugins.base import Plugin, PluginContext, PluginResult

logger = logging.getLogger(__name__)

MATH_KEYWORDS = (
    "calculate", "compute", "solve", "math", "equation", "formula",
    "add", "subtract", "multiply", "divide", "square", "sqrt", "root",
    "sum", "average", "mean", "percentage", "percent",
)

MATH_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"\d+\s*[\+\-\*\/\^%]\s*\d+",
    r"sqrt\s*\(\s*\d+\s*\)",
    r"sin\s*\(\s*\d+\s*\)",
    r"cos\s*\(\s*\d+\s*\)",
    r"tan\s*\(\s*\d+\s*\)",
    r"log\s*\(\s*\d+\s*\)",
    r"what\s+is\s+\d+.*[\+\-\*\/]",
    r"calculate\s+\d+",
    r"solve\s+.+=",
))

_KEYWORD_RE = re.compile(r"\b(?:" + "|".join(MATH_KEYWORDS) + r")\b", re.IGNORECASE)

_NUMBER = r"\d+(?:\.\d+)?"
_EXTRACT_PATTERNS = (
    re.compile(rf"({_NUMBER}\s*[\+\-\*\/\^%]\s*{_NUMBER}(?:\s*[\+\-\*\/\^%]\s*{_NUMBER})*)"),
    re.compile(rf"(sqrt\s*\(\s*{_NUMBER}\s*\))", re.IGNORECASE),
    re.compile(rf"((?:sin|cos|tan|log)\s*\(\s*{_NUMBER}\s*\))", re.IGNORECASE),
)
_FILLER_RE = re.compile(r"what\s+(?:is|are)\s+|calculate\s+|compute\s+|solve\s+|\?", re.IGNORECASE)
_GENERAL_RE = re.compile(r"[\d\+\-\*\/\^\(\)\.\s]+")

_UNSAFE_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"import", r"require", r"eval", r"function", r"while", r"for", r"if",
    r"[a-zA-Z_][a-zA-Z0-9_]*\s*=", r"[{}]", r";", r"__",
))

_FUNCTIONS = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "log": math.log,
}
_FUNCTION_RE = re.compile(r"\b(?:" + "|".join(_FUNCTIONS) + r")\b")
_ALLOWED_RE = re.compile(r"^[\d\s+\-*/().%]+$")
_POWER_RE = re.compile(r"\*\*\s*\(?\s*(\d+(?:\.\d+)?)")
MAX_EXPONENT = 1000

_TYPE_LABELS = {"integer": "(whole number)", "decimal": "(decimal)"}


class MathError(ValueError):
    """Expression could not be evaluated."""


def extract_expression(query: str) -> str | None:
    """Return the first arithmetic expression found in the query, or None."""
    cleaned = _FILLER_RE.sub("", query.lower()).strip()
    for pattern in _EXTRACT_PATTERNS:
        match = pattern.search(cleaned)
        if match:
            return re.sub(r"\s+", " ", match.group(1)).strip()
    for run in _GENERAL_RE.findall(cleaned):
        candidate = run.strip()
        if re.search(r"\d", candidate) and re.search(r"[\+\-\*\/]", candidate):
            return candidate
    return None


def is_expression_safe(expression: str) -> bool:
    return not any(p.search(expression) for p in _UNSAFE_PATTERNS)


def evaluate(expression: str) -> int | float:
    """Evaluate a whitelisted arithmetic expression. Raises MathError on anything else."""
    expr = expression.replace("^", "**")
    if not _ALLOWED_RE.match(_FUNCTION_RE.sub("", expr) or "0"):
        raise MathError(f"Unsupported characters in expression: {expression!r}")
    powers = _POWER_RE.findall(expr)
    if expr.count("**") > 1 or any(float(p) > MAX_EXPONENT for p in powers):
        raise MathError("Exponent too large")
    try:
        value = eval(expr, {"__builtins__": {}}, dict(_FUNCTIONS))  # noqa: S307
    except (ArithmeticError, SyntaxError, TypeError, ValueError) as e:
        raise MathError(str(e)) from e
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MathError(f"Expression did not produce a number: {expression!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise MathError("Result is not finite")
    return value


def normalize_result(value: int | float) -> tuple[int | float, str]:
    """Round to 6 decimals and label the result as integer or decimal."""
    if isinstance(value, float):
        value = round(value, 6)
        if value.is_integer():
            return int(value), "integer"
        return value, "decimal"
    return value, "integer"


class MathPlugin(Plugin):
    name = "math"
    description = "Evaluates mathematical expressions and solves math problems"
    version = "1.0.0"

    def can_handle(self, context: PluginContext) -> bool:
        query = context.query
        if _KEYWORD_RE.search(query):
            return True
        return any(p.search(query) for p in MATH_PATTERNS)

    async def execute(self, context: PluginContext) -> PluginResult:
        logger.info("[math:execute] IN  query=%r", context.query[:200])
        expression = extract_expression(context.query)
        if not expression:
            return PluginResult(
                success=False,
                error="Could not extract a valid mathematical expression",
                formatted_response=(
                    "I couldn't find a mathematical expression to solve. "
                    'Try something like "calculate 2 + 3" or "what is 5 * 7".'
                ),
            )
        if not is_expression_safe(expression):
            return PluginResult(
                success=False,
                error="Mathematical expression contains unsafe elements",
                formatted_response="I can only solve basic arithmetic expressions.",
            )
        try:
            raw = evaluate(expression)
        except MathError as e:
            logger.info("[math:execute] expression=%r failed: %s", expression, e)
            return PluginResult(
                success=False,
                error=f"Invalid mathematical expression: {e}",
                formatted_response=f'I couldn\'t solve "{expression}". Please check the expression and try again.',
            )
        result, result_type = normalize_result(raw)
        data: dict[str, Any] = {"expression": expression, "result": result, "type": result_type}
        logger.info("[math:execute] OUT expression=%r result=%r", expression, result)
        return PluginResult(
            success=True,
            data=data,
            formatted_response=self.format_response(expression, result, result_type),
            metadata={
                "original_query": context.query,
                "extracted_expression": expression,
                "result_type": result_type,
            },
        )

    @staticmethod
    def format_response(expression: str, result: int | float, result_type: str) -> str:
        label = _TYPE_LABELS.get(result_type, "")
        return (
            "**Math Calculation**\n\n"
            f"Expression: `{expression}`\n"
            f"Result: **{result}** {label}".rstrip()
        )

    async def health_check(self) -> bool:
        return evaluate("2 + 2") == 4
