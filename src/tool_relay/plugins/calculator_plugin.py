"""Arithmetic evaluation tool backed by a whitelisted AST walk."""

import ast
import logging
import math
import operator

logger = logging.getLogger(__name__)

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}

_FUNCTIONS = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "floor": math.floor,
    "ceil": math.ceil,
    "log": math.log,
    "exp": math.exp,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}

_CONSTANTS = {"pi": math.pi, "e": math.e}

MAX_EXPONENT = 1000


def evaluate(expression: str):
    """Evaluate an arithmetic expression.

    Raises ValueError for anything outside plain arithmetic.
    """
    tree = ast.parse(expression.strip(), mode="eval")
    return _eval_node(tree.body)


def _eval_node(node):
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError("Exponent too large")
        return _BINARY_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]
    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _FUNCTIONS
        and not node.keywords
    ):
        return _FUNCTIONS[node.func.id](*(_eval_node(arg) for arg in node.args))
    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


class CalculatorPlugin:
    """Plugin providing arithmetic evaluation."""

    def calculate(self, expression: str) -> dict:
        """Perform a mathematical calculation

        Parameters
        ----------
        expression : str
            Mathematical expression to evaluate, e.g. "2 + 2" or "10 * 5"
        """
        try:
            result = evaluate(expression)
        except (SyntaxError, ValueError, TypeError, ArithmeticError) as e:
            logger.info(f"CALCULATE: invalid expression {expression!r}: {e}")
            return {"expression": expression, "error": "Invalid expression"}
        return {"expression": expression, "result": result}

    def hook_provide_tools(self):
        return [self.calculate]
