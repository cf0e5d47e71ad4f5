"""表达式求值服务

Hub 只依赖 ExpressionEvaluator 接口（text -> text，失败抛异常），
默认实现是一个只支持算术运算的受限解析器，不执行任意代码。
"""

import ast
import math
import operator
from abc import ABC, abstractmethod
from typing import Callable, Dict, Type, Union

from ..exceptions import EvaluationError

Number = Union[int, float]

MAX_EXPRESSION_LENGTH = 1000
MAX_EXPONENT = 1000
MAX_INT_BITS = 4096
MAX_DEPTH = 100


class ExpressionEvaluator(ABC):
    """表达式求值接口"""

    @abstractmethod
    def evaluate(self, expression: str) -> str:
        """求值并返回结果文本

        Raises:
            EvaluationError: 表达式无法求值
        """
        pass


_BINARY_OPERATORS: Dict[Type[ast.operator], Callable[[Number, Number], Number]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS: Dict[Type[ast.unaryop], Callable[[Number], Number]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class ArithmeticEvaluator(ExpressionEvaluator):
    """受限算术求值器

    支持数字字面量、括号、一元正负号以及 + - * / // % **。
    """

    def evaluate(self, expression: str) -> str:
        expression = (expression or "").strip()
        if not expression:
            raise EvaluationError("Empty expression")
        if len(expression) > MAX_EXPRESSION_LENGTH:
            raise EvaluationError("Expression too long")

        try:
            tree = ast.parse(expression, mode="eval")
        except (SyntaxError, RecursionError, MemoryError) as e:
            raise EvaluationError(f"Invalid expression: {expression!r}") from e

        try:
            value = self._eval_node(tree.body)
        except (
            ZeroDivisionError,
            OverflowError,
            ValueError,
            RecursionError,
            MemoryError,
        ) as e:
            raise EvaluationError(f"Cannot evaluate {expression!r}: {e}") from e

        return self.format_number(value)

    def _eval_node(self, node: ast.AST, depth: int = 0) -> Number:
        if depth > MAX_DEPTH:
            raise EvaluationError("Expression nested too deeply")

        if isinstance(node, ast.Constant):
            # bool 是 int 的子类，需要单独排除
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise EvaluationError(f"Unsupported literal: {node.value!r}")
            return self._check(node.value)

        if isinstance(node, ast.UnaryOp):
            op = _UNARY_OPERATORS.get(type(node.op))
            if op is None:
                raise EvaluationError(f"Unsupported operator: {type(node.op).__name__}")
            return self._check(op(self._eval_node(node.operand, depth + 1)))

        if isinstance(node, ast.BinOp):
            op = _BINARY_OPERATORS.get(type(node.op))
            if op is None:
                raise EvaluationError(f"Unsupported operator: {type(node.op).__name__}")
            left = self._eval_node(node.left, depth + 1)
            right = self._eval_node(node.right, depth + 1)
            if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
                raise EvaluationError("Exponent too large")
            return self._check(op(left, right))

        raise EvaluationError(f"Unsupported syntax: {type(node).__name__}")

    @staticmethod
    def _check(value: Number) -> Number:
        if isinstance(value, complex):
            raise EvaluationError("Complex result")
        if isinstance(value, int) and value.bit_length() > MAX_INT_BITS:
            raise EvaluationError("Result too large")
        if isinstance(value, float) and not math.isfinite(value):
            raise EvaluationError("Result is not finite")
        return value

    @staticmethod
    def format_number(value: Number) -> str:
        """整数值的浮点数按整数输出，例如 25.0 -> "25" """
        if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return str(value)
