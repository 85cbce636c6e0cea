"""Expression trees for model equations and their numeric evaluation."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Union

import numpy as np


class ExpressionError(Exception):
    """Raised when an expression cannot be built or evaluated."""


def _ieee(operation: Callable[..., np.floating], *args: float) -> float:
    """Apply a numpy operation with IEEE semantics (inf/nan instead of errors)."""
    with np.errstate(all="ignore"):
        return float(operation(*(np.float64(arg) for arg in args)))


_FUNCTIONS: dict[str, Callable[..., np.floating]] = {
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    "asin": np.arcsin,
    "acos": np.arccos,
    "atan": np.arctan,
    "sqrt": np.sqrt,
    "exp": np.exp,
    "loge": np.log,
    "logd": np.log10,
    "abs": np.fabs,
}

_OPERATORS: dict[str, Callable[..., np.floating]] = {
    "+": np.add,
    "-": np.subtract,
    "*": np.multiply,
    "/": np.true_divide,
    "^": np.power,
}


def apply_function(name: str, value: float) -> float:
    """Apply the named model function (sin, cos, ..., loge, logd, abs) to a value."""
    try:
        function = _FUNCTIONS[name]
    except KeyError:
        raise ExpressionError(f"Funcion {name} no reconocida") from None
    return _ieee(function, value)


@dataclass(frozen=True)
class Constant:
    """A numeric literal."""

    value: float

    def evaluate(self, variables: Sequence[float], parameters: Sequence[float]) -> float:
        return float(self.value)


@dataclass(frozen=True)
class VariableRef:
    """A reference to a model variable by its position in the variable list."""

    name: str
    index: int

    def evaluate(self, variables: Sequence[float], parameters: Sequence[float]) -> float:
        try:
            return float(variables[self.index])
        except IndexError:
            raise ExpressionError(
                f"Variable {self.name} no encontrada en el vector de variables"
            ) from None


@dataclass(frozen=True)
class ParameterRef:
    """A reference to a model parameter by its position in the parameter list."""

    name: str
    index: int

    def evaluate(self, variables: Sequence[float], parameters: Sequence[float]) -> float:
        try:
            return float(parameters[self.index])
        except IndexError:
            raise ExpressionError(
                f"Parametro {self.name} no encontrado en el vector de parametros"
            ) from None


@dataclass(frozen=True)
class BinaryOp:
    """An arithmetic operation: one of + - * / ^."""

    op: str
    left: "Expression"
    right: "Expression"

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ExpressionError(f"Error de evaluacion en un nodo: {self.op}")

    def evaluate(self, variables: Sequence[float], parameters: Sequence[float]) -> float:
        lhs = self.left.evaluate(variables, parameters)
        rhs = self.right.evaluate(variables, parameters)
        return _ieee(_OPERATORS[self.op], lhs, rhs)


@dataclass(frozen=True)
class Negate:
    """Unary minus."""

    operand: "Expression"

    def evaluate(self, variables: Sequence[float], parameters: Sequence[float]) -> float:
        return -self.operand.evaluate(variables, parameters)


@dataclass(frozen=True)
class FunctionCall:
    """A call of a named single-argument function."""

    name: str
    argument: "Expression"

    def __post_init__(self) -> None:
        if self.name not in _FUNCTIONS:
            raise ExpressionError(f"Funcion {self.name} no reconocida")

    def evaluate(self, variables: Sequence[float], parameters: Sequence[float]) -> float:
        return apply_function(self.name, self.argument.evaluate(variables, parameters))


Expression = Union[Constant, VariableRef, ParameterRef, BinaryOp, Negate, FunctionCall]


@dataclass(frozen=True)
class Equation:
    """An equation ``left = right``."""

    left: Expression
    right: Expression

    def residual(self, variables: Sequence[float], parameters: Sequence[float]) -> float:
        """Return left minus right for the given values."""
        return self.left.evaluate(variables, parameters) - self.right.evaluate(
            variables, parameters
        )