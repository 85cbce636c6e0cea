"""Newton solution of the square equation system built from a model.

Every unknown ``x`` gets two slack components, ``x - lower`` and
``x - upper``, so the solved vector is ``[x..., (x-lower, x-upper)...]``.
"""

from __future__ import annotations

import math
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TextIO

import numpy as np

from modana.model import Model, Unknown

SUCCESS = 0
INITIAL_GUESS_OK = 1
STEP_LT_STPTOL = 2

_ARMIJO = 1e-4


class SolverError(Exception):
    """Raised when the nonlinear system cannot be set up or solved."""


@dataclass
class SolveResult:
    """Outcome of a solve: status flag, unknown names and the final vector."""

    flag: int
    names: tuple[str, ...]
    solution: np.ndarray
    iterations: int
    evaluations: int

    @property
    def success(self) -> bool:
        return self.flag == SUCCESS

    @property
    def values(self) -> tuple[float, ...]:
        """Values of the unknowns (without the slack components)."""
        return tuple(float(v) for v in self.solution[: len(self.names)])


class SolverSystem:
    """Residual and Jacobian evaluation for the unknowns of a model."""

    def __init__(self, model: Model) -> None:
        self.model = model
        self.unknowns: list[Unknown] = model.build_unknowns()
        self._variables = model.variables
        self._equations = model.equations
        self._lower = np.array([u.lower for u in self.unknowns], dtype=float)
        self._upper = np.array([u.upper for u in self.unknowns], dtype=float)
        self.evaluations = 0

    @property
    def size(self) -> int:
        """Length of the solution vector (three entries per unknown)."""
        return 3 * len(self.unknowns)

    def initial_guess(self) -> np.ndarray:
        """Start from each unknown's value, with slacks consistent with its bounds."""
        values = np.array([u.value for u in self.unknowns], dtype=float)
        bounds = np.empty(2 * len(values))
        bounds[0::2] = values - self._lower
        bounds[1::2] = values - self._upper
        return np.concatenate([values, bounds])

    def residuals(self, u: Sequence[float]) -> np.ndarray:
        """Store the unknowns in the model and return equation and bound residuals."""
        u = np.asarray(u, dtype=float)
        if u.shape != (self.size,):
            raise SolverError(
                f"Se esperaba un vector de longitud {self.size}, no {u.shape}"
            )
        self.evaluations += 1
        n = len(self.unknowns)
        x = u[:n]
        for unknown, value in zip(self.unknowns, x):
            unknown.value = float(value)
            self._variables[unknown.index].value = float(value)
        variables = self.model.variable_values()
        parameters = self.model.parameter_values()
        equations = np.array(
            [eq.residual(variables, parameters) for eq in self._equations], dtype=float
        )
        slack = u[n:]
        bounds = np.empty(2 * n)
        bounds[0::2] = slack[0::2] - x + self._lower
        bounds[1::2] = slack[1::2] - x + self._upper
        return np.concatenate([equations, bounds])

    def jacobian(self, u: Sequence[float], f: Sequence[float] | None = None) -> np.ndarray:
        """Forward-difference Jacobian of the residuals at ``u``; ``f`` is F(u)."""
        u = np.asarray(u, dtype=float)
        f = self.residuals(u) if f is None else np.asarray(f, dtype=float)
        root_eps = math.sqrt(np.finfo(float).eps)
        matrix = np.empty((len(f), len(u)))
        for column, component in enumerate(u):
            sigma = root_eps * max(abs(component), 1.0)
            shifted = u.copy()
            shifted[column] += sigma
            matrix[:, column] = (self.residuals(shifted) - f) / sigma
        return matrix


def _max_norm(vector: np.ndarray) -> float:
    return float(np.max(np.abs(vector))) if vector.size else 0.0


def _relative_step(step: np.ndarray, u: np.ndarray) -> float:
    return _max_norm(step / np.maximum(np.abs(u), 1.0))


def _line_search(
    system: SolverSystem, u: np.ndarray, f: np.ndarray, step: np.ndarray, stol: float
) -> tuple[np.ndarray, np.ndarray]:
    merit = 0.5 * float(f @ f)
    slope = -float(f @ f)
    length = _relative_step(step, u)
    min_lambda = stol / length if length > 0 else 1.0
    lam = 1.0
    while lam >= min_lambda:
        trial = u + lam * step
        trial_f = system.residuals(trial)
        if np.all(np.isfinite(trial_f)):
            if 0.5 * float(trial_f @ trial_f) <= merit + _ARMIJO * lam * slope:
                return trial, trial_f
        lam *= 0.5
    raise SolverError("La busqueda lineal no converge")


def solve(
    model: Model, ftol: float = 1e-5, stol: float = 1e-5, max_iter: int = 200
) -> SolveResult:
    """Solve the model's equations for its unknowns with a line-search Newton method."""
    system = SolverSystem(model)
    n = len(system.unknowns)
    if n == 0:
        raise SolverError("No hay incognitas que resolver")
    m = len(model.equations)
    if m != n:
        raise SolverError(
            f"Numero de ecuaciones ({m}) distinto del numero de incognitas ({n})"
        )
    names = tuple(unknown.name for unknown in system.unknowns)

    u = system.initial_guess()
    f = system.residuals(u)
    if _max_norm(f) <= 0.01 * ftol:
        return SolveResult(INITIAL_GUESS_OK, names, u, 0, system.evaluations)

    for iteration in range(1, max_iter + 1):
        matrix = system.jacobian(u, f)
        try:
            step = np.linalg.solve(matrix, -f)
        except np.linalg.LinAlgError:
            raise SolverError("Jacobiano singular") from None
        if not np.all(np.isfinite(step)):
            raise SolverError("Jacobiano singular")
        previous = u
        u, f = _line_search(system, u, f, step, stol)
        if _max_norm(f) <= ftol:
            return SolveResult(SUCCESS, names, u, iteration, system.evaluations)
        if _relative_step(u - previous, u) <= stol:
            return SolveResult(STEP_LT_STPTOL, names, u, iteration, system.evaluations)
    raise SolverError(f"Se alcanzo el numero maximo de iteraciones ({max_iter})")


def write_solution(result: SolveResult, stream: TextIO | None = None) -> int:
    """Write ``x[i] = name = value`` lines for a successful result; return the line count."""
    out = sys.stdout if stream is None else stream
    if not result.success:
        return 0
    for position, (name, value) in enumerate(zip(result.names, result.values)):
        out.write(f"x[{position}] = {name} = {value:g}\n")
    return len(result.names)