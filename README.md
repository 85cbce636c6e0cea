# modana

`modana` builds equation-oriented models out of typed variables, parameters
and algebraic equations, and solves them with a line-search Newton method in
which every unknown is carried together with its distances to its lower and
upper bounds.

## Modules

- `modana.expressions` – expression trees and equations.
- `modana.model` – the symbol tables of a model (`Model`).
- `modana.solver` – residuals, Jacobian and the Newton solver.

## Concepts

- **Types** (`Model.define_type(type_name, properties)`) carry default
  `value`, `lower` and `upper` properties (all `0.0` when not given). Every
  variable declared with a type starts from those defaults.
- **Variables** (`Model.declare(name, type_name, properties)`) may override
  any of the type's properties. A variable whose value is set with
  `Model.set_value` becomes *fixed*: it is data, not an unknown.
- **Parameters** are declared with the type `RealParameter`. They hold a
  value only and are never solved for.
- **References** (`Model.reference(name, equation_index)`) return a
  `VariableRef` or `ParameterRef` node and record that the variable appears
  in that equation.
- **Equations** (`Equation(left, right)`) are pairs of expression trees; their
  `residual` is the left side minus the right side. Trees are made of
  `Constant`, `VariableRef`, `ParameterRef`, `BinaryOp` (`+ - * / ^`),
  `Negate` and `FunctionCall`. Arithmetic follows IEEE rules, so division by
  zero gives `inf` or `nan` rather than an exception.
- **Unknowns** (`Model.build_unknowns()`) are the variables that appear in at
  least one equation and were not fixed, in declaration order.

Properties may be given as a mapping or as an iterable of `(name, value)`
pairs; names other than `value`, `lower` and `upper` are ignored.

Declaring a name twice, referring to a name that was never declared, or
exceeding 1000 variables, parameters or equations raises `ModelError`.
Unknown function names and unknown operators raise `ExpressionError`.

## Supported functions

`sin`, `cos`, `tan`, `sinh`, `cosh`, `tanh`, `asin`, `acos`, `atan`, `sqrt`,
`exp`, `loge` (natural logarithm), `logd` (base-10 logarithm) and `abs`,
available directly through `apply_function(name, value)`.

## Example

```python
import sys

from modana.expressions import BinaryOp, Constant, Equation
from modana.model import Model
from modana.solver import solve, write_solution

model = Model()
model.define_type("Temperature", {"value": 300.0, "lower": 200.0, "upper": 600.0})
model.declare("T", "Temperature")
model.declare("k", "RealParameter")
model.set_value("k", 2.0)

# k * T = 900   (equation 0)
left = BinaryOp("*", model.reference("k", 0), model.reference("T", 0))
model.add_equation(Equation(left, Constant(900.0)))

result = solve(model)
write_solution(result, sys.stdout)   # x[0] = T = 450
```

## How the system is solved

For `n` unknowns the solver works on a vector of `3 n` entries: the unknowns
themselves followed, for each unknown, by `x - lower` and `x - upper`. The
residual vector holds one entry per equation followed by the two bound
relations of each unknown. `SolverSystem.initial_guess()` starts from the
unknowns' current values, `SolverSystem.residuals(u)` writes the unknowns
back into the model and evaluates everything, and `SolverSystem.jacobian(u, f)`
gives a forward-difference Jacobian with step `sqrt(eps) * max(|u_j|, 1)`.

`solve(model, ftol=1e-5, stol=1e-5, max_iter=200)` requires as many equations
as unknowns and at least one unknown. It returns a `SolveResult` whose `flag`
is `SUCCESS` (residual max-norm below `ftol`), `INITIAL_GUESS_OK` (the start
already satisfies the system) or `STEP_LT_STPTOL` (scaled step below `stol`).
`SolveResult.values` gives the unknowns without the bound components. A
singular Jacobian, a failed line search or running out of iterations raises
`SolverError`.

`write_solution(result, stream)` writes `x[i] = name = value` lines for a
successful result (to standard output by default) and returns how many lines
it wrote; for any other flag it writes nothing.

## Inspecting a model

- `Model.format_tables()` – the name table and the type-property table.
- `Model.format_variables()` – every variable with its value and bounds.
- `Model.format_parameters()` – every parameter with its value.
- `Model.format_sparsity(unknowns)` – the equations each unknown appears in,
  and the count of non-zero Jacobian entries with and without the bound
  relations.

## What it does not do

There is no reader for model files and no command-line program: models are
built in Python through `Model` and the expression classes. The solver does
not write report or statistics files.