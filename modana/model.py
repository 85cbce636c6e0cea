"""Symbol tables for a model: variable types, variables, parameters and equations."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Union

from modana.expressions import Equation, ParameterRef, VariableRef

TABLE_SIZE = 1000
MAX_NAME = 256
MAX_EQUATIONS = 1000
PARAMETER_TYPE = "RealParameter"

_PROPERTY_NAMES = ("value", "lower", "upper")

PropertySource = Union[Mapping[str, float], Iterable[tuple[str, float]], None]


class ModelError(Exception):
    """Raised when a model declaration or reference is invalid."""


def table_hash(name: str) -> int:
    """Return the symbol-table slot for a name, in the range [0, TABLE_SIZE)."""
    value = 0
    for byte in name.encode("utf-8")[:MAX_NAME]:
        char = byte - 256 if byte >= 128 else byte
        value = (value + char) & 0xFFFFFFFF
        value = ((value * char) & 0xFFFFFFFF) % TABLE_SIZE
    return value


def _property_items(properties: PropertySource) -> list[tuple[str, float]]:
    if properties is None:
        return []
    if isinstance(properties, Mapping):
        return list(properties.items())
    return list(properties)


@dataclass
class TypeProperties:
    """Default value and bounds attached to a variable type."""

    type: str
    value: float = 0.0
    lower: float = 0.0
    upper: float = 0.0


@dataclass
class Variable:
    """A declared model variable."""

    name: str
    type: str
    index: int
    value: float = 0.0
    lower: float = 0.0
    upper: float = 0.0
    fixed: bool = False
    active: bool = False
    equations: list[int] = field(default_factory=list)


@dataclass
class Parameter:
    """A declared model parameter."""

    name: str
    index: int
    value: float = 0.0
    type: str = PARAMETER_TYPE


@dataclass
class Unknown:
    """A free variable that the solver has to determine."""

    name: str
    value: float
    upper: float
    lower: float
    index: int
    equations: tuple[int, ...]


Symbol = Union[Variable, Parameter]


class Model:
    """Holds the declarations and equations of a model."""

    def __init__(self) -> None:
        self._symbols: list[list[Symbol]] = [[] for _ in range(TABLE_SIZE)]
        self._types: list[TypeProperties | None] = [None] * TABLE_SIZE
        self._variables: list[Variable] = []
        self._parameters: list[Parameter] = []
        self._equations: list[Equation] = []

    @property
    def variables(self) -> tuple[Variable, ...]:
        return tuple(self._variables)

    @property
    def parameters(self) -> tuple[Parameter, ...]:
        return tuple(self._parameters)

    @property
    def equations(self) -> tuple[Equation, ...]:
        return tuple(self._equations)

    def define_type(self, type_name: str, properties: PropertySource) -> TypeProperties:
        """Store a variable type with its value, lower and upper properties."""
        entry = TypeProperties(type_name)
        for prop, value in _property_items(properties):
            if prop in _PROPERTY_NAMES:
                setattr(entry, prop, float(value))
        start = table_hash(type_name)
        for offset in range(TABLE_SIZE):
            slot = (start + offset) % TABLE_SIZE
            if self._types[slot] is None:
                self._types[slot] = entry
                return entry
        raise ModelError("La tabla de propiedades esta llena")

    def _find_type(self, type_name: str) -> TypeProperties | None:
        start = table_hash(type_name)
        for offset in range(TABLE_SIZE):
            entry = self._types[(start + offset) % TABLE_SIZE]
            if entry is not None and entry.type == type_name:
                return entry
        return None

    def declare(self, name: str, type_name: str, properties: PropertySource = None) -> Symbol:
        """Declare a variable (or a parameter, for RealParameter) of a given type."""
        if self.lookup(name) is not None:
            raise ModelError(f"Ya existe una variable {name} en el tipo {type_name}")
        symbol: Symbol
        if type_name == PARAMETER_TYPE:
            if len(self._parameters) >= TABLE_SIZE:
                raise ModelError("Se excedio el numero maximo de parametros")
            symbol = Parameter(name, len(self._parameters))
            self._parameters.append(symbol)
        else:
            if len(self._variables) >= TABLE_SIZE:
                raise ModelError("Se excedio el numero maximo de variables")
            symbol = Variable(name, type_name, len(self._variables))
            defaults = self._find_type(type_name)
            if defaults is not None:
                symbol.value = defaults.value
                symbol.lower = defaults.lower
                symbol.upper = defaults.upper
            for prop, value in _property_items(properties):
                if prop in _PROPERTY_NAMES:
                    setattr(symbol, prop, float(value))
            self._variables.append(symbol)
        self._symbols[table_hash(name)].insert(0, symbol)
        return symbol

    def lookup(self, name: str) -> Symbol | None:
        """Return the declared variable or parameter with this name, or None."""
        return next(
            (symbol for symbol in self._symbols[table_hash(name)] if symbol.name == name),
            None,
        )

    def _require(self, name: str) -> Symbol:
        symbol = self.lookup(name)
        if symbol is None:
            raise ModelError(f"Error: la variable {name} no ha sido declarada.")
        return symbol

    def set_value(self, name: str, value: float) -> None:
        """Assign a value; a variable given a value becomes fixed data."""
        symbol = self._require(name)
        symbol.value = float(value)
        if isinstance(symbol, Variable):
            symbol.fixed = True

    def reference(self, name: str, equation_index: int) -> VariableRef | ParameterRef:
        """Build an expression node for a name used in the given equation."""
        symbol = self._require(name)
        if isinstance(symbol, Parameter):
            return ParameterRef(name, symbol.index)
        symbol.active = True
        if equation_index not in symbol.equations:
            symbol.equations.append(equation_index)
        return VariableRef(name, symbol.index)

    def add_equation(self, equation: Equation) -> int:
        """Append an equation and return its index."""
        if len(self._equations) >= MAX_EQUATIONS:
            raise ModelError("Se excedio el numero maximo de ecuaciones")
        self._equations.append(equation)
        return len(self._equations) - 1

    def build_unknowns(self) -> list[Unknown]:
        """Return the variables that appear in equations and are not fixed."""
        return [
            Unknown(
                name=var.name,
                value=var.value,
                upper=var.upper,
                lower=var.lower,
                index=var.index,
                equations=tuple(var.equations),
            )
            for var in self._variables
            if not var.fixed and var.active
        ]

    def variable_values(self) -> list[float]:
        return [var.value for var in self._variables]

    def parameter_values(self) -> list[float]:
        return [par.value for par in self._parameters]

    def format_tables(self) -> str:
        """Render both symbol tables slot by slot."""
        lines = ["TABLA DE VARIABLES"]
        for slot, chain in enumerate(self._symbols):
            if chain:
                lines.append(f"\t{slot}\t" + "".join(f"{s.name} --" for s in chain))
            else:
                lines.append(f"\t{slot}\t----")
        lines.append("Final de tabla")
        lines.append("TABLA PARA PROPIEDADES")
        for slot, entry in enumerate(self._types):
            if entry is None:
                lines.append(f"\t{slot}\t----")
            else:
                lines.append(
                    f"\t{slot}\t{entry.type} --, VALUE:{entry.value:f}, "
                    f"LOWER:{entry.lower:f}, UPPER:{entry.upper:f}"
                )
        lines.append("Final de tabla")
        return "\n".join(lines) + "\n"

    def format_variables(self) -> str:
        return "".join(
            f"Los valores de la variable {var.index} - {var.name}, son value: "
            f"{var.value:.14f}, upper: {var.upper:f}, lower: {var.lower:f}\n"
            for var in self._variables
        )

    def format_parameters(self) -> str:
        return "".join(
            f"El valor del parametro {par.index} - {par.name}, es value: {par.value:f}\n"
            for par in self._parameters
        )

    def format_sparsity(self, unknowns: Sequence[Unknown]) -> str:
        """Describe which equations each unknown appears in."""
        lines = []
        count = 0
        for column, unknown in enumerate(unknowns):
            lines.append(f"Columna {column} - Variable: {unknown.name}")
            rows = "".join(f"{row} " for row in unknown.equations)[:1023]
            count += len(unknown.equations)
            lines.append(f"Filas: {rows}")
        lines.append(f"Elementos no nulos en jacobiano: {count}")
        lines.append(
            "Elementos no nulos en jacobiano teniendo en cuenta restricciones: "
            f"{count + len(unknowns) * 2}"
        )
        return "\n".join(lines) + "\n"