import itertools

import pytest

from modana.expressions import Constant, Equation, ParameterRef, VariableRef
from modana.model import (
    MAX_EQUATIONS,
    TABLE_SIZE,
    Model,
    ModelError,
    Parameter,
    Variable,
    table_hash,
)


def _colliding_names():
    seen = {}
    for length in itertools.count(1):
        for chars in itertools.product("abcdefgh", repeat=length):
            name = "".join(chars)
            slot = table_hash(name)
            if slot in seen:
                return seen[slot], name
            seen[slot] = name


def test_table_hash_empty_is_zero():
    assert table_hash("") == 0


def test_table_hash_single_char():
    assert table_hash("a") == 409


@pytest.mark.parametrize("name", ["x", "Temperatura", "caudal_1", "ñandú", "z" * 400])
def test_table_hash_in_range_and_stable(name):
    value = table_hash(name)
    assert 0 <= value < TABLE_SIZE
    assert table_hash(name) == value


def test_table_hash_only_uses_first_256_chars():
    assert table_hash("q" * 256 + "abc") == table_hash("q" * 256 + "xyz")


def test_declare_uses_type_defaults():
    model = Model()
    model.define_type("Temperature", {"value": 300.0, "lower": 200.0, "upper": 400.0})
    var = model.declare("T", "Temperature")
    assert isinstance(var, Variable)
    assert (var.value, var.lower, var.upper) == (300.0, 200.0, 400.0)
    assert var.index == 0


def test_declare_overrides_type_defaults():
    model = Model()
    model.define_type("Flow", [("value", 1.0), ("lower", 0.0), ("upper", 10.0)])
    var = model.declare("F", "Flow", {"upper": 50.0, "colour": 3.0})
    assert (var.value, var.lower, var.upper) == (1.0, 0.0, 50.0)


def test_unknown_type_gives_zero_defaults():
    model = Model()
    var = model.declare("y", "Nothing")
    assert (var.value, var.lower, var.upper) == (0.0, 0.0, 0.0)


def test_redefined_type_keeps_first_definition():
    model = Model()
    model.define_type("P", {"value": 2.0})
    model.define_type("P", {"value": 7.0})
    assert model.declare("p1", "P").value == 2.0


def test_duplicate_declaration_raises():
    model = Model()
    model.declare("x", "Real")
    with pytest.raises(ModelError, match="Ya existe una variable x"):
        model.declare("x", "RealParameter")


def test_parameters_are_kept_apart():
    model = Model()
    model.declare("x", "Real")
    par = model.declare("k", "RealParameter")
    assert isinstance(par, Parameter)
    assert par.index == 0
    model.set_value("k", 4.5)
    assert model.parameter_values() == [4.5]
    assert len(model.variables) == 1
    assert model.lookup("k") is par


def test_lookup_missing_returns_none():
    assert Model().lookup("ghost") is None


def test_colliding_names_are_chained():
    first, second = _colliding_names()
    model = Model()
    a = model.declare(first, "Real")
    b = model.declare(second, "Real")
    assert model.lookup(first) is a
    assert model.lookup(second) is b
    row = next(
        line for line in model.format_tables().splitlines()
        if line.startswith(f"\t{table_hash(first)}\t")
    )
    assert row == f"\t{table_hash(first)}\t{second} --{first} --"


def test_set_value_fixes_variable():
    model = Model()
    model.declare("x", "Real")
    model.set_value("x", 3.0)
    assert model.variable_values() == [3.0]
    assert model.lookup("x").fixed is True


def test_set_value_undeclared_raises():
    with pytest.raises(ModelError):
        Model().set_value("nope", 1.0)


def test_reference_variable_and_parameter():
    model = Model()
    model.declare("x", "Real")
    model.declare("k", "RealParameter")
    assert model.reference("x", 0) == VariableRef("x", 0)
    assert model.reference("k", 0) == ParameterRef("k", 0)
    var = model.lookup("x")
    assert var.active is True


def test_reference_records_equations_once():
    model = Model()
    model.declare("x", "Real")
    model.reference("x", 0)
    model.reference("x", 0)
    model.reference("x", 2)
    assert model.lookup("x").equations == [0, 2]


def test_reference_undeclared_raises():
    with pytest.raises(ModelError, match="no ha sido declarada"):
        Model().reference("z", 0)


def test_add_equation_returns_index_and_limits():
    model = Model()
    eq = Equation(Constant(1.0), Constant(1.0))
    indices = [model.add_equation(eq) for _ in range(MAX_EQUATIONS)]
    assert indices == list(range(MAX_EQUATIONS))
    with pytest.raises(ModelError):
        model.add_equation(eq)


def test_build_unknowns_filters_and_orders():
    model = Model()
    model.define_type("T", {"value": 5.0, "lower": 1.0, "upper": 9.0})
    for name in ("a", "b", "c", "d"):
        model.declare(name, "T")
    model.reference("a", 0)
    model.reference("b", 1)
    model.reference("d", 0)
    model.reference("d", 1)
    model.set_value("b", 2.0)
    unknowns = model.build_unknowns()
    assert [u.name for u in unknowns] == ["a", "d"]
    assert [u.index for u in unknowns] == [0, 3]
    assert unknowns[1].equations == (0, 1)
    assert (unknowns[0].value, unknowns[0].lower, unknowns[0].upper) == (5.0, 1.0, 9.0)


def test_format_tables_layout():
    model = Model()
    model.declare("x", "Real")
    model.define_type("Real", {"value": 1.0})
    lines = model.format_tables().splitlines()
    assert len(lines) == 2 * TABLE_SIZE + 4
    assert lines[0] == "TABLA DE VARIABLES"
    assert lines[TABLE_SIZE + 1] == "Final de tabla"
    assert lines[TABLE_SIZE + 2] == "TABLA PARA PROPIEDADES"
    assert f"\t{table_hash('x')}\tx --" in lines
    assert any(line.startswith(f"\t{table_hash('Real')}\tReal --, VALUE:") for line in lines)


def test_format_variables_and_parameters():
    model = Model()
    model.declare("x", "Real")
    model.declare("y", "Real")
    model.declare("k", "RealParameter")
    text = model.format_variables().splitlines()
    assert len(text) == 2
    assert text[1].startswith("Los valores de la variable 1 - y, son value: ")
    assert model.format_parameters().startswith("El valor del parametro 0 - k, es value: ")


def test_format_sparsity_counts():
    model = Model()
    model.declare("x", "Real")
    model.declare("y", "Real")
    model.reference("x", 0)
    model.reference("x", 2)
    model.reference("y", 1)
    lines = model.format_sparsity(model.build_unknowns()).splitlines()
    assert lines[0] == "Columna 0 - Variable: x"
    assert lines[1] == "Filas: 0 2 "
    assert lines[3] == "Filas: 1 "
    assert lines[4] == "Elementos no nulos en jacobiano: 3"
    assert lines[5].endswith(": 7")