#!/usr/bin/env python3
# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Callee signatures: declared externs and signatures derived from local functions."""

from borrowck import program as P
from borrowck.core.types_core import TypeTable


def _program():
	table = TypeTable()
	string_ty = table.ensure_string()
	fn = P.FunctionDecl(
		name="update",
		params=[
			P.Param("a", table.ensure_ref(string_ty)),
			P.Param("b", table.ensure_ref_mut(string_ty)),
			P.Param("c", string_ty),
			P.Param("d"),
		],
		return_type=table.ensure_int(),
	)
	externs = {"print": P.FnSignature("print", (P.ParamMode.SHARED,))}
	return P.Program(type_table=table, functions=[fn], externs=externs), table


def test_signature_derived_from_parameter_types():
	program, table = _program()
	sig = program.signature_for("update")
	assert sig.param_modes == (P.ParamMode.SHARED, P.ParamMode.EXCLUSIVE, P.ParamMode.BY_VALUE, P.ParamMode.BY_VALUE)
	assert sig.return_type == table.ensure_int()


def test_extern_signature_and_unknown_callee():
	program, _ = _program()
	assert program.signature_for("print").mode_for(0) is P.ParamMode.SHARED
	assert program.signature_for("nowhere") is None


def test_mode_for_reuses_last_mode_for_extra_arguments():
	sig = P.FnSignature("log", (P.ParamMode.BY_VALUE, P.ParamMode.SHARED))
	assert sig.mode_for(1) is P.ParamMode.SHARED
	assert sig.mode_for(5) is P.ParamMode.SHARED
	assert P.FnSignature("f").mode_for(0) is P.ParamMode.BY_VALUE


def test_function_lookup_by_name():
	program, _ = _program()
	assert program.function("update").name == "update"
	assert program.function("missing") is None


def test_nodes_compare_by_identity():
	"""Equal-looking nodes stay distinct so side tables can key on them."""
	a = P.Var("x")
	b = P.Var("x")
	assert a != b
	assert len({id(a), id(b)}) == 2
