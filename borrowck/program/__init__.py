# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Program model package.

Callers usually import it as a namespace:

	from borrowck import program as P
	P.Let(name="x", type_id=string_ty, value=P.Call("make"))
"""

from .nodes import (
	Node,
	Expr,
	Stmt,
	BinaryOp,
	Literal,
	Var,
	Field,
	Deref,
	Borrow,
	Call,
	Binary,
	Construct,
	Block,
	Let,
	Assign,
	ExprStmt,
	Return,
	If,
	While,
	MatchArm,
	Match,
	ParamMode,
	FnSignature,
	Param,
	FunctionDecl,
	Program,
)

__all__ = [
	"Node",
	"Expr",
	"Stmt",
	"BinaryOp",
	"Literal",
	"Var",
	"Field",
	"Deref",
	"Borrow",
	"Call",
	"Binary",
	"Construct",
	"Block",
	"Let",
	"Assign",
	"ExprStmt",
	"Return",
	"If",
	"While",
	"MatchArm",
	"Match",
	"ParamMode",
	"FnSignature",
	"Param",
	"FunctionDecl",
	"Program",
]
