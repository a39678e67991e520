# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Program model: the tree the engine analyzes.

The model is produced by an external front end (or by test builders) and is
never mutated by the analysis. It is deliberately small:

- expressions distinguish *places* (`Var`, `Field`, `Deref`) from values,
- borrows are explicit (`Borrow`),
- calls name their callee; how each argument is passed comes from a declared
  `FnSignature`, never from the call site,
- blocks are explicit statements, so every `Block` (including `If`/`While`
  bodies and match arm bodies) opens a lexical scope.

Node identity matters: side tables built by the analysis are keyed by
`id(node)`, so the same node object must not appear twice in one function.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Tuple

from borrowck.core.span import Span
from borrowck.core.types_core import TypeId, TypeKind, TypeTable


class Node:
	"""Base class for all program nodes."""

	loc: Span


class Expr(Node):
	"""Base class for expressions."""


class Stmt(Node):
	"""Base class for statements."""


class BinaryOp(Enum):
	"""Binary operators. Operands are only read, never moved."""

	ADD = auto()
	SUB = auto()
	MUL = auto()
	EQ = auto()
	NE = auto()
	LT = auto()
	LE = auto()
	GT = auto()
	GE = auto()
	AND = auto()
	OR = auto()


# Expressions


@dataclass(eq=False)
class Literal(Expr):
	"""Literal value: Python int/bool map to Int/Bool, str to String."""

	value: object
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Var(Expr):
	"""Reference to a binding by name (resolved against the scope tree)."""

	name: str
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Field(Expr):
	"""Field access: `subject.name`."""

	subject: Expr
	name: str
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Deref(Expr):
	"""Dereference through a reference or box: `*subject`."""

	subject: Expr
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Borrow(Expr):
	"""Borrow of a place: `&subject` or `&mut subject`."""

	subject: Expr
	is_mut: bool = False
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Call(Expr):
	"""Call of a named function; argument passing follows its FnSignature."""

	callee: str
	args: List[Expr] = field(default_factory=list)
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Binary(Expr):
	"""Binary operation (arithmetic/comparison): reads both operands."""

	op: BinaryOp
	left: Expr
	right: Expr
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Construct(Expr):
	"""
	Construct a struct (`variant=None`) or a variant arm value.

	Arguments are in field order and are consumed by value.
	"""

	type_name: str
	variant: Optional[str] = None
	args: List[Expr] = field(default_factory=list)
	loc: Span = field(default_factory=Span)


# Statements


@dataclass(eq=False)
class Block(Stmt):
	"""Braced statement list; opens a lexical scope."""

	statements: List[Stmt] = field(default_factory=list)
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Let(Stmt):
	"""
	Introduce a binding in the innermost scope.

	`type_id` may be omitted when it is evident from the initializer (borrow,
	variable copy, constructor, literal, call with a declared return type).
	A Let without `value` leaves the binding uninitialized.
	"""

	name: str
	type_id: Optional[TypeId] = None
	value: Optional[Expr] = None
	mutable: bool = False
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Assign(Stmt):
	"""Store into a place. Re-initializes the place (and everything under it)."""

	target: Expr
	value: Expr
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class ExprStmt(Stmt):
	"""Expression evaluated for effect; borrows it creates end with the statement."""

	expr: Expr
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Return(Stmt):
	"""Return from the function; the value is consumed by value."""

	value: Optional[Expr] = None
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class If(Stmt):
	cond: Expr
	then_block: Block
	else_block: Optional[Block] = None
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class While(Stmt):
	"""Pre-tested loop; the body may run zero or more times."""

	cond: Expr
	body: Block
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class MatchArm(Node):
	"""
	One arm of a match.

	`variant=None` is the wildcard arm. `binders` bind the variant's fields in
	declaration order (an empty name `"_"` skips a field). With `by_ref=True`
	binders are shared references into the scrutinee instead of moved values.
	"""

	variant: Optional[str]
	body: Block
	binders: List[str] = field(default_factory=list)
	by_ref: bool = False
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Match(Stmt):
	"""
	Match over a sum-typed value.

	`scrutinee_type` overrides the type derived from the scrutinee place.
	"""

	scrutinee: Expr
	arms: List[MatchArm] = field(default_factory=list)
	scrutinee_type: Optional[TypeId] = None
	loc: Span = field(default_factory=Span)


# Declarations


class ParamMode(Enum):
	"""How a call passes one argument."""

	BY_VALUE = auto()
	SHARED = auto()
	EXCLUSIVE = auto()


@dataclass(frozen=True)
class FnSignature:
	"""Declared calling convention of a callee (argument modes + result type)."""

	name: str
	param_modes: Tuple[ParamMode, ...] = ()
	return_type: Optional[TypeId] = None

	def mode_for(self, index: int) -> ParamMode:
		"""Mode of argument `index`; extra (variadic) arguments reuse the last mode."""
		if not self.param_modes:
			return ParamMode.BY_VALUE
		if index < len(self.param_modes):
			return self.param_modes[index]
		return self.param_modes[-1]


@dataclass(eq=False)
class Param(Node):
	name: str
	type_id: Optional[TypeId] = None
	mutable: bool = False
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class FunctionDecl(Node):
	name: str
	params: List[Param] = field(default_factory=list)
	body: Block = field(default_factory=Block)
	return_type: Optional[TypeId] = None
	loc: Span = field(default_factory=Span)


@dataclass(eq=False)
class Program:
	"""
	A whole input: function bodies, the type table and external signatures.

	Signatures for the program's own functions are derived from their
	parameter types; `externs` declares everything else. A callee with no
	signature takes all arguments by value.
	"""

	type_table: TypeTable
	functions: List[FunctionDecl] = field(default_factory=list)
	externs: Dict[str, FnSignature] = field(default_factory=dict)

	def function(self, name: str) -> Optional[FunctionDecl]:
		for fn in self.functions:
			if fn.name == name:
				return fn
		return None

	def signature_for(self, callee: str) -> Optional[FnSignature]:
		sig = self.externs.get(callee)
		if sig is not None:
			return sig
		fn = self.function(callee)
		if fn is None:
			return None
		modes = []
		for p in fn.params:
			mode = ParamMode.BY_VALUE
			if p.type_id is not None:
				td = self.type_table.get(p.type_id)
				if td.kind is TypeKind.REF:
					mode = ParamMode.EXCLUSIVE if td.ref_mut else ParamMode.SHARED
			modes.append(mode)
		return FnSignature(name=fn.name, param_modes=tuple(modes), return_type=fn.return_type)


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
