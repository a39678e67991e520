# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Sketch reader: builds a `Program` from the small syntax in `sketch.lark`.

Only tests and fixtures use it; it is not a front end. Builtin type names are
`Int`, `Bool`, `Char`, `Float` (scalars) and `String`, `Vec` (owned). Struct
and sum-type declarations may appear in any order and refer to each other.

`Name(args)` builds a struct when `Name` is a declared struct and is a call
otherwise; `Type::Variant(args)` builds a variant value.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from borrowck import program as P
from borrowck.core.span import Span
from borrowck.core.types_core import FieldSchema, TypeId, TypeKind, TypeTable, VariantArmSchema

_GRAMMAR_PATH = Path(__file__).with_name("sketch.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	propagate_positions=True,
	maybe_placeholders=False,
)

_TYPE_RULES = {"named_type", "ref_type", "box_type"}

_BINARY_OPS = {
	"or_op": P.BinaryOp.OR,
	"and_op": P.BinaryOp.AND,
	"eq": P.BinaryOp.EQ,
	"ne": P.BinaryOp.NE,
	"lt": P.BinaryOp.LT,
	"le": P.BinaryOp.LE,
	"gt": P.BinaryOp.GT,
	"ge": P.BinaryOp.GE,
	"add": P.BinaryOp.ADD,
	"sub": P.BinaryOp.SUB,
	"mul": P.BinaryOp.MUL,
}


class SketchSyntaxError(ValueError):
	"""Malformed sketch text (grammar error, unknown type, bad assignment target)."""

	def __init__(self, message: str, *, loc: Optional[Span] = None) -> None:
		super().__init__(message)
		self.loc = loc or Span()


def parse_sketch(source: str, *, file: Optional[str] = None) -> P.Program:
	"""Parse sketch text into a Program with a fresh TypeTable."""
	try:
		tree = _PARSER.parse(source)
	except UnexpectedInput as err:
		loc = Span(file=file, line=getattr(err, "line", None), column=getattr(err, "column", None))
		raise SketchSyntaxError(f"invalid sketch: {err}", loc=loc) from err
	return _SketchBuilder(file).build(tree)


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


def _tokens(tree: Tree, kind: str) -> List[Token]:
	return [c for c in tree.children if isinstance(c, Token) and c.type == kind]


def _subtrees(tree: Tree) -> List[Tree]:
	return [c for c in tree.children if isinstance(c, Tree)]


class _SketchBuilder:
	def __init__(self, file: Optional[str]) -> None:
		self.file = file
		self.table = TypeTable()
		self.table.ensure_int()
		self.table.ensure_bool()
		self.table.new_scalar("Char")
		self.table.new_scalar("Float")
		self.table.ensure_string()
		self.table.new_owned("Vec")

	def build(self, tree: Tree) -> P.Program:
		items = _subtrees(tree)
		# Declare every named type first so declarations can refer to each other.
		for item in items:
			kind = _name(item)
			if kind not in ("struct_def", "type_def"):
				continue
			name_tok = _tokens(item, "NAME")[0]
			try:
				if kind == "struct_def":
					self.table.declare_struct(name_tok.value)
				else:
					self.table.declare_variant(name_tok.value)
			except ValueError as err:
				raise SketchSyntaxError(str(err), loc=self._loc(item)) from err
		functions: List[P.FunctionDecl] = []
		externs: Dict[str, P.FnSignature] = {}
		for item in items:
			kind = _name(item)
			if kind == "struct_def":
				self._define_struct(item)
			elif kind == "type_def":
				self._define_variant(item)
			elif kind == "extern_def":
				sig = self._build_extern(item)
				externs[sig.name] = sig
			elif kind == "fn_def":
				functions.append(self._build_function(item))
			else:
				raise AssertionError(f"unhandled sketch item {kind}")
		return P.Program(type_table=self.table, functions=functions, externs=externs)

	# Declarations

	def _define_struct(self, tree: Tree) -> None:
		ty = self.table.lookup(_tokens(tree, "NAME")[0].value)
		fields = []
		for fd in _subtrees(tree):
			name_tok = _tokens(fd, "NAME")[0]
			fields.append(FieldSchema(name=name_tok.value, type_id=self._type(_subtrees(fd)[0])))
		self.table.define_struct_fields(ty, fields)

	def _define_variant(self, tree: Tree) -> None:
		ty = self.table.lookup(_tokens(tree, "NAME")[0].value)
		arms = []
		for arm in _subtrees(tree):
			fields = []
			for i, af in enumerate(_subtrees(arm)):
				names = _tokens(af, "NAME")
				field_name = names[0].value if names else str(i)
				fields.append(FieldSchema(name=field_name, type_id=self._type(_subtrees(af)[0])))
			arms.append(VariantArmSchema(name=_tokens(arm, "NAME")[0].value, fields=tuple(fields)))
		self.table.define_variant_arms(ty, arms)

	def _build_extern(self, tree: Tree) -> P.FnSignature:
		modes: List[P.ParamMode] = []
		return_type: Optional[TypeId] = None
		for child in _subtrees(tree):
			kind = _name(child)
			if kind == "mode_ref":
				modes.append(P.ParamMode.EXCLUSIVE if _tokens(child, "MUT") else P.ParamMode.SHARED)
			elif kind == "mode_value":
				modes.append(P.ParamMode.BY_VALUE)
			elif kind == "ret_type":
				return_type = self._type(_subtrees(child)[0])
		return P.FnSignature(name=_tokens(tree, "NAME")[0].value, param_modes=tuple(modes), return_type=return_type)

	def _build_function(self, tree: Tree) -> P.FunctionDecl:
		params: List[P.Param] = []
		return_type: Optional[TypeId] = None
		body = P.Block()
		for child in _subtrees(tree):
			kind = _name(child)
			if kind == "param":
				params.append(
					P.Param(
						name=_tokens(child, "NAME")[0].value,
						type_id=self._type(_subtrees(child)[0]),
						mutable=bool(_tokens(child, "MUT")),
						loc=self._loc(child),
					)
				)
			elif kind == "ret_type":
				return_type = self._type(_subtrees(child)[0])
			elif kind == "block":
				body = self._block(child)
		return P.FunctionDecl(
			name=_tokens(tree, "NAME")[0].value,
			params=params,
			body=body,
			return_type=return_type,
			loc=self._loc(tree),
		)

	def _type(self, tree: Tree) -> TypeId:
		kind = _name(tree)
		if kind == "named_type":
			name = tree.children[0].value
			ty = self.table.lookup(name)
			if ty is None:
				raise SketchSyntaxError(f"unknown type '{name}'", loc=self._loc(tree))
			return ty
		if kind == "ref_type":
			inner = self._type(_subtrees(tree)[0])
			return self.table.ensure_ref_mut(inner) if _tokens(tree, "MUT") else self.table.ensure_ref(inner)
		if kind == "box_type":
			return self.table.ensure_box(self._type(_subtrees(tree)[0]))
		raise AssertionError(f"unhandled type node {kind}")

	# Statements

	def _block(self, tree: Tree) -> P.Block:
		return P.Block(statements=[self._stmt(c) for c in _subtrees(tree)], loc=self._loc(tree))

	def _stmt(self, tree: Tree) -> P.Stmt:
		kind = _name(tree)
		loc = self._loc(tree)
		subs = _subtrees(tree)
		if kind == "let_stmt":
			type_id: Optional[TypeId] = None
			value: Optional[P.Expr] = None
			for child in subs:
				if _name(child) in _TYPE_RULES and type_id is None and value is None:
					type_id = self._type(child)
				else:
					value = self._expr(child)
			return P.Let(
				name=_tokens(tree, "NAME")[0].value,
				type_id=type_id,
				value=value,
				mutable=bool(_tokens(tree, "MUT")),
				loc=loc,
			)
		if kind == "assign_stmt":
			target = self._expr(subs[0])
			if not isinstance(target, (P.Var, P.Field, P.Deref)):
				raise SketchSyntaxError("assignment target must be a variable, field or dereference", loc=loc)
			return P.Assign(target=target, value=self._expr(subs[1]), loc=loc)
		if kind == "expr_stmt":
			return P.ExprStmt(expr=self._expr(subs[0]), loc=loc)
		if kind == "return_stmt":
			return P.Return(value=self._expr(subs[0]) if subs else None, loc=loc)
		if kind == "if_stmt":
			else_block: Optional[P.Block] = None
			if len(subs) > 2:
				tail = subs[2]
				if _name(tail) == "if_stmt":
					else_block = P.Block(statements=[self._stmt(tail)], loc=self._loc(tail))
				else:
					else_block = self._block(tail)
			return P.If(cond=self._expr(subs[0]), then_block=self._block(subs[1]), else_block=else_block, loc=loc)
		if kind == "while_stmt":
			return P.While(cond=self._expr(subs[0]), body=self._block(subs[1]), loc=loc)
		if kind == "match_stmt":
			return P.Match(scrutinee=self._expr(subs[0]), arms=[self._arm(a) for a in subs[1:]], loc=loc)
		if kind == "block":
			return self._block(tree)
		raise AssertionError(f"unhandled statement node {kind}")

	def _arm(self, tree: Tree) -> P.MatchArm:
		pattern, body = _subtrees(tree)
		loc = self._loc(tree)
		if _name(pattern) == "wildcard":
			return P.MatchArm(variant=None, body=self._block(body), loc=loc)
		binders = []
		for b in _subtrees(pattern):
			tok = b.children[0]
			binders.append("_" if tok.type == "UNDERSCORE" else tok.value)
		return P.MatchArm(
			variant=_tokens(pattern, "NAME")[0].value,
			body=self._block(body),
			binders=binders,
			by_ref=bool(_tokens(pattern, "REF")),
			loc=loc,
		)

	# Expressions

	def _args(self, tree: Tree) -> List[P.Expr]:
		for child in _subtrees(tree):
			if _name(child) == "args":
				return [self._expr(a) for a in _subtrees(child)]
		return []

	def _expr(self, tree: Tree) -> P.Expr:
		kind = _name(tree)
		loc = self._loc(tree)
		subs = _subtrees(tree)
		if kind == "var":
			return P.Var(name=tree.children[0].value, loc=loc)
		if kind == "call":
			name = _tokens(tree, "NAME")[0].value
			args = self._args(tree)
			ty = self.table.lookup(name)
			if ty is not None and self.table.get(ty).kind is TypeKind.STRUCT:
				return P.Construct(type_name=name, args=args, loc=loc)
			return P.Call(callee=name, args=args, loc=loc)
		if kind == "variant_ctor":
			type_tok, variant_tok = _tokens(tree, "NAME")
			if self.table.lookup(type_tok.value) is None:
				raise SketchSyntaxError(f"unknown type '{type_tok.value}'", loc=loc)
			return P.Construct(type_name=type_tok.value, variant=variant_tok.value, args=self._args(tree), loc=loc)
		if kind == "int_lit":
			return P.Literal(value=int(tree.children[0].value), loc=loc)
		if kind == "true_lit":
			return P.Literal(value=True, loc=loc)
		if kind == "false_lit":
			return P.Literal(value=False, loc=loc)
		if kind == "str_lit":
			return P.Literal(value=tree.children[0].value[1:-1], loc=loc)
		if kind == "field":
			return P.Field(subject=self._expr(subs[0]), name=_tokens(tree, "NAME")[-1].value, loc=loc)
		if kind == "deref":
			return P.Deref(subject=self._expr(subs[0]), loc=loc)
		if kind == "borrow":
			return P.Borrow(subject=self._expr(subs[0]), is_mut=bool(_tokens(tree, "MUT")), loc=loc)
		op = _BINARY_OPS.get(kind)
		if op is not None:
			return P.Binary(op=op, left=self._expr(subs[0]), right=self._expr(subs[1]), loc=loc)
		raise AssertionError(f"unhandled expression node {kind}")

	def _loc(self, tree: Tree) -> Span:
		return Span.from_meta(tree.meta, file=self.file)


__all__ = ["SketchSyntaxError", "parse_sketch"]
