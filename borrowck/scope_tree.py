# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Scope tree builder.

A function body is first linearized into a stream of scope events:

  ENTER(block)  a lexical scope opens
  STMT(node)    a statement (or parameter / match-arm header) executes
  EXIT(block)   the innermost scope closes; its bindings are destroyed here

Every event gets a *position*: its index in the stream. Positions are the
program order used everywhere else (findings, borrow windows, move sites).
Scope exits have their own positions, so destruction never shares a position
with a statement.

The builder then replays the stream with a stack of open scopes:
  * `Let`/params/match binders are attached to the innermost open scope,
  * every `Var` in a statement is resolved against the open scopes (latest
    declaration wins, so shadowing works),
  * uses and (re)definitions of each binding are indexed by position for the
    borrow checker's last-use analysis.

Mismatched ENTER/EXIT events raise UnbalancedScopeError. The structured
program model cannot produce that; the check guards hand-built streams.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Iterator, List, Optional, Tuple

from borrowck import program as P
from borrowck.core.errors import MalformedProgramError, UnbalancedScopeError
from borrowck.core.types_core import TypeId

logger = logging.getLogger(__name__)


class EventKind(Enum):
	ENTER = auto()
	EXIT = auto()
	STMT = auto()


class ScopeKind(Enum):
	FUNCTION = auto()
	BLOCK = auto()
	BRANCH = auto()
	LOOP_BODY = auto()
	ARM = auto()


@dataclass(frozen=True)
class ScopeEvent:
	"""
	One entry of the linearized body (see module docstring).

	`scope_kind` is only set on ENTER events.
	"""

	kind: EventKind
	node: object
	pos: int
	scope_kind: Optional[ScopeKind] = None


@dataclass(eq=False)
class Binding:
	"""A named storage location owned by exactly one scope."""

	name: str
	index: int  # unique within the function, in declaration order
	type_id: Optional[TypeId]
	mutable: bool
	scope: "Scope" = field(repr=False)
	decl_pos: int
	decl: object = field(repr=False)
	is_param: bool = False
	initialized_at_decl: bool = True


@dataclass(eq=False)
class Scope:
	"""Lexical scope with its directly owned bindings and child scopes."""

	id: int
	kind: ScopeKind
	start: int
	parent: Optional["Scope"] = field(default=None, repr=False)
	end: int = -1
	bindings: List[Binding] = field(default_factory=list)
	children: List["Scope"] = field(default_factory=list, repr=False)
	node: object = field(default=None, repr=False)

	def drop_order(self) -> List[Binding]:
		"""Bindings in destruction order (reverse declaration order)."""
		return list(reversed(self.bindings))

	def encloses(self, other: "Scope") -> bool:
		"""True when `other` is this scope or nested inside it."""
		cur: Optional[Scope] = other
		while cur is not None:
			if cur is self:
				return True
			cur = cur.parent
		return False


@dataclass(frozen=True)
class LoopRange:
	"""Positions covered by a loop: its header statement through its body exit."""

	start: int
	end: int
	node: object = field(compare=False, repr=False)

	def contains(self, pos: int) -> bool:
		return self.start <= pos <= self.end


@dataclass
class ScopeTree:
	"""
	Result of scope building for one function body.

	Side tables are keyed by `id(node)` because program nodes are compared by
	identity.
	"""

	root: Scope
	events: List[ScopeEvent]
	scopes: List[Scope] = field(default_factory=list)
	bindings: List[Binding] = field(default_factory=list)
	loops: List[LoopRange] = field(default_factory=list)
	_pos_by_node: Dict[int, int] = field(default_factory=dict, repr=False)
	_scope_by_node: Dict[int, Scope] = field(default_factory=dict, repr=False)
	_binding_by_var: Dict[int, Binding] = field(default_factory=dict, repr=False)
	_bindings_by_decl: Dict[int, List[Binding]] = field(default_factory=dict, repr=False)
	_uses: Dict[int, List[int]] = field(default_factory=dict, repr=False)
	_defs: Dict[int, List[int]] = field(default_factory=dict, repr=False)

	@property
	def end(self) -> int:
		return self.root.end

	def pos_of(self, node: object) -> int:
		"""Position of a statement, parameter or match arm."""
		try:
			return self._pos_by_node[id(node)]
		except KeyError:
			raise MalformedProgramError(f"node {type(node).__name__} has no position (not part of this body?)") from None

	def scope_of(self, node: object) -> Scope:
		"""Scope opened by a Block (or the function scope for the FunctionDecl)."""
		try:
			return self._scope_by_node[id(node)]
		except KeyError:
			raise MalformedProgramError(f"{type(node).__name__} does not open a scope") from None

	def binding_for(self, var: P.Var) -> Optional[Binding]:
		"""Binding a Var resolves to; None for names that are not local bindings."""
		return self._binding_by_var.get(id(var))

	def bindings_declared_by(self, node: object) -> List[Binding]:
		"""Bindings introduced by a Let, Param or MatchArm (empty otherwise)."""
		return self._bindings_by_decl.get(id(node), [])

	def uses_of(self, binding: Binding) -> List[int]:
		"""Sorted positions where the binding is read, borrowed or passed on."""
		return self._uses.get(binding.index, [])

	def defs_of(self, binding: Binding) -> List[int]:
		"""Sorted positions where the binding is declared or wholly re-assigned."""
		return self._defs.get(binding.index, [])

	def loops_containing(self, pos: int) -> List[LoopRange]:
		return [lp for lp in self.loops if lp.contains(pos)]


def linearize(fn: P.FunctionDecl) -> List[ScopeEvent]:
	"""
	Flatten a function into ENTER/STMT/EXIT events in program order.

	The function itself is the outermost scope; its params are STMT events at
	its start. If/else branches, loop bodies and match arms each open a scope.
	A match arm's header (which declares its binders) is the first STMT inside
	the arm's scope.
	"""
	events: List[ScopeEvent] = []

	def emit(kind: EventKind, node: object, scope_kind: Optional[ScopeKind] = None) -> None:
		events.append(ScopeEvent(kind=kind, node=node, pos=len(events), scope_kind=scope_kind))

	def block(blk: P.Block, kind: ScopeKind, header: Optional[object] = None) -> None:
		emit(EventKind.ENTER, blk, kind)
		if header is not None:
			emit(EventKind.STMT, header)
		for stmt in blk.statements:
			statement(stmt)
		emit(EventKind.EXIT, blk)

	def statement(stmt: P.Stmt) -> None:
		if isinstance(stmt, P.Block):
			block(stmt, ScopeKind.BLOCK)
			return
		if isinstance(stmt, P.If):
			emit(EventKind.STMT, stmt)
			block(stmt.then_block, ScopeKind.BRANCH)
			if stmt.else_block is not None:
				block(stmt.else_block, ScopeKind.BRANCH)
			return
		if isinstance(stmt, P.While):
			emit(EventKind.STMT, stmt)
			block(stmt.body, ScopeKind.LOOP_BODY)
			return
		if isinstance(stmt, P.Match):
			emit(EventKind.STMT, stmt)
			for arm in stmt.arms:
				block(arm.body, ScopeKind.ARM, header=arm)
			return
		if isinstance(stmt, (P.Let, P.Assign, P.ExprStmt, P.Return)):
			emit(EventKind.STMT, stmt)
			return
		raise MalformedProgramError(f"unknown statement node {type(stmt).__name__}")

	emit(EventKind.ENTER, fn, ScopeKind.FUNCTION)
	for param in fn.params:
		emit(EventKind.STMT, param)
	for stmt in fn.body.statements:
		statement(stmt)
	emit(EventKind.EXIT, fn)
	return events


def build_scope_tree(fn: P.FunctionDecl) -> ScopeTree:
	"""Linearize `fn` and build its scope tree."""
	return build_scope_tree_from_events(linearize(fn))


def build_scope_tree_from_events(events: List[ScopeEvent]) -> ScopeTree:
	"""
	Build the scope tree from a positioned event stream.

	Raises UnbalancedScopeError when an EXIT has no matching ENTER, when an
	EXIT closes a different node than the innermost ENTER opened, when the
	stream does not start by opening a scope, or when scopes remain open at
	the end.
	"""
	if not events or events[0].kind is not EventKind.ENTER:
		raise UnbalancedScopeError("event stream must start by entering the function scope", position=0)

	stack: List[Scope] = []
	names: List[Dict[str, Binding]] = []
	scopes: List[Scope] = []
	bindings: List[Binding] = []
	loops: List[LoopRange] = []
	# Header of the most recent While, waiting for its body scope.
	pending_loop: Optional[Tuple[int, object]] = None
	open_loops: List[Tuple[Scope, int, object]] = []
	closed_root = False

	pos_by_node: Dict[int, int] = {}
	scope_by_node: Dict[int, Scope] = {}
	binding_by_var: Dict[int, Binding] = {}
	bindings_by_decl: Dict[int, List[Binding]] = {}
	uses: Dict[int, List[int]] = {}
	defs: Dict[int, List[int]] = {}

	def declare(name: str, type_id: Optional[TypeId], mutable: bool, decl: object, pos: int, *, is_param: bool, init: bool) -> Binding:
		scope = stack[-1]
		b = Binding(
			name=name,
			index=len(bindings),
			type_id=type_id,
			mutable=mutable,
			scope=scope,
			decl_pos=pos,
			decl=decl,
			is_param=is_param,
			initialized_at_decl=init,
		)
		bindings.append(b)
		scope.bindings.append(b)
		names[-1][name] = b
		bindings_by_decl.setdefault(id(decl), []).append(b)
		defs.setdefault(b.index, []).append(pos)
		return b

	def lookup(name: str) -> Optional[Binding]:
		for frame in reversed(names):
			b = frame.get(name)
			if b is not None:
				return b
		return None

	def resolve(expr: Optional[P.Expr], pos: int) -> None:
		for var in _vars_in(expr):
			b = lookup(var.name)
			if b is None:
				continue
			binding_by_var[id(var)] = b
			uses.setdefault(b.index, []).append(pos)

	for ev in events:
		if closed_root:
			raise UnbalancedScopeError("event after the function scope was closed", position=ev.pos)
		if ev.kind is EventKind.ENTER:
			if stack:
				kind = ev.scope_kind or ScopeKind.BLOCK
			else:
				kind = ScopeKind.FUNCTION
			parent = stack[-1] if stack else None
			scope = Scope(id=len(scopes), kind=kind, start=ev.pos, parent=parent, node=ev.node)
			if parent is not None:
				parent.children.append(scope)
			scopes.append(scope)
			scope_by_node[id(ev.node)] = scope
			stack.append(scope)
			names.append({})
			if kind is ScopeKind.LOOP_BODY:
				header_pos, header = pending_loop if pending_loop is not None else (ev.pos, ev.node)
				open_loops.append((scope, header_pos, header))
			pending_loop = None
			continue
		if ev.kind is EventKind.EXIT:
			if not stack:
				raise UnbalancedScopeError("block exit without a matching entry", position=ev.pos)
			scope = stack[-1]
			if scope.node is not ev.node:
				raise UnbalancedScopeError(
					f"block exit at {ev.pos} closes {type(ev.node).__name__} but innermost open scope started at {scope.start}",
					position=ev.pos,
				)
			scope.end = ev.pos
			stack.pop()
			names.pop()
			if open_loops and open_loops[-1][0] is scope:
				_, header_pos, header = open_loops.pop()
				loops.append(LoopRange(start=header_pos, end=ev.pos, node=header))
			if not stack:
				closed_root = True
			continue

		# STMT
		if not stack:
			raise UnbalancedScopeError("statement outside of any scope", position=ev.pos)
		node = ev.node
		pos_by_node[id(node)] = ev.pos
		pending_loop = None
		if isinstance(node, P.Param):
			declare(node.name, node.type_id, node.mutable, node, ev.pos, is_param=True, init=True)
		elif isinstance(node, P.Let):
			resolve(node.value, ev.pos)
			declare(node.name, node.type_id, node.mutable, node, ev.pos, is_param=False, init=node.value is not None)
		elif isinstance(node, P.Assign):
			resolve(node.value, ev.pos)
			if isinstance(node.target, P.Var):
				b = lookup(node.target.name)
				if b is not None:
					binding_by_var[id(node.target)] = b
					defs.setdefault(b.index, []).append(ev.pos)
			else:
				resolve(node.target, ev.pos)
		elif isinstance(node, P.ExprStmt):
			resolve(node.expr, ev.pos)
		elif isinstance(node, P.Return):
			resolve(node.value, ev.pos)
		elif isinstance(node, P.If):
			resolve(node.cond, ev.pos)
		elif isinstance(node, P.While):
			resolve(node.cond, ev.pos)
			pending_loop = (ev.pos, node)
		elif isinstance(node, P.Match):
			resolve(node.scrutinee, ev.pos)
		elif isinstance(node, P.MatchArm):
			for name in node.binders:
				if name == "_":
					continue
				# Binder types depend on the scrutinee; the passes derive them.
				declare(name, None, False, node, ev.pos, is_param=False, init=True)
		else:
			raise MalformedProgramError(f"unexpected statement event for {type(node).__name__}")

	if stack:
		raise UnbalancedScopeError(f"{len(stack)} scope(s) left open at end of body", position=events[-1].pos)

	root = scopes[0]
	for lst in uses.values():
		lst.sort()
	for lst in defs.values():
		lst.sort()
	tree = ScopeTree(
		root=root,
		events=list(events),
		scopes=scopes,
		bindings=bindings,
		loops=loops,
		_pos_by_node=pos_by_node,
		_scope_by_node=scope_by_node,
		_binding_by_var=binding_by_var,
		_bindings_by_decl=bindings_by_decl,
		_uses=uses,
		_defs=defs,
	)
	logger.debug("built %d scope(s), %d binding(s), %d loop(s)", len(scopes), len(bindings), len(loops))
	return tree


def _vars_in(expr: Optional[P.Expr]) -> Iterator[P.Var]:
	"""Yield every Var inside an expression tree, left to right."""
	if expr is None:
		return
	if isinstance(expr, P.Var):
		yield expr
		return
	if isinstance(expr, (P.Field, P.Deref, P.Borrow)):
		yield from _vars_in(expr.subject)
		return
	if isinstance(expr, (P.Call, P.Construct)):
		for arg in expr.args:
			yield from _vars_in(arg)
		return
	if isinstance(expr, P.Binary):
		yield from _vars_in(expr.left)
		yield from _vars_in(expr.right)
		return
	if isinstance(expr, P.Literal):
		return
	raise MalformedProgramError(f"unknown expression node {type(expr).__name__}")


__all__ = [
	"EventKind",
	"ScopeEvent",
	"ScopeKind",
	"Binding",
	"Scope",
	"LoopRange",
	"ScopeTree",
	"linearize",
	"build_scope_tree",
	"build_scope_tree_from_events",
]
