# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Ownership and move tracking over one function body.

The tracker walks the structured body in program order (the same order the
scope tree assigned positions in) and keeps, per place, whether it is
initialized, owned or moved out:

- a non-Copy place used by value (let/assign source, by-value argument,
  constructor argument, return value, by-value match binder) is moved,
- reads (comparison operands, borrows, copies of Copy values) never change
  state,
- moving `x.f` moves only that sub-place; using `x` afterwards reports the
  field,
- assignment re-initializes the target and everything under it,
- at a scope's end its still-owned bindings are destroyed in reverse
  declaration order (`DropRecord`).

At `If`/`Match` joins a place moved on any path is moved afterwards and a
place uninitialized on any path is uninitialized. Loop bodies are walked twice,
the second time from the join of the loop entry and the first iteration's
exit, so a move inside the loop is reported on the next iteration's use.

The borrow checker subclasses the tracker and fills in the `_on_*` hooks; the
tracker on its own only reports ownership findings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional, Sequence, Tuple

from borrowck import program as P
from borrowck.context import FunctionContext
from borrowck.core.diagnostics import Finding, UseAfterMoveError, UseOfUninitializedError
from borrowck.core.errors import MalformedProgramError
from borrowck.core.loans import LoanKind
from borrowck.core.span import Span
from borrowck.place_types import LocalType, RefType
from borrowck.places import FieldProj, Place, PlaceState, merge_place_state, place_from_expr
from borrowck.scope_tree import Binding, Scope

logger = logging.getLogger(__name__)


class BindingState(Enum):
	OWNED = auto()
	MOVED_OUT = auto()
	PARTIALLY_MOVED = auto()
	UNINITIALIZED = auto()


@dataclass(frozen=True)
class BindingStatus:
	"""Ownership state of a whole binding; `moved_fields` for PARTIALLY_MOVED."""

	state: BindingState
	moved_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DropRecord:
	"""
	A binding destroyed at `pos` (scope end or return).

	`decl_pos` tells shadowed bindings of the same name apart.
	"""

	binding: str
	decl_pos: int
	pos: int
	partial: bool = False
	moved_fields: Tuple[str, ...] = ()


@dataclass
class _FlowState:
	"""Mutable per-path ownership state."""

	place_states: Dict[Place, PlaceState] = field(default_factory=dict)
	move_sites: Dict[Place, Tuple[int, Span]] = field(default_factory=dict)
	unreachable: bool = False

	def copy(self) -> "_FlowState":
		return _FlowState(dict(self.place_states), dict(self.move_sites), self.unreachable)

	def merge(self, other: "_FlowState") -> "_FlowState":
		"""Join two paths; a path that returned contributes nothing."""
		if self.unreachable:
			return other.copy()
		if other.unreachable:
			return self.copy()
		out = _FlowState()
		keys = list(self.place_states) + [k for k in other.place_states if k not in self.place_states]
		for place in keys:
			a = self.place_states.get(place, PlaceState.OWNED)
			b = other.place_states.get(place, PlaceState.OWNED)
			out.place_states[place] = merge_place_state(a, b)
		for sites in (self.move_sites, other.move_sites):
			for place, site in sites.items():
				out.move_sites.setdefault(place, site)
		return out


class MoveTracker:
	"""Walks one function body and reports ownership violations into the context."""

	def __init__(self, ctx: FunctionContext) -> None:
		self.ctx = ctx
		self.tree = ctx.tree
		self.typer = ctx.typer
		self._state = _FlowState()
		self._scopes: List[Scope] = []
		self._replaying = 0
		self._stmt_span = Span()

	# Entry point

	def run(self) -> FunctionContext:
		fn = self.ctx.fn
		root = self.tree.root
		self._scopes.append(root)
		for param in fn.params:
			pos = self.tree.pos_of(param)
			for b in self.tree.bindings_declared_by(param):
				self._state.place_states[Place(b)] = PlaceState.OWNED
				logger.debug("%s: param %s owned at %d", fn.name, b.name, pos)
		self._walk_statements(fn.body.statements)
		self._exit_scope(root)
		return self.ctx

	def binding_status(self, binding: Binding) -> BindingStatus:
		"""Current state of a whole binding on the path being walked."""
		st = self._state.place_states.get(Place(binding), PlaceState.OWNED)
		if st is PlaceState.UNINIT:
			return BindingStatus(BindingState.UNINITIALIZED)
		if st is PlaceState.MOVED:
			return BindingStatus(BindingState.MOVED_OUT)
		moved = [
			_relative_path(place)
			for place, sub in self._state.place_states.items()
			if sub is PlaceState.MOVED and place.base is binding and place.projections
		]
		if moved:
			return BindingStatus(BindingState.PARTIALLY_MOVED, tuple(moved))
		return BindingStatus(BindingState.OWNED)

	# Statements

	def _walk_statements(self, stmts: Sequence[P.Stmt]) -> None:
		for stmt in stmts:
			if self._state.unreachable:
				break
			self._walk_stmt(stmt)

	def _walk_stmt(self, stmt: P.Stmt) -> None:
		if isinstance(stmt, P.Block):
			self._walk_block(stmt)
			return
		pos = self.tree.pos_of(stmt)
		self._stmt_span = stmt.loc
		if isinstance(stmt, P.Let):
			self._let(stmt, pos)
		elif isinstance(stmt, P.Assign):
			self._assign(stmt, pos)
		elif isinstance(stmt, P.ExprStmt):
			self._eval_value(stmt.expr, pos)
		elif isinstance(stmt, P.Return):
			self._return(stmt, pos)
		elif isinstance(stmt, P.If):
			self._if(stmt, pos)
		elif isinstance(stmt, P.While):
			self._while(stmt, pos)
		elif isinstance(stmt, P.Match):
			self._match(stmt, pos)
		else:
			raise MalformedProgramError(f"unknown statement node {type(stmt).__name__}")

	def _walk_block(self, blk: P.Block) -> None:
		scope = self.tree.scope_of(blk)
		self._scopes.append(scope)
		self._walk_statements(blk.statements)
		self._exit_scope(scope)

	def _let(self, stmt: P.Let, pos: int) -> None:
		carried = self._eval_value(stmt.value, pos) if stmt.value is not None else []
		for b in self.tree.bindings_declared_by(stmt):
			self._state.place_states[Place(b)] = PlaceState.OWNED if stmt.value is not None else PlaceState.UNINIT
			self._bind_carried(carried, b, pos)

	def _assign(self, stmt: P.Assign, pos: int) -> None:
		carried = self._eval_value(stmt.value, pos)
		place = place_from_expr(stmt.target, self.tree)
		if place is None:
			raise MalformedProgramError(f"assignment target at position {pos} is not a place")
		span = self._span_of(stmt.target)
		ref = self.typer.ref_prefix(place)
		if ref is not None:
			# Store through a reference: the reference is read, its pointee is
			# not ours to re-initialize.
			self._read_place(ref, pos, span)
			return
		self._write_place(place, pos, span)
		self._bind_carried(carried, place.base, pos)

	def _return(self, stmt: P.Return, pos: int) -> None:
		if stmt.value is not None:
			carried = self._eval_value(stmt.value, pos)
			self._on_return(carried, pos, self._span_of(stmt.value))
		for scope in reversed(self._scopes):
			self._destroy(scope, pos)
		self._state.unreachable = True

	def _if(self, stmt: P.If, pos: int) -> None:
		self._eval_read(stmt.cond, pos)
		entry = self._state.copy()
		self._walk_block(stmt.then_block)
		after_then = self._state
		self._state = entry
		if stmt.else_block is not None:
			self._walk_block(stmt.else_block)
		self._state = after_then.merge(self._state)

	def _while(self, stmt: P.While, pos: int) -> None:
		self._eval_read(stmt.cond, pos)
		entry = self._state.copy()
		self._walk_block(stmt.body)
		joined = entry.merge(self._state)
		# Second iteration: uses that only fail once the body has run.
		self._replaying += 1
		try:
			self._state = joined.copy()
			self._stmt_span = stmt.loc
			self._eval_read(stmt.cond, pos)
			self._walk_block(stmt.body)
		finally:
			self._replaying -= 1
		self._state = joined.merge(self._state)

	def _match(self, stmt: P.Match, pos: int) -> None:
		place = place_from_expr(stmt.scrutinee, self.tree)
		if place is None:
			self._eval_value(stmt.scrutinee, pos)
		elif not self._read_place(place, pos, self._span_of(stmt.scrutinee)):
			# already reported; arms must not report the same place again
			place = None
		entry = self._state.copy()
		joined: Optional[_FlowState] = None
		for arm in stmt.arms:
			self._state = entry.copy()
			scope = self.tree.scope_of(arm.body)
			self._scopes.append(scope)
			self._bind_arm(stmt, arm, place)
			self._walk_statements(arm.body.statements)
			self._exit_scope(scope)
			joined = self._state if joined is None else joined.merge(self._state)
		if joined is not None:
			self._state = joined

	def _bind_arm(self, match: P.Match, arm: P.MatchArm, scrutinee: Optional[Place]) -> None:
		pos = self.tree.pos_of(arm)
		span = self._span_of(arm)
		binders = self.tree.bindings_declared_by(arm)
		types = [ty for name, ty in zip(arm.binders, self.typer.arm_binder_types(match, arm)) if name != "_"]
		moves = False
		for b, ty in zip(binders, types):
			self._state.place_states[Place(b)] = PlaceState.OWNED
			if not isinstance(ty, RefType) and not self.typer.is_copy(ty):
				moves = True
		if moves and scrutinee is not None:
			self._consume_place(scrutinee, pos, span)
		self._on_arm_bound(arm, binders, types, scrutinee, pos, span)

	# Scopes

	def _exit_scope(self, scope: Scope) -> None:
		if not self._state.unreachable:
			self._destroy(scope, scope.end)
			self._on_scope_exit(scope)
		for b in scope.bindings:
			self._forget(b)
		self._scopes.pop()

	def _destroy(self, scope: Scope, pos: int) -> None:
		for b in scope.drop_order():
			status = self.binding_status(b)
			if status.state is BindingState.OWNED:
				record = DropRecord(binding=b.name, decl_pos=b.decl_pos, pos=pos)
			elif status.state is BindingState.PARTIALLY_MOVED:
				record = DropRecord(binding=b.name, decl_pos=b.decl_pos, pos=pos, partial=True, moved_fields=status.moved_fields)
			else:
				continue
			self.ctx.record_drop(record, replaying=self._replaying > 0)

	def _forget(self, binding: Binding) -> None:
		for place in [p for p in self._state.place_states if p.base is binding]:
			del self._state.place_states[place]
			self._state.move_sites.pop(place, None)

	# Expressions

	def _eval_value(self, expr: Optional[P.Expr], pos: int) -> List:
		"""Evaluate `expr` in a by-value position; returns the loans its value carries."""
		if expr is None or isinstance(expr, P.Literal):
			return []
		if isinstance(expr, (P.Var, P.Field, P.Deref)):
			place = place_from_expr(expr, self.tree)
			if place is None:
				if isinstance(expr, P.Var):
					return []
				return self._eval_value(expr.subject, pos)
			span = self._span_of(expr)
			if self.typer.is_copy(self.typer.type_of_place(place)):
				self._read_place(place, pos, span)
			else:
				self._consume_place(place, pos, span)
			return self._carried_by(place, pos)
		if isinstance(expr, P.Borrow):
			kind = LoanKind.EXCLUSIVE if expr.is_mut else LoanKind.SHARED
			place = place_from_expr(expr.subject, self.tree)
			if place is None:
				self._eval_value(expr.subject, pos)
				return []
			return self._borrow_place(place, kind, pos, self._span_of(expr))
		if isinstance(expr, P.Call):
			self._eval_call(expr, pos)
			return []
		if isinstance(expr, P.Binary):
			self._eval_read(expr.left, pos)
			self._eval_read(expr.right, pos)
			return []
		if isinstance(expr, P.Construct):
			carried: List = []
			for arg in expr.args:
				carried.extend(self._eval_value(arg, pos))
			return carried
		raise MalformedProgramError(f"unknown expression node {type(expr).__name__}")

	def _eval_read(self, expr: P.Expr, pos: int) -> None:
		place = place_from_expr(expr, self.tree)
		if place is None:
			self._eval_value(expr, pos)
			return
		self._read_place(place, pos, self._span_of(expr))

	def _eval_call(self, call: P.Call, pos: int) -> None:
		sig = self.ctx.program.signature_for(call.callee)
		for i, arg in enumerate(call.args):
			mode = sig.mode_for(i) if sig is not None else P.ParamMode.BY_VALUE
			if mode is P.ParamMode.BY_VALUE:
				self._eval_value(arg, pos)
				continue
			place = place_from_expr(arg, self.tree)
			if place is None:
				self._eval_value(arg, pos)
				continue
			if self.typer.is_ref(self.typer.type_of_place(place)):
				# a reference passed to a borrowing parameter is reborrowed, not moved
				self._read_place(place, pos, self._span_of(arg))
				continue
			kind = LoanKind.EXCLUSIVE if mode is P.ParamMode.EXCLUSIVE else LoanKind.SHARED
			self._borrow_place(place, kind, pos, self._span_of(arg))

	# Place operations

	def _read_place(self, place: Place, pos: int, span: Span) -> bool:
		if not self._check_usable(place, pos, span):
			return False
		self._on_read(place, pos, span)
		return True

	def _consume_place(self, place: Place, pos: int, span: Span) -> None:
		if self.typer.ref_prefix(place) is not None:
			# Values behind a reference are not ours to move.
			self._read_place(place, pos, span)
			return
		if not self._check_usable(place, pos, span):
			return
		self._on_move(place, pos, span)
		self._reset_below(place)
		self._state.place_states[place] = PlaceState.MOVED
		self._state.move_sites[place] = (pos, span)
		logger.debug("%s: moved %s at %d", self.ctx.fn.name, place, pos)

	def _write_place(self, place: Place, pos: int, span: Span) -> None:
		if place.projections:
			# Assigning into part of an aggregate needs the aggregate itself.
			base_state = self._state.place_states.get(Place(place.base), PlaceState.OWNED)
			if base_state is PlaceState.UNINIT:
				self._report(UseOfUninitializedError(pos=pos, span=span, binding=place.base.name))
				return
			for prefix in place.prefixes():
				if self._state.place_states.get(prefix) is PlaceState.MOVED:
					self._report_moved(place, prefix, pos, span)
					return
		self._on_write(place, pos, span)
		self._reset_below(place)
		self._state.place_states[place] = PlaceState.OWNED

	def _reset_below(self, place: Place) -> None:
		"""Drop recorded state for `place` and every sub-place."""
		for sub in [p for p in self._state.place_states if place.is_prefix_of(p)]:
			del self._state.place_states[sub]
			self._state.move_sites.pop(sub, None)

	def _check_usable(self, place: Place, pos: int, span: Span) -> bool:
		"""Report and return False when `place` is uninitialized or (partly) moved."""
		if self._state.place_states.get(Place(place.base)) is PlaceState.UNINIT:
			self._report(UseOfUninitializedError(pos=pos, span=span, binding=place.base.name))
			return False
		moved = self._moved_conflict(place)
		if moved is not None:
			self._report_moved(place, moved, pos, span)
			return False
		return True

	def _moved_conflict(self, place: Place) -> Optional[Place]:
		"""The moved place that makes `place` unusable: a prefix, itself, or a sub-place."""
		for candidate in place.prefixes() + (place,):
			if self._state.place_states.get(candidate) is PlaceState.MOVED:
				return candidate
		for candidate, st in self._state.place_states.items():
			if st is PlaceState.MOVED and candidate != place and place.is_prefix_of(candidate):
				return candidate
		return None

	def _report_moved(self, place: Place, moved: Place, pos: int, span: Span) -> None:
		site_pos, site_span = self._state.move_sites.get(moved, (-1, Span()))
		self._report(
			UseAfterMoveError(
				pos=pos,
				span=span,
				binding=place.base.name,
				place=place.describe(),
				moved_place=moved.describe(),
				prior_move_location=site_pos,
				prior_move_span=site_span,
			)
		)

	def _report(self, finding: Finding) -> None:
		self.ctx.report(finding, replaying=self._replaying > 0)

	def _span_of(self, node: P.Node) -> Span:
		loc = getattr(node, "loc", None)
		if loc is not None and loc.is_known:
			return loc
		return self._stmt_span

	# Hooks for the borrow checker

	def _borrow_place(self, place: Place, kind: LoanKind, pos: int, span: Span) -> List:
		return []

	def _carried_by(self, place: Place, pos: int) -> List:
		return []

	def _bind_carried(self, carried: List, binding: Binding, pos: int) -> None:
		pass

	def _on_read(self, place: Place, pos: int, span: Span) -> None:
		pass

	def _on_move(self, place: Place, pos: int, span: Span) -> None:
		pass

	def _on_write(self, place: Place, pos: int, span: Span) -> None:
		pass

	def _on_return(self, carried: List, pos: int, span: Span) -> None:
		pass

	def _on_scope_exit(self, scope: Scope) -> None:
		pass

	def _on_arm_bound(
		self,
		arm: P.MatchArm,
		binders: List[Binding],
		types: List[LocalType],
		scrutinee: Optional[Place],
		pos: int,
		span: Span,
	) -> None:
		pass


def _relative_path(place: Place) -> str:
	"""`x.a.b` -> `a.b`; anything involving a deref keeps the full description."""
	if all(isinstance(p, FieldProj) for p in place.projections):
		return ".".join(p.name for p in place.projections)  # type: ignore[union-attr]
	return place.describe()


__all__ = ["BindingState", "BindingStatus", "DropRecord", "MoveTracker"]
