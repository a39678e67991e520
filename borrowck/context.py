# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Per-function analysis context.

One `FunctionContext` is created for every function analysis and discarded
afterwards. It holds the derived views of the function (scope tree, place
types), the options and the output sinks. Nothing in it is shared between
functions, which is what makes concurrent function analyses safe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Set, Tuple

from borrowck import program as P
from borrowck.config import AnalysisOptions
from borrowck.core.diagnostics import Finding, describe_finding
from borrowck.place_types import PlaceTyper
from borrowck.scope_tree import ScopeTree, build_scope_tree

if TYPE_CHECKING:
	from borrowck.move_tracker import DropRecord


@dataclass
class FunctionContext:
	program: P.Program
	fn: P.FunctionDecl
	tree: ScopeTree
	typer: PlaceTyper
	options: AnalysisOptions = field(default_factory=AnalysisOptions)
	findings: List[Finding] = field(default_factory=list)
	drops: List["DropRecord"] = field(default_factory=list)
	_finding_keys: Set[Tuple[str, int, str]] = field(default_factory=set, repr=False)

	@classmethod
	def build(cls, program: P.Program, fn: P.FunctionDecl, options: Optional[AnalysisOptions] = None) -> "FunctionContext":
		tree = build_scope_tree(fn)
		return cls(
			program=program,
			fn=fn,
			tree=tree,
			typer=PlaceTyper(program, tree),
			options=options or AnalysisOptions(),
		)

	def report(self, finding: Finding, *, replaying: bool = False) -> None:
		"""
		Record a finding.

		While a loop body is re-walked (`replaying`), a finding that repeats
		one already recorded at the same position is dropped.
		"""
		key = (finding.code, finding.pos, describe_finding(finding)[0])
		if replaying and key in self._finding_keys:
			return
		self._finding_keys.add(key)
		self.findings.append(finding)

	def record_drop(self, record: "DropRecord", *, replaying: bool = False) -> None:
		if replaying and record in self.drops:
			return
		self.drops.append(record)


__all__ = ["FunctionContext"]
