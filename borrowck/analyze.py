# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Entry points: analyze a whole program or a single function.

Each function body is analyzed on its own (scope tree, place types, ownership
and borrow walk, match checks) with a fresh context, so results never depend
on the order functions are visited in and a program can be analyzed
repeatedly with identical results. With `workers > 1` bodies are analyzed on a
thread pool; results are still keyed and ordered by declaration.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from borrowck import program as P
from borrowck.borrow_checker_pass import check_borrows
from borrowck.config import AnalysisOptions
from borrowck.context import FunctionContext
from borrowck.core.diagnostics import Finding
from borrowck.core.errors import InternalConsistencyError, MalformedProgramError
from borrowck.exhaustiveness import check_function_matches
from borrowck.move_tracker import DropRecord
from borrowck.reporter import collect
from borrowck.scope_tree import ScopeTree

logger = logging.getLogger(__name__)


@dataclass
class FunctionReport:
	"""Everything one function analysis produced."""

	function: str
	findings: List[Finding] = field(default_factory=list)
	drops: List[DropRecord] = field(default_factory=list)
	scope_tree: Optional[ScopeTree] = None


def analyze_function(program: P.Program, fn: P.FunctionDecl, options: Optional[AnalysisOptions] = None) -> FunctionReport:
	"""
	Analyze one function of `program`.

	Internal-consistency failures propagate with `function_name` set.
	"""
	options = options or AnalysisOptions()
	try:
		ctx = FunctionContext.build(program, fn, options)
		check_borrows(ctx)
		streams = [ctx.findings]
		if options.check_exhaustiveness:
			streams.append(check_function_matches(ctx))
	except InternalConsistencyError as err:
		if err.function_name is None:
			err.function_name = fn.name
		logger.debug("analysis of %s aborted: %s", fn.name, err)
		raise
	findings = collect(streams)
	logger.debug("%s: %d finding(s)", fn.name, len(findings))
	return FunctionReport(function=fn.name, findings=findings, drops=list(ctx.drops), scope_tree=ctx.tree)


def analyze(program: P.Program, options: Optional[AnalysisOptions] = None) -> Dict[str, List[Finding]]:
	"""
	Analyze every function of `program`; returns findings per function name.

	The result is a pure function of the program: running it twice yields
	equal findings.
	"""
	options = options or AnalysisOptions()
	seen: set[str] = set()
	for fn in program.functions:
		if fn.name in seen:
			raise MalformedProgramError(f"function '{fn.name}' is declared more than once")
		seen.add(fn.name)

	if options.workers > 1 and len(program.functions) > 1:
		with ThreadPoolExecutor(max_workers=options.workers) as pool:
			reports = list(pool.map(lambda fn: analyze_function(program, fn, options), program.functions))
	else:
		reports = [analyze_function(program, fn, options) for fn in program.functions]
	return {report.function: report.findings for report in reports}


__all__ = ["FunctionReport", "analyze_function", "analyze"]
