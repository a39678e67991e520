# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Shared helpers for tests that need analysis inputs.

Programs can be written as sketches (see `sketch.lark`) instead of spelling
out node trees and type tables by hand.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Type

from borrowck.analyze import FunctionReport, analyze_function
from borrowck.config import AnalysisOptions
from borrowck.core.diagnostics import Finding

from .sketch import SketchSyntaxError, parse_sketch


def analyze_sketch(source: str, fn: Optional[str] = None, options: Optional[AnalysisOptions] = None) -> FunctionReport:
	"""
	Parse `source` and analyze one of its functions.

	`fn` defaults to the last function in the sketch, so helpers can be declared
	before the function under test.
	"""
	program = parse_sketch(source)
	if not program.functions:
		raise ValueError("sketch declares no functions")
	decl = program.function(fn) if fn is not None else program.functions[-1]
	if decl is None:
		raise ValueError(f"sketch has no function '{fn}'")
	return analyze_function(program, decl, options)


def findings_of(findings: Sequence[Finding], cls: Type[Finding]) -> List[Finding]:
	return [f for f in findings if isinstance(f, cls)]


__all__ = ["SketchSyntaxError", "parse_sketch", "analyze_sketch", "findings_of"]
