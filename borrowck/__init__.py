# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
borrowck: ownership, borrow and match-exhaustiveness checking for a small
imperative program model.

Passes (per function):
  scope_tree: linearized positions, scopes, bindings, uses/defs
  move_tracker: ownership states, moves, destruction schedule
  borrow_checker_pass: loans, conflicts, dangling borrows
  exhaustiveness: match arms against sum types
  reporter: ordering of the merged findings

`analyze(program)` runs all of them for every function.
"""

from borrowck.analyze import FunctionReport, analyze, analyze_function
from borrowck.config import AnalysisOptions, load_options

__all__ = ["analyze", "analyze_function", "FunctionReport", "AnalysisOptions", "load_options"]
