"""
borrowck.core: shared types, findings and spans used across the passes.

Modules:
  - types_core: TypeId/TypeTable primitives and copy classification
  - diagnostics: Finding records and Diagnostic conversion
  - loans: borrow kinds and borrow summaries
  - span: source spans
  - errors: internal-consistency exceptions
"""

__all__ = [
	"types_core",
	"diagnostics",
	"loans",
	"span",
	"errors",
]
