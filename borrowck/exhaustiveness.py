# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Match exhaustiveness over sum types.

Arms are validated in source order:
  - an arm naming a variant the type does not declare is reported,
  - a second arm for the same variant is unreachable,
  - every arm after a wildcard is unreachable,
and the match is non-exhaustive when some declared variant is neither named
by an arm nor covered by a wildcard. Missing variants are listed in declaration
order.

This stream only needs the program's types; it does not look at ownership.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from borrowck import program as P
from borrowck.context import FunctionContext
from borrowck.core.diagnostics import (
	Finding,
	NonExhaustiveMatchError,
	NonVariantScrutineeError,
	UnknownVariantError,
	UnreachableArmError,
)
from borrowck.core.span import Span
from borrowck.core.types_core import TypeDef, TypeKind
from borrowck.scope_tree import EventKind, ScopeTree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArmSite:
	variant: Optional[str]  # None = wildcard
	pos: int
	span: Span = Span()


@dataclass(frozen=True)
class MatchSite:
	"""A match statement reduced to what exhaustiveness needs."""

	pos: int
	arms: Tuple[ArmSite, ...]
	span: Span = Span()

	@classmethod
	def from_match(cls, match: P.Match, tree: ScopeTree) -> "MatchSite":
		arms = tuple(ArmSite(variant=arm.variant, pos=tree.pos_of(arm), span=arm.loc) for arm in match.arms)
		return cls(pos=tree.pos_of(match), arms=arms, span=match.loc)


def check_match(site: MatchSite, sum_type: TypeDef) -> List[Finding]:
	"""Validate the arms of `site` against the variants of `sum_type`."""
	if sum_type.kind is not TypeKind.VARIANT:
		return [NonVariantScrutineeError(pos=site.pos, span=site.span, type_name=sum_type.name)]
	findings: List[Finding] = []
	declared = set(sum_type.variant_names)
	first_arm: Dict[str, int] = {}
	wildcard_pos: Optional[int] = None
	for arm in site.arms:
		if wildcard_pos is not None:
			findings.append(
				UnreachableArmError(
					pos=arm.pos,
					span=arm.span,
					variant=arm.variant,
					first_arm_pos=wildcard_pos,
					after_wildcard=True,
				)
			)
			continue
		if arm.variant is None:
			wildcard_pos = arm.pos
			continue
		if arm.variant not in declared:
			findings.append(UnknownVariantError(pos=arm.pos, span=arm.span, type_name=sum_type.name, variant=arm.variant))
			continue
		if arm.variant in first_arm:
			findings.append(
				UnreachableArmError(pos=arm.pos, span=arm.span, variant=arm.variant, first_arm_pos=first_arm[arm.variant])
			)
			continue
		first_arm[arm.variant] = arm.pos
	missing = tuple(name for name in sum_type.variant_names if name not in first_arm)
	if missing and wildcard_pos is None:
		findings.append(
			NonExhaustiveMatchError(pos=site.pos, span=site.span, type_name=sum_type.name, missing_variants=missing)
		)
	return findings


def check_function_matches(ctx: FunctionContext) -> List[Finding]:
	"""Check every match statement of the function in `ctx`."""
	findings: List[Finding] = []
	for ev in ctx.tree.events:
		if ev.kind is not EventKind.STMT or not isinstance(ev.node, P.Match):
			continue
		match = ev.node
		site = MatchSite.from_match(match, ctx.tree)
		ty = ctx.typer.scrutinee_type(match)
		if ty is None:
			logger.debug("%s: match at %d has an untyped scrutinee; skipped", ctx.fn.name, site.pos)
			continue
		td = ctx.typer.aggregate_def(ty, TypeKind.VARIANT)
		if td is None:
			findings.append(NonVariantScrutineeError(pos=site.pos, span=site.span, type_name=ctx.typer.describe(ty)))
			continue
		findings.extend(check_match(site, td))
	return findings


__all__ = ["ArmSite", "MatchSite", "check_match", "check_function_matches"]
