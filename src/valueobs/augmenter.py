"""
Record Augmenter: the record-level transformation.

Orchestrates, for one declaration carrying the record directive:
    1. Validation (all-or-nothing)
    2. Member classification and dispatch
    3. Synthesis of record support members, exactly once
    4. Conformance to the observable-value capability

IMPORTANT: The augmenter is a pure function of its inputs.
It keeps no state between declarations.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Dict, List, Optional

from valueobs.accessors import synthesize_accessor
from valueobs.capabilities import CapabilityResolver, ComparisonTable
from valueobs.classifier import Classification, classify
from valueobs.model import Declaration, Directive, Member
from valueobs.syntax import (
    AccessMethod,
    ComparisonVariant,
    Conformance,
    ConstructionHook,
    CopyMethod,
    Expansion,
    IdentityField,
    OutputItem,
    RegistrarField,
    ShouldNotifyMethod,
    SynthesizedMember,
    WithMutationMethod,
)
from valueobs.validator import validate_declaration


logger = logging.getLogger(__name__)


# Emission order of the comparison helpers, least specific first
_COMPARISON_ORDER = (
    ComparisonVariant.ALWAYS,
    ComparisonVariant.EQUATABLE,
    ComparisonVariant.IDENTITY,
    ComparisonVariant.EQUATABLE_IDENTITY,
)


def _leave_untouched(member: Member, comparisons: ComparisonTable) -> OutputItem:
    return member


def _observe(member: Member, comparisons: ComparisonTable) -> OutputItem:
    rewrite = synthesize_accessor(member, comparisons)
    return member if rewrite is None else rewrite


def _observe_implicitly(member: Member, comparisons: ComparisonTable) -> OutputItem:
    return _observe(dataclasses.replace(member, directive=Directive.OBSERVING), comparisons)


_HANDLERS: Dict[Classification, Callable[[Member, ComparisonTable], OutputItem]] = {
    Classification.IGNORED: _leave_untouched,
    Classification.EXPLICITLY_OBSERVING: _observe,
    Classification.DEFAULT_OBSERVING: _observe_implicitly,
}


def synthesize_record_support(expansion: Expansion) -> List[SynthesizedMember]:
    """
    Build the record-level support members for an expansion.

    Construction hook initializers come from the rewrites already
    present in `expansion.members`.
    """
    identity = IdentityField()
    registrar = RegistrarField()
    initializers = tuple(rewrite.initializer_path for rewrite in expansion.rewrites)

    support: List[SynthesizedMember] = [
        identity,
        registrar,
        ConstructionHook(identity=identity, registrar=registrar, initializers=initializers),
        CopyMethod(identity=identity, registrar=registrar),
        AccessMethod(registrar=registrar),
        WithMutationMethod(registrar=registrar),
    ]
    support.extend(ShouldNotifyMethod(variant=variant) for variant in _COMPARISON_ORDER)
    return support


def expand_observable_value(
    declaration: Declaration,
    resolver: Optional[CapabilityResolver] = None,
    directive: str = "observable_value",
) -> Expansion:
    """
    Apply the record-level transformation to `declaration`.

    Args:
        declaration: Declaration carrying the record directive
        resolver: Capability resolver for member types
        directive: Directive name as written, for diagnostics

    Returns:
        Expansion. When validation fails it holds exactly the diagnostic,
        the original body unchanged, no synthesized members and no
        conformance.
    """
    expansion = Expansion(declaration=declaration)

    diagnostics = validate_declaration(declaration, directive=directive)
    if diagnostics:
        logger.debug("Rejected %r: %s", declaration.name, diagnostics[0].message)
        expansion.members = list(declaration.body)
        expansion.diagnostics = diagnostics
        return expansion

    comparisons = ComparisonTable(resolver or CapabilityResolver())

    for item in declaration.body:
        if not isinstance(item, Member):
            expansion.members.append(item)
            continue
        classification = classify(item)
        logger.debug("%s.%s classified %s", declaration.name, item.name, classification.value)
        expansion.members.append(_HANDLERS[classification](item, comparisons))

    expansion.synthesized = synthesize_record_support(expansion)
    expansion.conformance = Conformance(declaration_name=declaration.name)

    logger.debug(
        "Expanded %r: %d rewrite(s), %d support member(s), %d comparison type(s)",
        declaration.name,
        len(expansion.rewrites),
        len(expansion.synthesized),
        len(comparisons),
    )
    return expansion
