"""
Accessor Synthesizer and Standalone Member Transformer.

Turns one stored member into an ObservedProperty:

    count: int = 0

becomes (structurally)

    _count: int = 0                       # StorageSlot
    count -> initializer path             # per-instance copy of _count
             read path                    # access("count"); return _count
             write path                   # identity check, comparison, mutation scope
             in-place mutation path       # _modify_count()

The same synthesis serves the record augmenter and standalone use.
Standalone use relies on the enclosing declaration to provide the
access / with-mutation helpers, the registrar and the comparison helpers.
Its slots are initialized lazily, since there is no construction hook.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional, Union

from valueobs.capabilities import CapabilityResolver, ComparisonTable
from valueobs.model import Declaration, Directive, Member
from valueobs.syntax import (
    Expansion,
    MODIFY_PREFIX,
    InitializerPath,
    ModifyPath,
    ObservedProperty,
    ReadPath,
    StorageSlot,
    WritePath,
    storage_name,
)


logger = logging.getLogger(__name__)


def synthesize_accessor(
    member: Member,
    comparisons: ComparisonTable,
    lazy: bool = False,
) -> Optional[ObservedProperty]:
    """
    Build the accessor rewrite for one member.

    Args:
        member: Member carrying (explicitly or implicitly) the OBSERVING directive
        comparisons: Per-declaration comparison cache
        lazy: Initialize the slot on first access instead of at construction

    Returns:
        ObservedProperty, or None when the member holds no mutable
        stored state (constants, computed and declared-only members
        have nothing to instrument)
    """
    if not member.is_eligible:
        logger.debug("Member %r is not stored with an initializer, skipping", member.name)
        return None

    slot = storage_name(member.name)
    observed = dataclasses.replace(member, directive=Directive.OBSERVING)

    return ObservedProperty(
        member=observed,
        storage=StorageSlot(
            name=slot,
            annotation=member.annotation,
            initializer=member.initializer,
        ),
        initializer_path=InitializerPath(slot=slot, initializer=member.initializer, lazy=lazy),
        read_path=ReadPath(key_path=member.name, slot=slot),
        write_path=WritePath(
            key_path=member.name,
            slot=slot,
            comparison=comparisons.variant_for(member.annotation),
        ),
        modify_path=ModifyPath(
            key_path=member.name,
            slot=slot,
            method=f"{MODIFY_PREFIX}{member.name}",
        ),
    )


def expand_observing(
    member: Member,
    enclosing: Optional[Declaration] = None,
    resolver: Optional[CapabilityResolver] = None,
) -> Union[Member, ObservedProperty]:
    """
    Standalone Member Transformer.

    Applies accessor synthesis to a single member whose enclosing
    declaration supplies its own observation helpers.

    Args:
        member: The member carrying the OBSERVING directive
        enclosing: Enclosing declaration, or None for a top-level binding
        resolver: Capability resolver (builtin table if omitted)

    Returns:
        ObservedProperty for an eligible member inside a declaration.
        The member itself, unchanged, when there is no enclosing
        declaration or nothing to instrument. No diagnostic is produced
        in either case.
    """
    if enclosing is None:
        logger.debug("Member %r is not inside a declaration, leaving unchanged", member.name)
        return member

    comparisons = ComparisonTable(resolver or CapabilityResolver())
    rewrite = synthesize_accessor(member, comparisons, lazy=True)
    return member if rewrite is None else rewrite


def expand_observing_members(
    declaration: Declaration,
    resolver: Optional[CapabilityResolver] = None,
) -> Expansion:
    """
    Run the standalone transformer over a declaration without the record directive.

    Only members carrying OBSERVING are rewritten. Nothing is synthesized
    at the record level and no conformance is attached.
    """
    comparisons = ComparisonTable(resolver or CapabilityResolver())
    expansion = Expansion(declaration=declaration)
    for item in declaration.body:
        if isinstance(item, Member) and item.directive == Directive.OBSERVING:
            rewrite = synthesize_accessor(item, comparisons, lazy=True)
            expansion.members.append(item if rewrite is None else rewrite)
        else:
            expansion.members.append(item)
    logger.debug(
        "Standalone expansion of %r: %d rewrite(s)", declaration.name, len(expansion.rewrites)
    )
    return expansion
