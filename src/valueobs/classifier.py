"""
Member Classifier

Decides, per member, how the record augmenter treats it.

Rules, in precedence order:
    1. IGNORING directive               -> IGNORED
    2. OBSERVING directive              -> EXPLICITLY_OBSERVING
    3. not stored with an initializer   -> IGNORED
    4. otherwise                        -> DEFAULT_OBSERVING

The classifier never fails. Invalid placements are the validator's job.
"""

from enum import Enum

from valueobs.model import Directive, Member


class Classification(Enum):
    IGNORED = "ignored"
    EXPLICITLY_OBSERVING = "explicitly_observing"
    DEFAULT_OBSERVING = "default_observing"

    @property
    def is_observed(self) -> bool:
        return self is not Classification.IGNORED


def classify(member: Member) -> Classification:
    """Classify one member of a record declaration."""
    if member.directive == Directive.IGNORING:
        return Classification.IGNORED
    if member.directive == Directive.OBSERVING:
        return Classification.EXPLICITLY_OBSERVING
    if not member.is_eligible:
        return Classification.IGNORED
    return Classification.DEFAULT_OBSERVING
