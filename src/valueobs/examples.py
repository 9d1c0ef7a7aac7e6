"""
Example declarations for demos and tests.

Builds the canonical `Model` record (one member per classification rule)
and a `Flavor` enumeration that the record directive rejects.
"""
from valueobs.model import (
    Declaration,
    DeclarationKind,
    Directive,
    Member,
    SourceLocation,
    StorageForm,
)


EXAMPLE_SOURCE = '''\
"""Example models."""
from enum import Enum
from typing import Final

from valueobs.markers import Ignoring, Observing, observable_value


@observable_value
class Model:
    count: int = 0
    constant: Final[int] = 1
    ignored: Ignoring[int] = 2
    already: Observing[str] = ""
    tags: list[str] = []

    @property
    def computed(self) -> int:
        return self.count


@observable_value
class Flavor(Enum):
    VANILLA = "vanilla"
'''


def build_example_model() -> Declaration:
    """The `Model` record, declared directly as a model object."""
    members = [
        Member(
            name="count",
            annotation="int",
            initializer="0",
            location=SourceLocation(line=3, column=5),
            source="count: int = 0",
        ),
        Member(
            name="constant",
            annotation="int",
            initializer="1",
            storage_form=StorageForm.STORED_CONSTANT,
            location=SourceLocation(line=4, column=5),
            source="constant: Final[int] = 1",
        ),
        Member(
            name="ignored",
            annotation="int",
            initializer="2",
            directive=Directive.IGNORING,
            location=SourceLocation(line=5, column=5),
            source="ignored: Ignoring[int] = 2",
        ),
        Member(
            name="already",
            annotation="str",
            initializer='""',
            directive=Directive.OBSERVING,
            location=SourceLocation(line=6, column=5),
            source='already: Observing[str] = ""',
        ),
        Member(
            name="computed",
            annotation="int",
            storage_form=StorageForm.COMPUTED,
            location=SourceLocation(line=8, column=5),
            source="@property\ndef computed(self) -> int:\n    return self.count",
        ),
    ]
    return Declaration(
        name="Model",
        kind=DeclarationKind.RECORD,
        body=tuple(members),
        location=SourceLocation(line=1, column=1),
        has_directive=True,
        header="class Model:",
    )


def build_example_enumeration() -> Declaration:
    """The `Flavor` enumeration with a single case."""
    return Declaration(
        name="Flavor",
        kind=DeclarationKind.ENUMERATION,
        body=(
            Member(
                name="VANILLA",
                initializer='"vanilla"',
                storage_form=StorageForm.STORED_CONSTANT,
                location=SourceLocation(line=3, column=5),
                source='VANILLA = "vanilla"',
            ),
        ),
        location=SourceLocation(line=1, column=1),
        has_directive=True,
        header="class Flavor(Enum):",
    )
