"""
Core Declaration Model Objects

Defines the input side of the value-observation engine.

These are pure data classes representing:
    - Declarations (the aggregate being transformed)
    - Members (properties of a declaration)
    - Passthrough statements (methods, docstrings)
    - Type capabilities (queried per member type)
    - Diagnostics (engine output for invalid usage)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about the source language parser
        - Know nothing about rendering
        - Are immutable (frozen=True)
        - Represent structure, not behavior
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union


class DeclarationKind(Enum):
    """
    Kind of aggregate a directive is attached to.

    Only RECORD can host per-instance identity and mutation semantics.
    """

    RECORD = "record"
    ENUMERATION = "enumeration"
    NAMED_TUPLE = "named tuple"
    PROTOCOL = "protocol"


class StorageForm(Enum):
    """
    How a member stores its value.

    Only STORED_WITH_INITIALIZER members are eligible for observation.
    """

    STORED_WITH_INITIALIZER = "stored_with_initializer"
    STORED_CONSTANT = "stored_constant"
    COMPUTED = "computed"
    DECLARED_ONLY = "declared_only"


class Directive(Enum):
    """Per-member directive selecting a transformation rule."""

    NONE = "none"
    IGNORING = "ignoring"
    OBSERVING = "observing"


class Severity(Enum):
    """Diagnostic severity. Every rule the engine checks is an error."""

    ERROR = "error"


@dataclass(frozen=True)
class SourceLocation:
    """
    A position in the input source.

    Properties:
        line: 1-based line number
        column: 1-based column number
    """

    line: int = 1
    column: int = 1


@dataclass(frozen=True)
class TypeCapabilities:
    """
    Capability facets of a member type.

    Properties:
        observable:
            Values conform to the observable-value capability
            (they carry an `_id` and notify on their own mutations)

        equatable:
            Values support value equality (==, !=)

        identity:
            Values have reference identity (`is` is meaningful)

    These three facets select the change-comparison variant.
    """

    observable: bool = False
    equatable: bool = False
    identity: bool = False


@dataclass(frozen=True)
class Member:
    """
    One property of a Declaration.

    Properties:
        name:
            Property identifier (e.g., "count")

        annotation:
            Source text of the declared type with any directive
            marker already removed (e.g., "int", "list[str]").
            None when the member has no annotation.

        initializer:
            Source text of the initial value (e.g., "0", '""').
            None for computed or declared-only members.

        storage_form:
            StorageForm of the member

        directive:
            Directive attached to the member (NONE if absent)

        location:
            Where the member is declared

        source:
            Verbatim source of the member as written, directive included.
            Used for byte-identical pass-through.
    """

    name: str
    annotation: Optional[str] = None
    initializer: Optional[str] = None
    storage_form: StorageForm = StorageForm.STORED_WITH_INITIALIZER
    directive: Directive = Directive.NONE
    location: SourceLocation = field(default_factory=SourceLocation)
    source: str = ""

    @property
    def is_eligible(self) -> bool:
        """True when the member holds mutable stored state."""
        return self.storage_form == StorageForm.STORED_WITH_INITIALIZER


@dataclass(frozen=True)
class Passthrough:
    """
    A body statement that is not a member (method, docstring, nested class).

    Carried verbatim through every transformation.
    """

    source: str
    location: SourceLocation = field(default_factory=SourceLocation)


BodyItem = Union[Member, Passthrough]


@dataclass(frozen=True)
class Declaration:
    """
    The aggregate being transformed.

    Properties:
        name:
            Declaration identifier (e.g., "Model")

        kind:
            DeclarationKind

        body:
            Ordered members and passthrough statements, as written

        location:
            Directive attachment point (the '@' of the record directive),
            or the declaration itself when no directive is attached

        has_directive:
            True when the record-level directive is attached

        header:
            Verbatim class header line(s), without decorators

        decorators:
            Verbatim decorator sources other than the record directive

    INVARIANTS:
        - Transformation only succeeds when kind is RECORD
        - Member names are unique within a declaration
    """

    name: str
    kind: DeclarationKind = DeclarationKind.RECORD
    body: Tuple[BodyItem, ...] = ()
    location: SourceLocation = field(default_factory=SourceLocation)
    has_directive: bool = False
    header: str = ""
    decorators: Tuple[str, ...] = ()

    @property
    def members(self) -> List[Member]:
        """Members in declaration order, passthrough statements excluded."""
        return [item for item in self.body if isinstance(item, Member)]

    def get_member(self, name: str) -> Optional[Member]:
        """
        Retrieve a member by name.

        Args:
            name: Member name

        Returns:
            Member object or None if not found
        """
        for member in self.members:
            if member.name == name:
                return member
        return None


@dataclass(frozen=True)
class Diagnostic:
    """
    A positioned message about invalid directive usage.

    Properties:
        message: Human-readable text, reported verbatim by the host
        location: Directive attachment point
        severity: Severity
        code: Stable machine-readable identifier
    """

    message: str
    location: SourceLocation = field(default_factory=SourceLocation)
    severity: Severity = Severity.ERROR
    code: str = ""

    def format(self, path: str = "<source>") -> str:
        """Render as `path:line:col: severity: message`."""
        return (
            f"{path}:{self.location.line}:{self.location.column}: "
            f"{self.severity.value}: {self.message}"
        )
