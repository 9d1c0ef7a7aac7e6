"""
Synthesized Syntax for valueobs

Everything the engine produces is represented as structured nodes,
never as strings of generated code.

This ensures:
    - The engine stays independent of the output language
    - Expansions are inspectable and serializable
    - Backends own all formatting decisions

ARCHITECTURAL RULE:
    No code fragments are built here.
    Source text only appears where it was copied from the input
    (annotations and initializer expressions).
"""

from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

from valueobs.model import Declaration, Diagnostic, Member, Passthrough, Severity


IDENTITY_FIELD = "_id"
REGISTRAR_FIELD = "_observation_registrar"
ACCESS_METHOD = "_access"
WITH_MUTATION_METHOD = "_with_mutation"
SHOULD_NOTIFY_METHOD = "_should_notify_observers"
MODIFY_PREFIX = "_modify_"
CAPABILITY_NAME = "ObservableValue"


def storage_name(member_name: str) -> str:
    """Private slot backing an observed member."""
    return f"_{member_name}"


class ComparisonVariant(Enum):
    """
    Change-comparison helpers, one per capability combination.

    Selection precedence (most specific first):
        EQUATABLE_IDENTITY -> lhs != rhs
        IDENTITY           -> lhs is not rhs
        EQUATABLE          -> lhs != rhs
        ALWAYS             -> True
    """

    ALWAYS = "always"
    EQUATABLE = "equatable"
    IDENTITY = "identity"
    EQUATABLE_IDENTITY = "equatable_identity"

    @property
    def method_name(self) -> str:
        if self is ComparisonVariant.ALWAYS:
            return SHOULD_NOTIFY_METHOD
        return f"{SHOULD_NOTIFY_METHOD}_{self.value}"


class SynthesizedMember(ABC):
    """
    Base class for every node the engine adds to a declaration.

    Structure only. Rendering belongs in backends.
    """
    pass


@dataclass(frozen=True)
class StorageSlot(SynthesizedMember):
    """
    Private storage backing an observed member.

    Example:
        count: int = 0   ->   _count: int = 0
    """

    name: str
    annotation: Optional[str] = None
    initializer: Optional[str] = None


@dataclass(frozen=True)
class InitializerPath:
    """
    Gives each instance its own copy of the class-level default, bypassing observation.

    Records do this once, in the construction hook. Standalone members
    have no construction hook and are initialized lazily, on first touch
    by any accessor path.
    """

    slot: str
    initializer: Optional[str] = None
    lazy: bool = False


@dataclass(frozen=True)
class ReadPath:
    """Records an access event, then returns the slot."""

    key_path: str
    slot: str


@dataclass(frozen=True)
class WritePath:
    """
    Assigns a new value.

    Decision order:
        1. old and new are observable values with equal identity -> silent
        2. comparison helper says no change -> silent
        3. otherwise assign inside the with-mutation scope
    """

    key_path: str
    slot: str
    comparison: ComparisonVariant = ComparisonVariant.ALWAYS


@dataclass(frozen=True)
class ModifyPath:
    """
    Yields the stored value for in-place mutation.

    Observable values are yielded bare. Anything else is bracketed by
    will-set / did-set unconditionally.
    """

    key_path: str
    slot: str
    method: str


@dataclass(frozen=True)
class ObservedProperty(SynthesizedMember):
    """
    Accessor rewrite replacing one stored member.

    Properties:
        member:
            The input member, with its directive set to OBSERVING
        storage:
            Backing StorageSlot (peer declaration)
        initializer_path, read_path, write_path, modify_path:
            The four accessor paths
    """

    member: Member
    storage: StorageSlot
    initializer_path: InitializerPath
    read_path: ReadPath
    write_path: WritePath
    modify_path: ModifyPath

    @property
    def name(self) -> str:
        return self.member.name

    @property
    def annotation(self) -> Optional[str]:
        return self.member.annotation


@dataclass(frozen=True)
class IdentityField(SynthesizedMember):
    """Per-instance unique identity, regenerated on every construction and copy."""

    name: str = IDENTITY_FIELD


@dataclass(frozen=True)
class RegistrarField(SynthesizedMember):
    """Per-instance registrar handle. Never observed itself."""

    name: str = REGISTRAR_FIELD


@dataclass(frozen=True)
class ConstructionHook(SynthesizedMember):
    """
    Runs at every construction site.

    Assigns a fresh identity and registrar, then every initializer path.
    Each slot starts from a copy of its class-level default, so mutable
    initial values are never shared between instances.
    """

    identity: IdentityField
    registrar: RegistrarField
    initializers: Tuple[InitializerPath, ...] = ()
    name: str = "__new__"


@dataclass(frozen=True)
class CopyMethod(SynthesizedMember):
    """
    Value duplicate with a fresh identity and a fresh registrar.

    Mutating the copy never reaches observers of the original.
    """

    identity: IdentityField
    registrar: RegistrarField
    name: str = "copy"


@dataclass(frozen=True)
class AccessMethod(SynthesizedMember):
    """Forwards a read event for `key_path` to the registrar."""

    registrar: RegistrarField
    name: str = ACCESS_METHOD


@dataclass(frozen=True)
class WithMutationMethod(SynthesizedMember):
    """Opens the registrar's will-set / did-set scope for `key_path`."""

    registrar: RegistrarField
    name: str = WITH_MUTATION_METHOD


@dataclass(frozen=True)
class ShouldNotifyMethod(SynthesizedMember):
    """One change-comparison helper, generic over the member type."""

    variant: ComparisonVariant

    @property
    def name(self) -> str:
        return self.variant.method_name


@dataclass(frozen=True)
class Conformance:
    """Attaches a declaration to the observable-value capability."""

    declaration_name: str
    capability: str = CAPABILITY_NAME


OutputItem = Union[Member, Passthrough, ObservedProperty]


@dataclass
class Expansion:
    """
    Result of transforming one declaration.

    Properties:
        declaration:
            The input declaration, untouched

        members:
            Output body in declaration order. Ignored members and
            passthrough statements appear exactly as given; observed
            members are replaced by their ObservedProperty.

        synthesized:
            Record-level support members, in emission order

        conformance:
            Capability attachment, or None

        diagnostics:
            Problems found; any ERROR means nothing was rewritten
    """

    declaration: Declaration
    members: List[OutputItem] = field(default_factory=list)
    synthesized: List[SynthesizedMember] = field(default_factory=list)
    conformance: Optional[Conformance] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(d.severity == Severity.ERROR for d in self.diagnostics)

    @property
    def rewrites(self) -> List[ObservedProperty]:
        return [item for item in self.members if isinstance(item, ObservedProperty)]

    def get_synthesized(self, name: str) -> Optional[SynthesizedMember]:
        """
        Retrieve a synthesized member by name.

        Args:
            name: e.g. "copy", "_access", "_should_notify_observers_identity"

        Returns:
            The synthesized member or None if not found
        """
        for item in self.synthesized:
            if getattr(item, "name", None) == name:
                return item
        return None
