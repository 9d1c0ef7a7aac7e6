"""
Type capability resolution and change-comparison selection.

The engine never inspects types directly. It asks a CapabilityResolver
three questions about a member's annotation:
    - Is it an observable value?
    - Does it support value equality?
    - Does it have reference identity?

The answers select exactly one ComparisonVariant, by fixed precedence.
"""

from __future__ import annotations

import ast
import logging
from typing import Dict, Iterable, Mapping, Optional

from valueobs.model import TypeCapabilities
from valueobs.syntax import ComparisonVariant


logger = logging.getLogger(__name__)


NO_CAPABILITIES = TypeCapabilities()

# Immutable builtins compare by value; identity is not meaningful for them.
_VALUE_TYPES = {
    "int", "float", "complex", "bool", "str", "bytes",
    "tuple", "frozenset", "None", "NoneType",
    "Tuple", "FrozenSet", "Text",
}

# Mutable builtins compare by value and are shared by reference.
_REFERENCE_TYPES = {
    "list", "dict", "set", "bytearray",
    "List", "Dict", "Set", "deque", "defaultdict", "OrderedDict",
}

_OPTIONAL_WRAPPERS = {"Optional"}
_UNION_WRAPPERS = {"Union"}
_TRANSPARENT_WRAPPERS = {"Annotated"}


def builtin_capabilities() -> Dict[str, TypeCapabilities]:
    """Default capability table for builtin and typing names."""
    table: Dict[str, TypeCapabilities] = {}
    for name in _VALUE_TYPES:
        table[name] = TypeCapabilities(equatable=True)
    for name in _REFERENCE_TYPES:
        table[name] = TypeCapabilities(equatable=True, identity=True)
    return table


def select_comparison(capabilities: TypeCapabilities) -> ComparisonVariant:
    """
    Pick the change-comparison variant for a set of capabilities.

    Value equality wins over reference identity when both are available.
    With neither, always notify.
    """
    if capabilities.equatable and capabilities.identity:
        return ComparisonVariant.EQUATABLE_IDENTITY
    if capabilities.identity:
        return ComparisonVariant.IDENTITY
    if capabilities.equatable:
        return ComparisonVariant.EQUATABLE
    return ComparisonVariant.ALWAYS


def _intersect(left: TypeCapabilities, right: TypeCapabilities) -> TypeCapabilities:
    return TypeCapabilities(
        observable=left.observable and right.observable,
        equatable=left.equatable and right.equatable,
        identity=left.identity and right.identity,
    )


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


class CapabilityResolver:
    """
    Answers capability queries for annotation source text.

    Args:
        observable_types:
            Names of record declarations that conform to the
            observable-value capability (e.g. other records in the
            same source file)
        overrides:
            Extra or replacement entries, keyed by type name
            (e.g. from the YAML config)
    """

    def __init__(
        self,
        observable_types: Iterable[str] = (),
        overrides: Optional[Mapping[str, TypeCapabilities]] = None,
    ):
        self._table = builtin_capabilities()
        for name in observable_types:
            self._table[name] = TypeCapabilities(observable=True, identity=True)
        if overrides:
            self._table.update(overrides)

    def with_observable_types(self, names: Iterable[str]) -> CapabilityResolver:
        """Return a resolver that also knows `names` as observable records."""
        resolver = CapabilityResolver()
        resolver._table = dict(self._table)
        for name in names:
            resolver._table.setdefault(
                name, TypeCapabilities(observable=True, identity=True)
            )
        return resolver

    def resolve(self, annotation: Optional[str]) -> TypeCapabilities:
        """
        Capabilities of the type named by `annotation`.

        Unknown, missing or unparsable annotations have no capabilities.
        """
        if not annotation:
            return NO_CAPABILITIES
        if annotation in self._table:
            return self._table[annotation]
        try:
            node = ast.parse(annotation, mode="eval").body
        except SyntaxError:
            logger.debug("Unparsable annotation %r, assuming no capabilities", annotation)
            return NO_CAPABILITIES
        return self._resolve_node(node)

    def _lookup(self, name: str) -> TypeCapabilities:
        return self._table.get(name, NO_CAPABILITIES)

    def _resolve_node(self, node: ast.expr) -> TypeCapabilities:
        if isinstance(node, ast.Name):
            return self._lookup(node.id)

        if isinstance(node, ast.Attribute):
            dotted = ast.unparse(node)
            if dotted in self._table:
                return self._table[dotted]
            return self._lookup(node.attr)

        if isinstance(node, ast.Constant):
            if node.value is None:
                return self._lookup("None")
            if isinstance(node.value, str):
                # Forward reference
                return self.resolve(node.value)
            return NO_CAPABILITIES

        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return self._resolve_union([node.left, node.right])

        if isinstance(node, ast.Subscript):
            origin = node.value
            origin_name = origin.attr if isinstance(origin, ast.Attribute) else getattr(origin, "id", None)
            args = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]

            if origin_name in _OPTIONAL_WRAPPERS:
                return self._resolve_union(args)
            if origin_name in _UNION_WRAPPERS:
                return self._resolve_union(args)
            if origin_name in _TRANSPARENT_WRAPPERS:
                return self._resolve_node(args[0])
            # Generic container: capabilities come from the origin
            return self._resolve_node(origin)

        return NO_CAPABILITIES

    def _resolve_union(self, options) -> TypeCapabilities:
        # None does not weaken the comparison of the remaining alternatives
        relevant = [option for option in options if not _is_none(option)]
        if not relevant:
            return self._lookup("None")

        result: Optional[TypeCapabilities] = None
        for option in relevant:
            caps = self._resolve_node(option)
            result = caps if result is None else _intersect(result, caps)
        return result


class ComparisonTable:
    """
    Per-declaration cache of annotation -> ComparisonVariant.

    One table is created for each declaration transformation and
    discarded with it.
    """

    def __init__(self, resolver: CapabilityResolver):
        self._resolver = resolver
        self._variants: Dict[Optional[str], ComparisonVariant] = {}

    def variant_for(self, annotation: Optional[str]) -> ComparisonVariant:
        if annotation not in self._variants:
            capabilities = self._resolver.resolve(annotation)
            self._variants[annotation] = select_comparison(capabilities)
            logger.debug(
                "Comparison for %r: %s", annotation, self._variants[annotation].value
            )
        return self._variants[annotation]

    def __len__(self) -> int:
        return len(self._variants)
