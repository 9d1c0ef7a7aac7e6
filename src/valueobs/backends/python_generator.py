"""
Python source generator for valueobs expansions.

Renders an Expansion back to Python source and splices it into the
original file. Everything outside transformed classes is kept verbatim.

Each observed member becomes:
    - a private class-level slot carrying the initial value
    - a property (read path) with a setter (write path)
    - a `_modify_<name>()` context manager (in-place mutation path)

Instances start from a copy of the class-level slot: records copy it in
the construction hook, other classes on first touch (`instance_slot`).

Records additionally get identity, registrar, construction hook, copy,
access / with-mutation helpers, four comparison helpers, and an
`ObservableValue.register(...)` call after the class.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from valueobs.accessors import expand_observing, expand_observing_members
from valueobs.augmenter import expand_observable_value
from valueobs.config import EngineConfig
from valueobs.model import Diagnostic
from valueobs.source_parser import SourceUnit, parse_file, parse_source
from valueobs.syntax import (
    AccessMethod,
    ComparisonVariant,
    Conformance,
    ConstructionHook,
    CopyMethod,
    Expansion,
    IdentityField,
    ObservedProperty,
    RegistrarField,
    ShouldNotifyMethod,
    SynthesizedMember,
    WithMutationMethod,
)
from valueobs.validator import validate_declaration


logger = logging.getLogger(__name__)

INDENT = "    "


def _indent(text: str, level: int = 1) -> List[str]:
    prefix = INDENT * level
    return [prefix + line if line.strip() else "" for line in text.splitlines()]


def _returns(annotation: Optional[str]) -> str:
    return f" -> {annotation}" if annotation else ""


def _param(name: str, annotation: Optional[str]) -> str:
    return f"{name}: {annotation}" if annotation else name


# =========================================================================
# ACCESSOR PATHS
# =========================================================================


def _load(rewrite: ObservedProperty) -> str:
    """Expression reading the instance's own slot."""
    path = rewrite.initializer_path
    if path.lazy:
        return f'instance_slot(self, "{path.slot}")'
    return f"self.{path.slot}"


def _render_storage(rewrite: ObservedProperty) -> List[str]:
    slot = rewrite.storage
    if slot.annotation:
        return [f"{slot.name}: {slot.annotation} = {slot.initializer}"]
    return [f"{slot.name} = {slot.initializer}"]


def _render_read(rewrite: ObservedProperty) -> List[str]:
    read = rewrite.read_path
    return [
        "@property",
        f"def {rewrite.name}(self){_returns(rewrite.annotation)}:",
        f'{INDENT}self._access("{read.key_path}")',
        f"{INDENT}return {_load(rewrite)}",
    ]


def _render_write(rewrite: ObservedProperty) -> List[str]:
    write = rewrite.write_path
    slot = f"self.{write.slot}"
    return [
        f"@{rewrite.name}.setter",
        f"def {rewrite.name}(self, {_param('new_value', rewrite.annotation)}) -> None:",
        f"{INDENT}old_value = {_load(rewrite)}",
        f"{INDENT}if (",
        f"{INDENT * 2}isinstance(old_value, ObservableValue)",
        f"{INDENT * 2}and isinstance(new_value, ObservableValue)",
        f"{INDENT * 2}and old_value._id == new_value._id",
        f"{INDENT}):",
        f"{INDENT * 2}{slot} = new_value",
        f"{INDENT * 2}return",
        f"{INDENT}if not self.{write.comparison.method_name}(old_value, new_value):",
        f"{INDENT * 2}{slot} = new_value",
        f"{INDENT * 2}return",
        f'{INDENT}with self._with_mutation("{write.key_path}"):',
        f"{INDENT * 2}{slot} = new_value",
    ]


def _render_modify(rewrite: ObservedProperty) -> List[str]:
    modify = rewrite.modify_path
    key = f'"{modify.key_path}"'
    return [
        "@contextlib.contextmanager",
        f"def {modify.method}(self):",
        f"{INDENT}self._access({key})",
        f"{INDENT}value = {_load(rewrite)}",
        f"{INDENT}if isinstance(value, ObservableValue):",
        f"{INDENT * 2}yield value",
        f"{INDENT}else:",
        f"{INDENT * 2}self._observation_registrar.will_set(self, {key})",
        f"{INDENT * 2}try:",
        f"{INDENT * 3}yield value",
        f"{INDENT * 2}finally:",
        f"{INDENT * 3}self._observation_registrar.did_set(self, {key})",
    ]


def render_observed_property(rewrite: ObservedProperty) -> List[str]:
    """Lines (unindented) for one accessor rewrite and its storage slot."""
    lines = _render_storage(rewrite)
    for block in (_render_read(rewrite), _render_write(rewrite), _render_modify(rewrite)):
        lines.append("")
        lines.extend(block)
    return lines


# =========================================================================
# RECORD SUPPORT
# =========================================================================


_COMPARISON_BODIES: Dict[ComparisonVariant, str] = {
    ComparisonVariant.ALWAYS: "True",
    ComparisonVariant.EQUATABLE: "lhs != rhs",
    ComparisonVariant.IDENTITY: "lhs is not rhs",
    ComparisonVariant.EQUATABLE_IDENTITY: "lhs != rhs",
}


def _render_identity(node: IdentityField, expansion: Expansion) -> List[str]:
    return [f"{node.name}: uuid.UUID"]


def _render_registrar(node: RegistrarField, expansion: Expansion) -> List[str]:
    return [f"{node.name}: ObservationRegistrar"]


def _render_construction(node: ConstructionHook, expansion: Expansion) -> List[str]:
    lines = [
        "def __new__(cls, *args, **kwargs):",
        f"{INDENT}self = super().__new__(cls)",
        f"{INDENT}self.{node.identity.name} = uuid.uuid4()",
        f"{INDENT}self.{node.registrar.name} = ObservationRegistrar()",
    ]
    for path in node.initializers:
        lines.append(f"{INDENT}self.{path.slot} = initial_value(cls.{path.slot})")
    lines.append(f"{INDENT}return self")
    return lines


def _render_copy(node: CopyMethod, expansion: Expansion) -> List[str]:
    slots = [rewrite.storage.name for rewrite in expansion.rewrites]
    lines = [
        f"def {node.name}(self):",
        f"{INDENT}duplicate = copy.copy(self)",
        f"{INDENT}duplicate.{node.identity.name} = uuid.uuid4()",
        f"{INDENT}duplicate.{node.registrar.name} = ObservationRegistrar()",
    ]
    if slots:
        # Containers are duplicated; nested observable values keep their identity
        slot_names = ", ".join(f'"{slot}"' for slot in slots)
        if len(slots) == 1:
            slot_names += ","
        lines += [
            f"{INDENT}for slot in ({slot_names}):",
            f"{INDENT * 2}value = getattr(self, slot)",
            f"{INDENT * 2}if not isinstance(value, ObservableValue):",
            f"{INDENT * 3}setattr(duplicate, slot, copy.copy(value))",
        ]
    lines.append(f"{INDENT}return duplicate")
    return lines


def _render_access(node: AccessMethod, expansion: Expansion) -> List[str]:
    return [
        f"def {node.name}(self, key_path):",
        f"{INDENT}self.{node.registrar.name}.access(self, key_path)",
    ]


def _render_with_mutation(node: WithMutationMethod, expansion: Expansion) -> List[str]:
    return [
        f"def {node.name}(self, key_path):",
        f"{INDENT}return self.{node.registrar.name}.with_mutation(self, key_path)",
    ]


def _render_should_notify(node: ShouldNotifyMethod, expansion: Expansion) -> List[str]:
    return [
        "@staticmethod",
        f"def {node.name}(lhs, rhs):",
        f"{INDENT}return {_COMPARISON_BODIES[node.variant]}",
    ]


_SUPPORT_RENDERERS = {
    IdentityField: _render_identity,
    RegistrarField: _render_registrar,
    ConstructionHook: _render_construction,
    CopyMethod: _render_copy,
    AccessMethod: _render_access,
    WithMutationMethod: _render_with_mutation,
    ShouldNotifyMethod: _render_should_notify,
}


def render_support_member(node: SynthesizedMember, expansion: Expansion) -> List[str]:
    """Lines (unindented) for one record support member."""
    renderer = _SUPPORT_RENDERERS.get(type(node))
    if renderer is None:
        raise TypeError(f"Unsupported synthesized member: {type(node).__name__}")
    return renderer(node, expansion)


def render_conformance(conformance: Conformance) -> str:
    return f"{conformance.capability}.register({conformance.declaration_name})"


# =========================================================================
# CLASSES AND FILES
# =========================================================================


def generate_class(expansion: Expansion) -> str:
    """
    Render one expansion as a class definition.

    Failed expansions are not rendered here; callers keep the original text.
    """
    declaration = expansion.declaration
    lines: List[str] = list(declaration.decorators)
    lines.append(declaration.header or f"class {declaration.name}:")

    # Multi-line items get a blank line on either side
    body: List[str] = []
    last_spaced = False
    for item in expansion.members:
        if isinstance(item, ObservedProperty):
            text = "\n".join(render_observed_property(item))
            spaced = True
        else:
            text = item.source
            spaced = "\n" in text and not text.startswith("#")
        if body and (spaced or last_spaced):
            body.append("")
        body.extend(_indent(text))
        last_spaced = spaced

    # Scalar fields stay together; methods are separated by blank lines
    previous_kind = None
    for node in expansion.synthesized:
        rendered = render_support_member(node, expansion)
        is_field = isinstance(node, (IdentityField, RegistrarField))
        if body and not (is_field and previous_kind == "field"):
            body.append("")
        body.extend(_indent("\n".join(rendered)))
        previous_kind = "field" if is_field else "method"

    if not body:
        body = _indent("pass")

    lines.extend(body)
    if expansion.conformance is not None:
        lines.append("")
        lines.append("")
        lines.append(render_conformance(expansion.conformance))
    return "\n".join(lines)


def _required_imports(expansions: List[Expansion], runtime_module: str) -> List[str]:
    rendered = [e for e in expansions if e.ok and (e.rewrites or e.synthesized)]
    if not rendered:
        return []

    needs_records = any(e.synthesized for e in rendered)
    needs_accessors = any(e.rewrites for e in rendered)
    paths = [r.initializer_path for e in rendered for r in e.rewrites]
    needs_initial_value = any(not path.lazy for path in paths)
    needs_instance_slot = any(path.lazy for path in paths)

    imports = []
    if needs_accessors:
        imports.append("import contextlib")
    if needs_records:
        imports.append("import copy")
        imports.append("import uuid")

    names = ["ObservableValue"]
    if needs_records:
        names.append("ObservationRegistrar")
    if needs_initial_value:
        names.append("initial_value")
    if needs_instance_slot:
        names.append("instance_slot")
    imports.append(f"from {runtime_module} import {', '.join(names)}")
    return imports


def expand_unit(unit: SourceUnit, config: Optional[EngineConfig] = None) -> Tuple[List[Expansion], List[Diagnostic]]:
    """
    Run the engine over every declaration of a parsed unit.

    A failing declaration contributes its diagnostic and never stops
    its siblings from being expanded.

    Returns:
        (expansions in source order, all diagnostics in source order)
    """
    config = config or EngineConfig()
    # Only declarations that will actually conform count as observable
    records = [
        parsed.declaration.name
        for parsed in unit.declarations
        if parsed.declaration.has_directive
        and not validate_declaration(parsed.declaration, directive=config.record_directive)
    ]
    resolver = config.resolver(observable_types=records)

    expansions: List[Expansion] = []
    diagnostics: List[Diagnostic] = []
    for parsed in unit.declarations:
        declaration = parsed.declaration
        if declaration.has_directive:
            expansion = expand_observable_value(declaration, resolver, directive=config.record_directive)
        else:
            expansion = expand_observing_members(declaration, resolver)
        expansions.append(expansion)
        diagnostics.extend(expansion.diagnostics)

    for member in unit.top_level_members:
        # Outside any declaration the binding is kept exactly as written
        result = expand_observing(member, enclosing=None, resolver=resolver)
        logger.debug("Top-level %r passed through: %s", member.name, result is member)

    return expansions, diagnostics


def generate_python(
    unit: SourceUnit,
    expansions: List[Expansion],
    config: Optional[EngineConfig] = None,
) -> str:
    """
    Splice rendered expansions into the original source.

    Classes with nothing to rewrite, and classes whose expansion failed,
    are kept byte-identical.
    """
    config = config or EngineConfig()
    lines = unit.source.splitlines()
    spans = {id(p.declaration): p for p in unit.declarations}

    # Replace from the bottom so earlier line numbers stay valid
    for expansion in sorted(
        expansions,
        key=lambda e: spans[id(e.declaration)].start_line,
        reverse=True,
    ):
        if not expansion.ok or not (expansion.rewrites or expansion.synthesized):
            continue
        parsed = spans[id(expansion.declaration)]
        rendered = generate_class(expansion).splitlines()
        lines[parsed.start_line - 1:parsed.end_line] = rendered
        logger.debug("Rendered %r (%d lines)", expansion.declaration.name, len(rendered))

    imports = _required_imports(expansions, config.runtime_module)
    if imports:
        at = unit.future_import_end
        block = imports + [""]
        if at:
            block = [""] + block
        lines[at:at] = block

    text = "\n".join(lines)
    return text + "\n" if unit.source.endswith("\n") else text


def expand_source(
    source: str,
    path: str = "<source>",
    config: Optional[EngineConfig] = None,
) -> Tuple[str, List[Diagnostic]]:
    """
    Parse, expand and render Python source in one step.

    Returns:
        (expanded source, diagnostics)

    Raises:
        SourceParseError: If the source is not valid Python
    """
    config = config or EngineConfig()
    unit = parse_source(source, path=path, config=config)
    expansions, diagnostics = expand_unit(unit, config)
    return generate_python(unit, expansions, config), diagnostics


def expand_file(
    filepath: Union[str, Path],
    config: Optional[EngineConfig] = None,
) -> Tuple[str, List[Diagnostic]]:
    """Like expand_source, reading from a file."""
    config = config or EngineConfig()
    unit = parse_file(filepath, config=config)
    expansions, diagnostics = expand_unit(unit, config)
    return generate_python(unit, expansions, config), diagnostics


def save_python_file(
    source_path: Union[str, Path],
    output_path: Union[str, Path],
    config: Optional[EngineConfig] = None,
) -> List[Diagnostic]:
    """
    Expand a source file and write the result.

    Returns:
        Diagnostics produced during expansion
    """
    text, diagnostics = expand_file(source_path, config=config)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(text)
    return diagnostics


__all__ = [
    "expand_file",
    "expand_source",
    "expand_unit",
    "generate_class",
    "generate_python",
    "render_observed_property",
    "save_python_file",
]
