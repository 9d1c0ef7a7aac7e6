"""
Source Parser for valueobs (Layer 1: Python source → Declaration model).

Reads Python source with the `ast` module and builds Declaration objects
for the engine.

Source conventions:
    @observable_value              record-level directive on a class
    name: Observing[T] = value     explicit OBSERVING directive
    name: Ignoring[T] = value      IGNORING directive
    name: Final[T] = value         stored constant (also ClassVar, UPPER_CASE)
    name: T                        declared only, no initializer
    @property def name(self)       computed member

Base classes decide the declaration kind:
    Enum, IntEnum, StrEnum, Flag, IntFlag  -> enumeration
    NamedTuple                             -> named tuple
    Protocol                               -> protocol
    anything else                          -> record

Only module-level classes are considered. Nested classes are carried
through verbatim.
"""

from __future__ import annotations

import ast
import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from valueobs.config import EngineConfig
from valueobs.model import (
    BodyItem,
    Declaration,
    DeclarationKind,
    Directive,
    Member,
    Passthrough,
    SourceLocation,
    StorageForm,
)


logger = logging.getLogger(__name__)


class SourceParseError(ValueError):
    """Raised when source text is not valid Python."""
    pass


_ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag", "ReprEnum"}
_NAMED_TUPLE_BASES = {"NamedTuple"}
_PROTOCOL_BASES = {"Protocol"}
_CONSTANT_WRAPPERS = {"Final", "ClassVar"}
_COMPUTED_DECORATORS = {"property", "cached_property"}


@dataclass
class ParsedDeclaration:
    """
    A module-level class and where it sits in the source.

    Properties:
        declaration: The Declaration model
        start_line: First line, decorators included (1-based)
        end_line: Last line (1-based, inclusive)
    """

    declaration: Declaration
    start_line: int
    end_line: int


@dataclass
class SourceUnit:
    """
    One parsed source file.

    Properties:
        source: Original text
        path: Name used in diagnostics
        declarations: Module-level classes, in source order
        top_level_members: Module-level bindings carrying a directive marker
        future_import_end: Line after which generated imports may be inserted
    """

    source: str
    path: str = "<source>"
    declarations: List[ParsedDeclaration] = field(default_factory=list)
    top_level_members: List[Member] = field(default_factory=list)
    future_import_end: int = 0


def _name_of(node: ast.expr) -> Optional[str]:
    """Trailing identifier of a Name / Attribute / Call / Subscript."""
    if isinstance(node, ast.Call):
        return _name_of(node.func)
    if isinstance(node, ast.Subscript):
        return _name_of(node.value)
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Name):
        return node.id
    return None


def _location(node: ast.AST) -> SourceLocation:
    return SourceLocation(line=node.lineno, column=node.col_offset + 1)


def _first_line(node: ast.stmt) -> int:
    decorators = getattr(node, "decorator_list", None) or []
    return min([node.lineno] + [d.lineno for d in decorators])


class _Reader:
    """Slices verbatim text out of the source."""

    def __init__(self, source: str):
        self.source = source
        self.lines = source.splitlines()

    def block(self, start: int, end: int, indent: int) -> str:
        """Lines start..end (1-based, inclusive) with `indent` columns removed."""
        result = []
        for line in self.lines[start - 1:end]:
            prefix = line[:indent]
            result.append(line[indent:] if not prefix.strip() else line.lstrip())
        return "\n".join(result)

    def segment(self, node: ast.AST) -> str:
        return ast.get_source_segment(self.source, node) or ast.unparse(node)


def _declaration_kind(node: ast.ClassDef) -> DeclarationKind:
    for base in node.bases:
        name = _name_of(base)
        if name in _ENUM_BASES:
            return DeclarationKind.ENUMERATION
        if name in _NAMED_TUPLE_BASES:
            return DeclarationKind.NAMED_TUPLE
        if name in _PROTOCOL_BASES:
            return DeclarationKind.PROTOCOL
    return DeclarationKind.RECORD


def _class_header(node: ast.ClassDef) -> str:
    arguments = [ast.unparse(base) for base in node.bases]
    arguments += [ast.unparse(keyword) for keyword in node.keywords]
    if arguments:
        return f"class {node.name}({', '.join(arguments)}):"
    return f"class {node.name}:"


def _unwrap_annotation(annotation: ast.expr, config: EngineConfig) -> Tuple[Directive, Optional[ast.expr], bool]:
    """
    Strip directive and constant wrappers from an annotation.

    Returns:
        (directive, remaining annotation node or None, is_constant)
    """
    directive = Directive.NONE
    is_constant = False
    node: Optional[ast.expr] = annotation

    while node is not None:
        name = _name_of(node)
        if name == config.observing_marker and directive == Directive.NONE:
            directive = Directive.OBSERVING
        elif name == config.ignoring_marker and directive == Directive.NONE:
            directive = Directive.IGNORING
        elif name in _CONSTANT_WRAPPERS:
            is_constant = True
        else:
            break
        # Bare wrapper (`Final`) carries no inner type
        node = node.slice if isinstance(node, ast.Subscript) else None

    return directive, node, is_constant


def _member_from_annotated(stmt: ast.AnnAssign, reader: _Reader, indent: int, config: EngineConfig) -> Optional[Member]:
    if not isinstance(stmt.target, ast.Name):
        return None
    name = stmt.target.id
    directive, inner, is_constant = _unwrap_annotation(stmt.annotation, config)

    if stmt.value is None:
        storage = StorageForm.DECLARED_ONLY
    elif is_constant or name.isupper():
        storage = StorageForm.STORED_CONSTANT
    else:
        storage = StorageForm.STORED_WITH_INITIALIZER

    return Member(
        name=name,
        annotation=reader.segment(inner) if inner is not None else None,
        initializer=reader.segment(stmt.value) if stmt.value is not None else None,
        storage_form=storage,
        directive=directive,
        location=_location(stmt),
        source=reader.block(stmt.lineno, stmt.end_lineno, indent),
    )


def _member_from_assign(stmt: ast.Assign, reader: _Reader, indent: int) -> Optional[Member]:
    if len(stmt.targets) != 1 or not isinstance(stmt.targets[0], ast.Name):
        warnings.warn(
            f"Line {stmt.lineno}: multiple or destructuring assignment is passed through unobserved",
            UserWarning,
        )
        return None
    name = stmt.targets[0].id
    return Member(
        name=name,
        annotation=None,
        initializer=reader.segment(stmt.value),
        storage_form=StorageForm.STORED_CONSTANT if name.isupper() else StorageForm.STORED_WITH_INITIALIZER,
        directive=Directive.NONE,
        location=_location(stmt),
        source=reader.block(stmt.lineno, stmt.end_lineno, indent),
    )


def _member_from_function(stmt: ast.FunctionDef, reader: _Reader, indent: int) -> Optional[Member]:
    if not any(_name_of(d) in _COMPUTED_DECORATORS for d in stmt.decorator_list):
        return None
    return Member(
        name=stmt.name,
        annotation=reader.segment(stmt.returns) if stmt.returns is not None else None,
        initializer=None,
        storage_form=StorageForm.COMPUTED,
        directive=Directive.NONE,
        location=_location(stmt),
        source=reader.block(_first_line(stmt), stmt.end_lineno, indent),
    )


def _parse_body(node: ast.ClassDef, reader: _Reader, config: EngineConfig) -> List[BodyItem]:
    """Turn a class body into members and passthrough statements."""
    indent = node.body[0].col_offset
    items: List[BodyItem] = []
    previous_end = node.lineno

    for stmt in node.body:
        start = _first_line(stmt)

        # Comments between statements survive as passthrough text
        gap = [
            line.strip()
            for line in reader.lines[previous_end:start - 1]
            if line.strip().startswith("#")
        ]
        if gap:
            items.append(Passthrough(source="\n".join(gap), location=SourceLocation(line=previous_end + 1)))
        previous_end = stmt.end_lineno

        member: Optional[Member] = None
        if isinstance(stmt, ast.AnnAssign):
            member = _member_from_annotated(stmt, reader, indent, config)
        elif isinstance(stmt, ast.Assign):
            member = _member_from_assign(stmt, reader, indent)
        elif isinstance(stmt, ast.FunctionDef):
            member = _member_from_function(stmt, reader, indent)

        if member is not None:
            items.append(member)
        else:
            items.append(
                Passthrough(
                    source=reader.block(start, stmt.end_lineno, indent),
                    location=_location(stmt),
                )
            )
    return items


def _parse_class(node: ast.ClassDef, reader: _Reader, config: EngineConfig) -> ParsedDeclaration:
    directive_node = None
    other_decorators = []
    for decorator in node.decorator_list:
        if directive_node is None and _name_of(decorator) == config.record_directive:
            directive_node = decorator
        else:
            other_decorators.append("@" + reader.segment(decorator))

    if directive_node is not None:
        # col_offset points past the '@'; as a 1-based column it is the '@' itself
        location = SourceLocation(line=directive_node.lineno, column=max(directive_node.col_offset, 1))
    else:
        location = _location(node)

    declaration = Declaration(
        name=node.name,
        kind=_declaration_kind(node),
        body=tuple(_parse_body(node, reader, config)),
        location=location,
        has_directive=directive_node is not None,
        header=_class_header(node),
        decorators=tuple(other_decorators),
    )
    logger.debug(
        "Parsed %s %r (%d members, directive=%s)",
        declaration.kind.value, declaration.name, len(declaration.members), declaration.has_directive,
    )
    return ParsedDeclaration(declaration=declaration, start_line=_first_line(node), end_line=node.end_lineno)


def _future_import_end(tree: ast.Module) -> int:
    """Last line of the module docstring and `from __future__` imports."""
    end = 0
    for index, stmt in enumerate(tree.body):
        is_docstring = (
            index == 0
            and isinstance(stmt, ast.Expr)
            and isinstance(stmt.value, ast.Constant)
            and isinstance(stmt.value.value, str)
        )
        is_future = isinstance(stmt, ast.ImportFrom) and stmt.module == "__future__"
        if not (is_docstring or is_future):
            break
        end = stmt.end_lineno
    return end


def parse_source(source: str, path: str = "<source>", config: Optional[EngineConfig] = None) -> SourceUnit:
    """
    Parse Python source into a SourceUnit.

    Args:
        source: Python source text
        path: Name used in diagnostics
        config: Marker names (defaults if omitted)

    Returns:
        SourceUnit with one ParsedDeclaration per module-level class

    Raises:
        SourceParseError: If the source is not valid Python
    """
    config = config or EngineConfig()
    try:
        tree = ast.parse(source, filename=path)
    except SyntaxError as e:
        raise SourceParseError(f"{path}:{e.lineno}: {e.msg}")

    reader = _Reader(source)
    unit = SourceUnit(source=source, path=path, future_import_end=_future_import_end(tree))

    for stmt in tree.body:
        if isinstance(stmt, ast.ClassDef):
            unit.declarations.append(_parse_class(stmt, reader, config))
        elif isinstance(stmt, ast.AnnAssign):
            member = _member_from_annotated(stmt, reader, 0, config)
            if member is not None and member.directive != Directive.NONE:
                unit.top_level_members.append(member)

    return unit


def parse_file(filepath: Union[str, Path], config: Optional[EngineConfig] = None) -> SourceUnit:
    """
    Parse a Python file into a SourceUnit.

    Raises:
        FileNotFoundError: If file doesn't exist
        SourceParseError: If parsing fails
    """
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            content = f.read()
    except FileNotFoundError:
        raise FileNotFoundError(f"Source file not found: {filepath}")

    return parse_source(content, path=str(filepath), config=config)


__all__ = [
    "ParsedDeclaration",
    "SourceParseError",
    "SourceUnit",
    "parse_file",
    "parse_source",
]
