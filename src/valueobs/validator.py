"""
Validator for the record-level directive.

Two rules, checked in order:
    1. Only record declarations can host per-instance identity and
       mutation semantics.
    2. A record must not also be a dataclass. The dataclass decorator
       builds `__init__` from the class annotations, which the expansion
       replaces with private slots and properties.

A rejected declaration gets exactly one positioned error.
"""

from typing import List

from valueobs.model import Declaration, DeclarationKind, Diagnostic, Severity


UNSUPPORTED_DECLARATION_KIND = "unsupported-declaration-kind"
UNSUPPORTED_DATACLASS = "unsupported-dataclass"

_DATACLASS_DECORATORS = {"dataclass"}


def _decorator_name(decorator: str) -> str:
    """`@dataclasses.dataclass(frozen=True)` -> `dataclass`"""
    return decorator.lstrip("@").split("(", 1)[0].rsplit(".", 1)[-1].strip()


def is_dataclass_declaration(declaration: Declaration) -> bool:
    return any(_decorator_name(d) in _DATACLASS_DECORATORS for d in declaration.decorators)


def _error(declaration: Declaration, message: str, code: str) -> List[Diagnostic]:
    return [
        Diagnostic(
            message=message,
            location=declaration.location,
            severity=Severity.ERROR,
            code=code,
        )
    ]


def validate_declaration(declaration: Declaration, directive: str = "observable_value") -> List[Diagnostic]:
    """
    Check that the record-level directive may be applied to `declaration`.

    Args:
        declaration: The declaration carrying the directive
        directive: Directive name as written (used in the message)

    Returns:
        Empty list when valid, otherwise a single ERROR diagnostic
        positioned at the directive's attachment point
    """
    if declaration.kind != DeclarationKind.RECORD:
        message = (
            f"'@{directive}' cannot be applied to "
            f"{declaration.kind.value} type '{declaration.name}'"
        )
        return _error(declaration, message, UNSUPPORTED_DECLARATION_KIND)

    if is_dataclass_declaration(declaration):
        message = f"'@{directive}' cannot be applied to dataclass '{declaration.name}'"
        return _error(declaration, message, UNSUPPORTED_DATACLASS)

    return []
