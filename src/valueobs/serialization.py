"""
Serialization helpers for valueobs declarations and expansions.

Declarations round-trip through a plain dict, so a host in another process
can hand the engine a parsed declaration as JSON or YAML. Expansions
serialize one way, as a report.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List

import yaml

from valueobs.model import (
    Declaration,
    DeclarationKind,
    Diagnostic,
    Directive,
    Member,
    Passthrough,
    Severity,
    SourceLocation,
    StorageForm,
)
from valueobs.syntax import (
    Conformance,
    ConstructionHook,
    CopyMethod,
    Expansion,
    ObservedProperty,
    ShouldNotifyMethod,
    SynthesizedMember,
)


def location_to_dict(loc: SourceLocation) -> Dict[str, int]:
    return {"line": loc.line, "column": loc.column}


def location_from_dict(d: Dict[str, Any] | None) -> SourceLocation:
    if d is None:
        return SourceLocation()
    return SourceLocation(line=d.get("line", 1), column=d.get("column", 1))


def member_to_dict(m: Member) -> Dict[str, Any]:
    return {
        "type": "member",
        "name": m.name,
        "annotation": m.annotation,
        "initializer": m.initializer,
        "storage_form": m.storage_form.value,
        "directive": m.directive.value,
        "location": location_to_dict(m.location),
        "source": m.source,
    }


def member_from_dict(d: Dict[str, Any]) -> Member:
    return Member(
        name=d["name"],
        annotation=d.get("annotation"),
        initializer=d.get("initializer"),
        storage_form=StorageForm(d.get("storage_form", StorageForm.STORED_WITH_INITIALIZER.value)),
        directive=Directive(d.get("directive", Directive.NONE.value)),
        location=location_from_dict(d.get("location")),
        source=d.get("source", ""),
    )


def passthrough_to_dict(p: Passthrough) -> Dict[str, Any]:
    return {"type": "passthrough", "source": p.source, "location": location_to_dict(p.location)}


def passthrough_from_dict(d: Dict[str, Any]) -> Passthrough:
    return Passthrough(source=d["source"], location=location_from_dict(d.get("location")))


def body_item_to_dict(item: Any) -> Dict[str, Any]:
    if isinstance(item, Member):
        return member_to_dict(item)
    if isinstance(item, Passthrough):
        return passthrough_to_dict(item)
    if isinstance(item, ObservedProperty):
        return observed_property_to_dict(item)
    raise TypeError(f"Unsupported body item type: {type(item)}")


def body_item_from_dict(d: Dict[str, Any]) -> Any:
    t = d.get("type", "member")
    if t == "member":
        return member_from_dict(d)
    if t == "passthrough":
        return passthrough_from_dict(d)
    raise TypeError(f"Unsupported body item dict type: {t}")


def declaration_to_dict(decl: Declaration) -> Dict[str, Any]:
    return {
        "name": decl.name,
        "kind": decl.kind.value,
        "body": [body_item_to_dict(item) for item in decl.body],
        "location": location_to_dict(decl.location),
        "has_directive": decl.has_directive,
        "header": decl.header,
        "decorators": list(decl.decorators),
    }


def declaration_from_dict(d: Dict[str, Any]) -> Declaration:
    return Declaration(
        name=d["name"],
        kind=DeclarationKind(d.get("kind", DeclarationKind.RECORD.value)),
        body=tuple(body_item_from_dict(item) for item in d.get("body", [])),
        location=location_from_dict(d.get("location")),
        has_directive=d.get("has_directive", False),
        header=d.get("header", ""),
        decorators=tuple(d.get("decorators", [])),
    )


def diagnostic_to_dict(diag: Diagnostic) -> Dict[str, Any]:
    return {
        "message": diag.message,
        "location": location_to_dict(diag.location),
        "severity": diag.severity.value,
        "code": diag.code,
    }


def diagnostic_from_dict(d: Dict[str, Any]) -> Diagnostic:
    return Diagnostic(
        message=d["message"],
        location=location_from_dict(d.get("location")),
        severity=Severity(d.get("severity", Severity.ERROR.value)),
        code=d.get("code", ""),
    )


def observed_property_to_dict(p: ObservedProperty) -> Dict[str, Any]:
    return {
        "type": "observed",
        "name": p.name,
        "annotation": p.annotation,
        "storage": p.storage.name,
        "initializer": p.initializer_path.initializer,
        "lazy": p.initializer_path.lazy,
        "comparison": p.write_path.comparison.value,
        "modify": p.modify_path.method,
    }


def synthesized_to_dict(node: SynthesizedMember) -> Dict[str, Any]:
    d: Dict[str, Any] = {"kind": type(node).__name__, "name": getattr(node, "name", None)}
    if isinstance(node, ShouldNotifyMethod):
        d["variant"] = node.variant.value
    if isinstance(node, ConstructionHook):
        d["initializes"] = [path.slot for path in node.initializers]
    if isinstance(node, CopyMethod):
        d["fresh"] = [node.identity.name, node.registrar.name]
    return d


def conformance_to_dict(c: Conformance | None) -> Dict[str, str] | None:
    if c is None:
        return None
    return {"declaration": c.declaration_name, "capability": c.capability}


def expansion_to_dict(e: Expansion) -> Dict[str, Any]:
    return {
        "declaration": e.declaration.name,
        "kind": e.declaration.kind.value,
        "ok": e.ok,
        "members": [body_item_to_dict(item) for item in e.members],
        "synthesized": [synthesized_to_dict(node) for node in e.synthesized],
        "conformance": conformance_to_dict(e.conformance),
        "diagnostics": [diagnostic_to_dict(d) for d in e.diagnostics],
    }


def report_to_dict(expansions: List[Expansion], path: str = "<source>") -> Dict[str, Any]:
    return {
        "path": path,
        "declarations": [expansion_to_dict(e) for e in expansions],
    }


def declaration_to_json(decl: Declaration) -> str:
    return json.dumps(declaration_to_dict(decl), sort_keys=True)


def declaration_from_json(s: str) -> Declaration:
    d = json.loads(s)
    return declaration_from_dict(d)


def declaration_to_yaml(decl: Declaration) -> str:
    return yaml.safe_dump(declaration_to_dict(decl))


def declaration_from_yaml(s: str) -> Declaration:
    d = yaml.safe_load(s)
    return declaration_from_dict(d)


def report_to_json(expansions: List[Expansion], path: str = "<source>") -> str:
    return json.dumps(report_to_dict(expansions, path), sort_keys=True, indent=2)


def report_to_yaml(expansions: List[Expansion], path: str = "<source>") -> str:
    return yaml.safe_dump(report_to_dict(expansions, path), sort_keys=False)
