from __future__ import annotations

import logging
from typing import Optional

from apigen.domain.models import (
    ContractFile,
    Diagnostic,
    InterfaceSpec,
    MethodSpec,
    PathParam,
    PrimitiveKind,
)
from apigen.extractors.contract.declarations import (
    ContractDecl,
    MethodDecl,
    ModuleDecls,
    TypeRef,
)
from apigen.ir.pathtemplate import placeholders

logger = logging.getLogger(__name__)

PRIMITIVE_TYPES = {"int", "str", "float", "bool", "bytes"}
_UNSUPPORTED_DECORATORS = {"staticmethod", "classmethod", "property"}
# attributes of the generated client base class
_RESERVED_NAMES = {"close", "config", "url_for"}


class MethodRejected(Exception):
    """A routed method whose signature cannot be turned into an endpoint."""


def build_contract_file(decls: ModuleDecls, module: str, package_relative: bool = False) -> ContractFile:
    """
    ModuleDecls -> ContractFile (the IR shared by both emitters).

    Pure transform: no I/O. Declaration order is preserved so generated output
    is deterministic.
    """
    diagnostics: list[Diagnostic] = []

    for skipped in decls.skipped:
        diagnostics.append(
            Diagnostic(
                severity="info",
                file=decls.filename,
                line=skipped.line,
                contract=skipped.name,
                message=f"skipped: {skipped.reason}",
            )
        )

    interfaces: list[InterfaceSpec] = []
    client_names: dict[str, str] = {}
    routes_seen: dict[tuple[str, str], str] = {}

    for contract in decls.contracts:
        if contract.client_name in client_names:
            diagnostics.append(
                _diag(
                    "warning",
                    decls.filename,
                    contract.line,
                    contract.name,
                    None,
                    f"client name {contract.client_name} already used by {client_names[contract.client_name]}",
                )
            )
            continue
        client_names[contract.client_name] = contract.name

        iface = build_interface(contract, decls.filename, diagnostics)

        # two methods answering the same request would make one unreachable
        kept: list[MethodSpec] = []
        for m in iface.methods:
            key = (m.http_method, iface.route(m))
            if key in routes_seen:
                diagnostics.append(
                    _diag(
                        "warning",
                        decls.filename,
                        m.line,
                        contract.name,
                        m.name,
                        f"route {key[0]} {key[1]} already registered by {routes_seen[key]}",
                    )
                )
                continue
            routes_seen[key] = f"{contract.name}.{m.name}"
            kept.append(m)
        iface.methods = kept

        interfaces.append(iface)

    return ContractFile(
        source_file=decls.filename,
        module=module,
        package_relative=package_relative,
        interfaces=interfaces,
        diagnostics=diagnostics,
    )


def build_interface(contract: ContractDecl, filename: str, diagnostics: list[Diagnostic]) -> InterfaceSpec:
    iface = InterfaceSpec(
        name=contract.name,
        client_name=contract.client_name,
        base_path=contract.base_path,
        line=contract.line,
    )

    for decl in contract.methods:
        if decl.route is None:
            reason = "unparseable @route directive" if decl.malformed_route else "no @route directive"
            diagnostics.append(_diag("info", filename, decl.line, contract.name, decl.name, f"skipped: {reason}"))
            continue
        try:
            iface.methods.append(build_method(decl))
        except MethodRejected as exc:
            logger.debug("rejected %s.%s: %s", contract.name, decl.name, exc)
            diagnostics.append(_diag("warning", filename, decl.line, contract.name, decl.name, str(exc)))

    return iface


def build_method(decl: MethodDecl) -> MethodSpec:
    """
    Classify parameters and the return shape of one routed method.

    Placeholders in the route path decide which parameters are path-bound; the
    single remaining parameter (if any) is the payload.
    """
    if decl.route is None:
        raise MethodRejected("no @route directive")

    bad = [d for d in decl.decorators if d.split(".")[-1] in _UNSUPPORTED_DECORATORS]
    if bad:
        raise MethodRejected(f"@{bad[0]} methods cannot be routed")
    if decl.name.startswith("_") or decl.name in _RESERVED_NAMES:
        raise MethodRejected(f"method name {decl.name} is reserved")
    if decl.has_varargs:
        raise MethodRejected("*args/**kwargs are not supported")
    if not decl.params:
        raise MethodRejected("missing context parameter")

    path = decl.route.path
    names = placeholders(path)
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise MethodRejected(f"placeholder {{{dupes[0]}}} appears more than once in {path}")
    wanted = set(names)

    path_params: list[PathParam] = []
    order: list[str] = []
    body_name = ""
    body_type = ""

    # params[0] is the cancellation/deadline context
    for p in decl.params[1:]:
        if p.keyword_only:
            raise MethodRejected(f"keyword-only parameter {p.name} is not supported")
        order.append(p.name)

        if p.name in wanted:
            path_params.append(PathParam(name=p.name, kind=_path_kind(p.annotation)))
            continue

        if body_name:
            raise MethodRejected(f"more than one payload parameter ({body_name}, {p.name})")
        if p.annotation is None:
            raise MethodRejected(f"payload parameter {p.name} has no type annotation")
        if p.annotation.kind == "plain" and p.annotation.text in PRIMITIVE_TYPES:
            raise MethodRejected(
                f"parameter {p.name}: {p.annotation.text} matches no placeholder in {path} "
                "and a payload must be an aggregate type"
            )
        if p.annotation.kind == "none":
            raise MethodRejected(f"payload parameter {p.name} cannot be None")
        if p.annotation.kind == "optional":
            raise MethodRejected(f"payload parameter {p.name}: {p.annotation.text} cannot be optional")
        body_name = p.name
        body_type = p.annotation.text

    bound = {p.name for p in path_params}
    missing = [n for n in names if n not in bound]
    if missing:
        raise MethodRejected(f"placeholder {{{missing[0]}}} in {path} has no matching parameter")

    spec = MethodSpec(
        name=decl.name,
        http_method=decl.route.verb,  # type: ignore[arg-type]
        path=path,
        line=decl.line,
        is_async=decl.is_async,
        path_params=path_params,
        param_order=order,
        has_body=bool(body_name),
        body_param=body_name,
        body_type=body_type,
    )
    _apply_return_shape(spec, decl.returns)
    return spec


def _path_kind(annotation: Optional[TypeRef]) -> PrimitiveKind:
    if annotation is not None and annotation.kind == "plain" and annotation.text == "int":
        return PrimitiveKind.INTEGER
    return PrimitiveKind.STRING


def _apply_return_shape(spec: MethodSpec, returns: Optional[TypeRef]) -> None:
    if returns is None or returns.kind == "none":
        return  # error-only

    if returns.kind == "nested":
        raise MethodRejected(f"return type {returns.text} is not supported")

    spec.has_return = True
    spec.return_type = returns.name
    spec.is_pointer = returns.kind == "optional"
    spec.is_slice = returns.kind == "sequence"


def _diag(
    severity: str,
    filename: str,
    line: int,
    contract: str,
    method: Optional[str],
    message: str,
) -> Diagnostic:
    return Diagnostic(
        severity=severity,  # type: ignore[arg-type]
        file=filename,
        line=line,
        contract=contract,
        method=method,
        message=message,
    )
