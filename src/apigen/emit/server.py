from __future__ import annotations

from apigen.domain.models import ContractFile, InterfaceSpec, MethodSpec
from apigen.emit.common import (
    contract_import,
    header,
    import_line,
    py_str,
    route_table,
    summary,
    type_names,
    uses_optional,
)

_RUNTIME = [
    "RouteDispatcher",
    "error_response",
    "invoke",
    "json_response",
    "no_content",
    "path_param",
    "read_body",
]


def render_server(cf: ContractFile) -> str:
    """
    One RouteDispatcher subclass per interface, registering
    ``(VERB, BasePath + Path)`` for every method with the same template text
    the client emitter uses.
    """
    methods = [m for i in cf.interfaces for m in i.methods]
    runtime = set(_RUNTIME)
    if not any(m.has_body for m in methods):
        runtime.discard("read_body")
    if not any(m.path_params for m in methods):
        runtime.discard("path_param")
    if not any(m.has_return for m in methods):
        runtime.discard("json_response")
    if all(m.has_return for m in methods):
        runtime.discard("no_content")

    lines = header(cf)
    if uses_optional(m.body_type for m in methods if m.has_body):
        lines.append("from typing import Optional")
        lines.append("")
    lines.append("from fastapi import APIRouter, Request, Response")
    lines.append("")
    if any(m.is_pointer for m in methods):
        lines.append("from apigen.runtime.errors import not_found")
    lines.extend(import_line("apigen.runtime.server", runtime))

    names: set[str] = {i.name for i in cf.interfaces}
    for m in methods:
        if m.has_body:
            names |= type_names(m.body_type)
    imports = contract_import(cf, names)
    if imports:
        lines.append("")
        lines.extend(imports)

    for iface in cf.interfaces:
        lines.append("")
        lines.append("")
        lines.extend(_handler_class(iface))

    return "\n".join(lines) + "\n"


def _handler_class(iface: InterfaceSpec) -> list[str]:
    lines = [
        f"class {iface.name}Handler(RouteDispatcher):",
        f'    """HTTP handlers for a {iface.name} implementation."""',
        "",
    ]
    lines.extend(route_table(iface))
    lines += [
        "",
        f"    def __init__(self, service: {iface.name}) -> None:",
        "        super().__init__()",
        "        self.service = service",
        "",
        "    def register_routes(self, router: APIRouter) -> None:",
        f'        """Register every {iface.name} route on ``router`` (an APIRouter or FastAPI app)."""',
    ]
    for m in iface.methods:
        lines += [
            "        router.add_api_route(",
            f"            {py_str(iface.route(m))},",
            f"            self._wrap(self._handle_{m.name}),",
            f"            methods=[{py_str(m.http_method)}],",
            f"            name={py_str(f'{iface.name}.{m.name}')},",
            "        )",
        ]
    lines.append("        self.register_preflight(router)")

    for m in iface.methods:
        lines.append("")
        lines.extend(_handler_method(iface, m))
    return lines


def _handler_method(iface: InterfaceSpec, m: MethodSpec) -> list[str]:
    lines = [
        f"    async def _handle_{m.name}(self, _request: Request) -> Response:",
        f'        """{summary(iface, m)}"""',
        "        try:",
    ]
    for p in m.path_params:
        lines.append(f"            {p.name} = path_param(_request, {py_str(p.name)}, {py_str(p.kind.value)})")
    if m.has_body:
        lines.append(f"            {m.body_param} = await read_body(_request, {m.body_type})")

    args = ", ".join([f"self.service.{m.name}", "_request"] + m.param_order)
    target = "_result = " if m.has_return else ""
    lines.append(f"            {target}await invoke({args})")
    lines += [
        "        except Exception as _exc:",
        "            return error_response(_exc)",
    ]

    if not m.has_return:
        lines.append("        return no_content()")
        return lines
    if m.is_pointer:
        lines += [
            "        if _result is None:",
            f"            return error_response(not_found({py_str(f'{m.return_type} not found')}))",
        ]
    lines.append("        return json_response(_result)")
    return lines
