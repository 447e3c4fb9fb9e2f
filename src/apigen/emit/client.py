from __future__ import annotations

from apigen.domain.models import ContractFile, InterfaceSpec, MethodSpec
from apigen.emit.common import (
    contract_import,
    header,
    py_str,
    route_table,
    summary,
    type_names,
    uses_optional,
)


def render_client(cf: ContractFile) -> str:
    """
    One BaseClient subclass per interface. Methods take path parameters first
    (declaration order) then the payload; path values are handed over keyed by
    placeholder name so the runtime never pairs them by position.
    """
    type_texts = [m.response_type for i in cf.interfaces for m in i.methods]
    type_texts += [m.body_type for i in cf.interfaces for m in i.methods if m.has_body]

    lines = header(cf)
    if uses_optional(type_texts):
        lines.append("from typing import Optional")
        lines.append("")
    lines.append("from apigen.runtime.client import BaseClient")

    names: set[str] = set()
    for t in type_texts:
        names |= type_names(t)
    imports = contract_import(cf, names)
    if imports:
        lines.append("")
        lines.extend(imports)

    for iface in cf.interfaces:
        lines.append("")
        lines.append("")
        lines.extend(_client_class(iface))

    return "\n".join(lines) + "\n"


def _client_class(iface: InterfaceSpec) -> list[str]:
    lines = [
        f"class {iface.client_name}(BaseClient):",
        f'    """Client for {iface.name}."""',
        "",
        f"    default_base_path = {py_str(iface.base_path)}",
        "",
    ]
    lines.extend(route_table(iface))
    for m in iface.methods:
        lines.append("")
        lines.extend(_client_method(iface, m))
    return lines


def _client_method(iface: InterfaceSpec, m: MethodSpec) -> list[str]:
    args = ["self"] + [f"{p.name}: {p.kind.value}" for p in m.path_params]
    if m.has_body:
        args.append(f"{m.body_param}: {m.body_type}")

    values = ", ".join(f"{py_str(p.name)}: {p.name}" for p in m.path_params)
    call = [py_str(m.http_method), py_str(m.path), "{" + values + "}"]

    lines = [
        f"    def {m.name}({', '.join(args)}) -> {m.response_type}:",
        f'        """{summary(iface, m)}"""',
    ]

    if not m.has_return:
        if m.has_body:
            call.append(f"body={m.body_param}")
        lines.append(f"        self._send({', '.join(call)})")
        return lines

    response = f"list[{m.return_type}]" if m.is_slice else m.return_type
    call.append(response)
    if m.has_body:
        call.append(f"body={m.body_param}")
    if m.is_pointer:
        call.append("optional=True")
    lines.append(f"        return self._fetch({', '.join(call)})")
    return lines
