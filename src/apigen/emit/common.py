from __future__ import annotations

import ast
import builtins
import json
from typing import Iterable

from apigen.domain.models import ContractFile, InterfaceSpec, MethodSpec

_BUILTINS = set(dir(builtins))
_TYPING_HELPERS = {"Optional"}

_VERB_SUMMARY = {
    "GET": "Fetches",
    "POST": "Creates",
    "PUT": "Updates",
    "DELETE": "Deletes",
}


def header(cf: ContractFile) -> list[str]:
    source = cf.source_file.replace("\\", "/").split("/")[-1]
    return [
        f"# Code generated by apigen from {source}. DO NOT EDIT.",
        "from __future__ import annotations",
        "",
    ]


def py_str(value: str) -> str:
    return json.dumps(value)


def type_names(type_text: str) -> set[str]:
    """Top-level names a type expression needs in scope (``models.Post`` -> ``models``)."""
    if not type_text:
        return set()
    try:
        tree = ast.parse(type_text, mode="eval")
    except SyntaxError:
        return set()
    out: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Name):
            out.add(node.id)
    return out


def uses_optional(type_texts: Iterable[str]) -> bool:
    return any("Optional" in type_names(t) for t in type_texts)


def contract_import(cf: ContractFile, names: Iterable[str]) -> list[str]:
    wanted = {n for n in names if n not in _BUILTINS and n not in _TYPING_HELPERS}
    if not wanted:
        return []
    module = f".{cf.module}" if cf.package_relative else cf.module
    return import_line(module, wanted)


def route_table(iface: InterfaceSpec) -> list[str]:
    """``ROUTES`` class attribute listing (verb, route) per method."""
    if not iface.methods:
        return ["    ROUTES: dict[str, tuple[str, str]] = {}"]
    lines = ["    ROUTES: dict[str, tuple[str, str]] = {"]
    for m in iface.methods:
        lines.append(f"        {py_str(m.name)}: ({py_str(m.http_method)}, {py_str(iface.route(m))}),")
    lines.append("    }")
    return lines


def summary(iface: InterfaceSpec, method: MethodSpec) -> str:
    verb = _VERB_SUMMARY.get(method.http_method, "Handles")
    return f"{verb} data via {method.http_method} {iface.route(method)}."


def import_line(module: str, names: Iterable[str], width: int = 88) -> list[str]:
    """``from module import a, b`` sorted classes-first, wrapped when too long."""
    ordered = sorted(set(names), key=lambda n: (not n[:1].isupper(), n))
    line = f"from {module} import {', '.join(ordered)}"
    if len(line) <= width:
        return [line]
    return [f"from {module} import ("] + [f"    {n}," for n in ordered] + [")"]
