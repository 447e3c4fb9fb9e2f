"""
Routing directives embedded in docstrings and comments:

  @client <Name>          on a contract class (required)
  @basepath <path>        on a contract class (optional)
  @route <VERB> <path>    on a contract method

Every pattern lives here; nothing else in the package matches directive text.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

HTTP_VERBS = ("GET", "POST", "PUT", "DELETE", "PATCH")

CLIENT_MARKER = "@client"

_CLIENT = re.compile(r"@client\s+(\w+)")
_BASEPATH = re.compile(r"@basepath\s+(\S+)")
_ROUTE = re.compile(r"@route\s+(" + "|".join(HTTP_VERBS) + r")\s+(\S+)")
_ROUTE_ANY = re.compile(r"@route\b")


@dataclass(frozen=True)
class ContractDirectives:
    client_name: Optional[str]
    base_path: str = ""


@dataclass(frozen=True)
class RouteDirective:
    verb: str
    path: str


def _last(pattern: re.Pattern[str], text: str) -> Optional[re.Match[str]]:
    # later directives override earlier ones
    found = None
    for m in pattern.finditer(text or ""):
        found = m
    return found


def parse_contract_directives(text: str) -> ContractDirectives:
    client = _last(_CLIENT, text)
    basepath = _last(_BASEPATH, text)
    return ContractDirectives(
        client_name=client.group(1) if client else None,
        base_path=basepath.group(1) if basepath else "",
    )


def parse_route_directive(text: str) -> Optional[RouteDirective]:
    m = _last(_ROUTE, text)
    if m is None:
        return None
    return RouteDirective(verb=m.group(1), path=m.group(2))


def has_malformed_route(text: str) -> bool:
    """True when ``@route`` is mentioned but never in a parseable form."""
    return bool(_ROUTE_ANY.search(text or "")) and _ROUTE.search(text or "") is None


def mentions_client(text: str) -> bool:
    return CLIENT_MARKER in (text or "")
