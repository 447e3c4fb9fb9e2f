from __future__ import annotations

import ast
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from apigen.domain.errors import ContractParseError
from apigen.extractors.contract.directives import (
    RouteDirective,
    has_malformed_route,
    parse_contract_directives,
    parse_route_directive,
)

_CONTRACT_BASES = {"Protocol", "ABC"}
_SEQUENCE_NAMES = {"list", "List", "Sequence", "MutableSequence"}


@dataclass(frozen=True)
class TypeRef:
    """
    Canonical view of an annotation.

    kind:
      none      -> None
      plain     -> Post, models.Post, dict[str, int]
      optional  -> Optional[Post]  (also Post | None, Union[Post, None])
      sequence  -> list[Post]      (also List[Post], Sequence[Post])
      nested    -> anything that stacks the two, e.g. Optional[list[Post]]
    name is the element type, text the canonical full spelling.
    """

    kind: str
    name: str
    text: str


@dataclass(frozen=True)
class ParamDecl:
    name: str
    annotation: Optional[TypeRef]
    line: int
    keyword_only: bool = False


@dataclass(frozen=True)
class MethodDecl:
    name: str
    line: int
    is_async: bool
    params: tuple[ParamDecl, ...]
    returns: Optional[TypeRef]
    route: Optional[RouteDirective]
    malformed_route: bool = False
    has_varargs: bool = False
    decorators: tuple[str, ...] = ()


@dataclass(frozen=True)
class ContractDecl:
    name: str
    line: int
    client_name: str
    base_path: str
    methods: tuple[MethodDecl, ...]


@dataclass(frozen=True)
class SkippedDecl:
    name: str
    line: int
    reason: str


@dataclass
class ModuleDecls:
    filename: str
    contracts: list[ContractDecl] = field(default_factory=list)
    skipped: list[SkippedDecl] = field(default_factory=list)


def extract_contracts_from_source(source: str, filename: str = "<string>") -> ModuleDecls:
    """
    Find service contracts in Python source:

      class PostsAPI(Protocol):
          '''
          @client PostsClient
          @basepath /api/posts
          '''

          def get_by_id(self, ctx, id: int) -> Optional[Post]:
              '''@route GET /{id}'''

    Uses ast only; does not import/execute code. Unparseable source raises
    ContractParseError.
    """
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as exc:
        raise ContractParseError(filename, exc) from exc

    lines = source.splitlines()
    out = ModuleDecls(filename=filename)

    for node in tree.body:
        if not isinstance(node, ast.ClassDef):
            continue

        text = _doc_text(node, lines)
        directives = parse_contract_directives(text)
        is_contract = _is_contract_class(node)

        if directives.client_name is None:
            if is_contract:
                out.skipped.append(SkippedDecl(node.name, node.lineno, "no @client directive"))
            continue
        if not is_contract:
            out.skipped.append(
                SkippedDecl(node.name, node.lineno, "@client on a class that is not a Protocol or ABC")
            )
            continue

        methods = [
            _method_decl(item, lines)
            for item in node.body
            if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef))
        ]
        out.contracts.append(
            ContractDecl(
                name=node.name,
                line=node.lineno,
                client_name=directives.client_name,
                base_path=directives.base_path,
                methods=tuple(methods),
            )
        )

    return out


def extract_contracts_from_file(path: Path) -> ModuleDecls:
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ContractParseError(path, exc) from exc
    return extract_contracts_from_source(source, filename=str(path))


def _method_decl(node: ast.FunctionDef | ast.AsyncFunctionDef, lines: list[str]) -> MethodDecl:
    text = _doc_text(node, lines)
    args = node.args

    positional = list(args.posonlyargs) + list(args.args)
    if positional and positional[0].arg == "self":
        positional = positional[1:]

    params = [ParamDecl(a.arg, _annotation(a.annotation), a.lineno) for a in positional]
    params += [ParamDecl(a.arg, _annotation(a.annotation), a.lineno, keyword_only=True) for a in args.kwonlyargs]

    return MethodDecl(
        name=node.name,
        line=node.lineno,
        is_async=isinstance(node, ast.AsyncFunctionDef),
        params=tuple(params),
        returns=_annotation(node.returns),
        route=parse_route_directive(text),
        malformed_route=has_malformed_route(text),
        has_varargs=args.vararg is not None or args.kwarg is not None,
        decorators=tuple(_dotted(d) for d in node.decorator_list),
    )


def _is_contract_class(node: ast.ClassDef) -> bool:
    for base in node.bases:
        if isinstance(base, ast.Subscript):
            base = base.value  # Protocol[T]
        if _dotted(base).split(".")[-1] in _CONTRACT_BASES:
            return True
    for kw in node.keywords:
        # class X(metaclass=ABCMeta)
        if kw.arg == "metaclass" and _dotted(kw.value).split(".")[-1] == "ABCMeta":
            return True
    return False


def _doc_text(node: ast.ClassDef | ast.FunctionDef | ast.AsyncFunctionDef, lines: list[str]) -> str:
    """Docstring plus the run of '#' comment lines directly above the declaration."""
    parts = _leading_comments(node, lines)
    doc = ast.get_docstring(node, clean=True)
    if doc:
        parts.append(doc)
    return "\n".join(parts)


def _leading_comments(node: ast.AST, lines: list[str]) -> list[str]:
    first = min([node.lineno] + [d.lineno for d in getattr(node, "decorator_list", [])])
    out: list[str] = []
    i = first - 2  # 0-based index of the line above
    while i >= 0:
        stripped = lines[i].strip()
        if not stripped.startswith("#"):
            break
        out.append(stripped.lstrip("#").strip())
        i -= 1
    out.reverse()
    return out


def _dotted(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return f"{_dotted(node.value)}.{node.attr}"
    if isinstance(node, ast.Call):
        return _dotted(node.func)
    return ast.unparse(node)


# ----------------------------
# Annotation canonicalization
# ----------------------------


def _annotation(node: Optional[ast.AST]) -> Optional[TypeRef]:
    if node is None:
        return None
    return canonical_type(node)


def canonical_type(node: ast.AST) -> TypeRef:
    if isinstance(node, ast.Constant):
        if node.value is None:
            return TypeRef("none", "None", "None")
        if isinstance(node.value, str):
            # forward reference: "Post" / "Optional[Post]"
            try:
                inner = ast.parse(node.value.strip(), mode="eval").body
            except SyntaxError:
                return TypeRef("plain", node.value, node.value)
            return canonical_type(inner)

    if isinstance(node, (ast.Name, ast.Attribute)):
        name = _dotted(node)
        if name == "None":
            return TypeRef("none", "None", "None")
        return TypeRef("plain", name, name)

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union(list(_flatten_bitor(node)), node)

    if isinstance(node, ast.Subscript):
        head = _dotted(node.value).split(".")[-1]
        args = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]

        if head == "Optional" and len(args) == 1:
            return _wrap_optional(canonical_type(args[0]))
        if head == "Union":
            return _union(list(args), node)
        if head == "Annotated" and args:
            return canonical_type(args[0])
        if head in _SEQUENCE_NAMES and len(args) == 1:
            return _wrap_sequence(canonical_type(args[0]))

    text = ast.unparse(node)
    return TypeRef("plain", text, text)


def _flatten_bitor(node: ast.AST) -> Iterable[ast.AST]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        yield from _flatten_bitor(node.left)
        yield from _flatten_bitor(node.right)
    else:
        yield node


def _union(members: list[ast.AST], node: ast.AST) -> TypeRef:
    refs = [canonical_type(m) for m in members]
    rest = [r for r in refs if r.kind != "none"]
    if len(rest) == 1 and len(refs) == 2:
        return _wrap_optional(rest[0])
    text = ast.unparse(node)
    return TypeRef("plain", text, text)


def _wrap_optional(inner: TypeRef) -> TypeRef:
    if inner.kind == "plain":
        return TypeRef("optional", inner.name, f"Optional[{inner.text}]")
    if inner.kind in ("optional", "none"):
        return inner
    return TypeRef("nested", inner.name, f"Optional[{inner.text}]")


def _wrap_sequence(inner: TypeRef) -> TypeRef:
    if inner.kind == "plain":
        return TypeRef("sequence", inner.name, f"list[{inner.text}]")
    return TypeRef("nested", inner.name, f"list[{inner.text}]")