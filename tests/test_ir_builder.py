import pytest

from apigen.domain.models import PrimitiveKind
from apigen.extractors.contract.declarations import MethodDecl, extract_contracts_from_source
from apigen.ir.builder import MethodRejected, build_contract_file, build_method


def build(src: str, module: str = "api"):
    return build_contract_file(extract_contracts_from_source(src, f"{module}.py"), module=module)


def contract(methods: str, header: str = "@client C\n    @basepath /api") -> str:
    return f'''
from typing import Optional, Protocol


class API(Protocol):
    """
    {header}
    """
{methods}
'''


def test_posts_contract_builds_all_routed_methods(posts_source):
    cf = build(posts_source, "posts")
    assert len(cf.interfaces) == 1
    iface = cf.interfaces[0]
    assert iface.client_name == "PostsClient"
    assert [m.name for m in iface.methods] == [
        "get_all",
        "get_by_id",
        "create",
        "update",
        "delete",
        "get_user_post",
        "by_slug",
    ]
    assert cf.warnings == []
    # helper has no @route and is only noted
    notes = [d for d in cf.diagnostics if d.severity == "info"]
    assert [d.method for d in notes] == ["helper"]


def test_return_shapes(posts_source):
    iface = build(posts_source, "posts").interfaces[0]
    m = {x.name: x for x in iface.methods}

    assert m["get_all"].is_slice and m["get_all"].return_type == "Post"
    assert m["get_all"].response_type == "list[Post]"
    assert m["get_by_id"].is_pointer and m["get_by_id"].response_type == "Optional[Post]"
    assert not m["create"].is_pointer and not m["create"].is_slice
    assert m["delete"].has_return is False
    assert m["delete"].response_type == "None"


def test_placeholder_parameters_and_payload(posts_source):
    m = {x.name: x for x in build(posts_source, "posts").interfaces[0].methods}

    update = m["update"]
    assert [(p.name, p.kind) for p in update.path_params] == [("id", PrimitiveKind.INTEGER)]
    assert update.has_body and update.body_param == "req" and update.body_type == "CreatePostRequest"
    assert update.param_order == ["id", "req"]

    slug = m["by_slug"].path_params[0]
    assert slug.kind is PrimitiveKind.STRING


def test_parameters_bound_by_name_when_declared_out_of_path_order(posts_source):
    m = {x.name: x for x in build(posts_source, "posts").interfaces[0].methods}
    gup = m["get_user_post"]
    assert [p.name for p in gup.path_params] == ["postId", "userId"]
    assert gup.param_order == ["postId", "userId"]
    assert gup.path == "/users/{userId}/posts/{postId}"


def test_route_is_basepath_plus_path(posts_source):
    iface = build(posts_source, "posts").interfaces[0]
    routes = {m.name: iface.route(m) for m in iface.methods}
    assert routes["get_all"] == "/api/posts/"
    assert routes["get_by_id"] == "/api/posts/{id}"


def test_placeholder_name_mismatch_is_rejected():
    src = contract(
        '''
    def get(self, ctx, userId: int) -> Optional[dict]:
        """@route GET /{id}"""

    def ok(self, ctx) -> None:
        """@route GET /ok"""
'''
    )
    cf = build(src)
    assert [m.name for m in cf.interfaces[0].methods] == ["ok"]
    [warning] = cf.warnings
    assert warning.method == "get"
    assert "userId" in warning.message


def test_two_payloads_are_rejected():
    src = contract(
        '''
    def create(self, ctx, a: Post, b: Post) -> None:
        """@route POST /"""
'''
    )
    cf = build(src)
    assert cf.interfaces[0].methods == []
    assert "more than one payload" in cf.warnings[0].message


def test_nested_return_shape_is_rejected():
    src = contract(
        '''
    def all(self, ctx) -> Optional[list[Post]]:
        """@route GET /"""
'''
    )
    cf = build(src)
    assert cf.interfaces[0].methods == []
    assert "not supported" in cf.warnings[0].message


def test_missing_context_parameter_is_rejected():
    src = contract(
        '''
    def ping(self) -> None:
        """@route GET /ping"""
'''
    )
    assert "context" in build(src).warnings[0].message


def test_string_placeholder_without_annotation_is_string_kind():
    src = contract(
        '''
    def get(self, ctx, name) -> None:
        """@route GET /{name}"""
'''
    )
    m = build(src).interfaces[0].methods[0]
    assert m.path_params[0].kind is PrimitiveKind.STRING


def test_malformed_route_is_an_info_note():
    src = contract(
        '''
    def get(self, ctx) -> None:
        """@route FETCH /x"""
'''
    )
    cf = build(src)
    assert cf.interfaces[0].methods == []
    assert cf.warnings == []
    assert "unparseable @route" in cf.diagnostics[0].message


def test_duplicate_route_is_rejected():
    src = contract(
        '''
    def a(self, ctx) -> None:
        """@route GET /x"""

    def b(self, ctx) -> None:
        """@route GET /x"""
'''
    )
    cf = build(src)
    assert [m.name for m in cf.interfaces[0].methods] == ["a"]
    assert "already registered by API.a" in cf.warnings[0].message


def test_empty_basepath():
    src = contract(
        '''
    def health(self, ctx) -> None:
        """@route GET /health"""
''',
        header="@client HealthClient",
    )
    iface = build(src).interfaces[0]
    assert iface.base_path == ""
    assert iface.route(iface.methods[0]) == "/health"


def test_optional_payload_is_rejected():
    src = contract(
        '''
    def put(self, ctx, id: int, req: Optional[Note]) -> Note:
        """@route PUT /{id}"""
'''
    )
    cf = build(src)
    assert cf.interfaces[0].methods == []
    assert "cannot be optional" in cf.warnings[0].message


def test_container_payload_keeps_its_full_type():
    src = contract(
        '''
    def put_many(self, ctx, notes: list[Optional[Note]]) -> None:
        """@route POST /batch"""
'''
    )
    m = build(src).interfaces[0].methods[0]
    assert m.body_type == "list[Optional[Note]]"


def test_build_method_without_route_is_rejected():
    decl = MethodDecl(name="get", line=1, is_async=False, params=(), returns=None, route=None)
    with pytest.raises(MethodRejected, match="no @route directive"):
        build_method(decl)
