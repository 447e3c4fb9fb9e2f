import ast

from apigen.emit.server import render_server
from apigen.extractors.contract.declarations import extract_contracts_from_source
from apigen.ir.builder import build_contract_file


def build(src: str, module: str = "posts"):
    return build_contract_file(extract_contracts_from_source(src, f"{module}.py"), module=module)


def test_server_is_valid_python(posts_source):
    code = render_server(build(posts_source))
    ast.parse(code)
    assert code.startswith("# Code generated by apigen from posts.py. DO NOT EDIT.\n")
    assert "class PostsAPIHandler(RouteDispatcher):" in code
    assert "from posts import CreatePostRequest, PostsAPI" in code
    assert "from apigen.runtime.errors import not_found" in code


def test_registers_every_route_with_full_path(posts_source):
    code = render_server(build(posts_source))
    for route in (
        '"/api/posts/"',
        '"/api/posts/{id}"',
        '"/api/posts/users/{userId}/posts/{postId}"',
        '"/api/posts/slug/{slug}"',
    ):
        assert f"            {route},\n" in code
    assert 'methods=["DELETE"]' in code
    assert 'name="PostsAPI.get_user_post"' in code


def test_handler_decodes_and_calls_in_declaration_order(posts_source):
    code = render_server(build(posts_source))
    assert 'postId = path_param(_request, "postId", "int")' in code
    assert 'userId = path_param(_request, "userId", "int")' in code
    assert "await invoke(self.service.get_user_post, _request, postId, userId)" in code
    assert 'slug = path_param(_request, "slug", "str")' in code
    assert "req = await read_body(_request, CreatePostRequest)" in code
    assert "_result = await invoke(self.service.update, _request, id, req)" in code


def test_pointer_and_error_only_handlers(posts_source):
    code = render_server(build(posts_source))

    get_by_id = code.split("async def _handle_get_by_id")[1].split("async def")[0]
    assert "if _result is None:" in get_by_id
    assert 'error_response(not_found("Post not found"))' in get_by_id

    delete = code.split("async def _handle_delete")[1].split("async def")[0]
    assert "return no_content()" in delete
    assert "_result" not in delete


def test_runtime_imports_only_what_is_used():
    src = '''
from typing import Protocol


class HealthAPI(Protocol):
    """@client HealthClient"""

    def ping(self, ctx) -> None:
        """@route GET /ping"""
'''
    code = render_server(build(src, "health"))
    assert "from apigen.runtime.server import RouteDispatcher, error_response, invoke, no_content\n" in code
    assert "not_found" not in code
    assert "read_body" not in code


def test_optional_inside_payload_type_is_imported():
    src = '''
from typing import Optional, Protocol


class NotesAPI(Protocol):
    """@client NotesClient"""

    def put_many(self, ctx, notes: list[Optional[Note]]) -> None:
        """@route POST /batch"""
'''
    code = render_server(build(src, "notes"))
    assert code.startswith(
        "# Code generated by apigen from notes.py. DO NOT EDIT.\n"
        "from __future__ import annotations\n\n"
        "from typing import Optional\n\n"
        "from fastapi import APIRouter, Request, Response\n"
    )
    assert "notes = await read_body(_request, list[Optional[Note]])" in code
    assert "from notes import Note, NotesAPI" in code


def test_register_routes_adds_preflight_routes(posts_source):
    code = render_server(build(posts_source))
    register = code.split("def register_routes")[1].split("async def")[0]
    assert register.rstrip().endswith("self.register_preflight(router)")
