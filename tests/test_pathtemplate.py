import pytest

from apigen.ir.pathtemplate import convert, expand, join, placeholders


def test_placeholders_in_order():
    assert placeholders("/users/{userId}/posts/{postId}") == ["userId", "postId"]
    assert placeholders("/") == []
    assert placeholders("") == []


def test_join_is_plain_concatenation():
    assert join("/api/posts", "/{id}") == "/api/posts/{id}"
    assert join("/api/posts", "/") == "/api/posts/"
    assert join("", "/health") == "/health"


def test_expand_pairs_values_by_name_not_position():
    url = expand("/users/{userId}/posts/{postId}", {"postId": 5, "userId": 9})
    assert url == "/users/9/posts/5"


def test_expand_encodes_string_segments():
    assert expand("/slug/{slug}", {"slug": "hello world?"}) == "/slug/hello%20world%3F"


def test_expand_rejects_values_that_cannot_stay_one_segment():
    with pytest.raises(ValueError, match="without '/'"):
        expand("/slug/{slug}", {"slug": "a/b"})
    with pytest.raises(ValueError):
        expand("/slug/{slug}", {"slug": ""})


def test_expand_rejects_missing_and_extra_values():
    with pytest.raises(KeyError):
        expand("/{id}", {})
    with pytest.raises(ValueError):
        expand("/{id}", {"id": 1, "other": 2})


def test_expand_rejects_non_primitive_values():
    with pytest.raises(TypeError):
        expand("/{id}", {"id": True})
    with pytest.raises(TypeError):
        expand("/{id}", {"id": 1.5})


def test_convert_integer_kind():
    assert convert("int", "id", "42") == 42
    assert convert("int", "id", "-7") == -7
    assert convert("str", "slug", "abc") == "abc"
    with pytest.raises(ValueError, match="invalid id: must be an integer"):
        convert("int", "id", "abc")
    with pytest.raises(ValueError):
        convert("int", "id", "1.5")
