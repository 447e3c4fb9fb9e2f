import json
from pathlib import Path

from typer.testing import CliRunner

from apigen.cli import app

from conftest import POSTS_SOURCE, write

runner = CliRunner()


def test_generate_directory(tmp_path: Path):
    write(tmp_path / "posts.py", POSTS_SOURCE)

    result = runner.invoke(app, ["generate", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Generating API code from 1 file(s)" in result.output
    assert "written" in result.output
    assert (tmp_path / "posts_client_gen.py").exists()
    assert (tmp_path / "posts_server_gen.py").exists()


def test_gen_alias_and_check(tmp_path: Path):
    write(tmp_path / "posts.py", POSTS_SOURCE)

    stale = runner.invoke(app, ["gen", str(tmp_path), "--check"])
    assert stale.exit_code == 1
    assert "stale" in stale.output

    runner.invoke(app, ["gen", str(tmp_path)])
    fresh = runner.invoke(app, ["gen", str(tmp_path), "--check"])
    assert fresh.exit_code == 0
    assert "unchanged" in fresh.output


def test_generate_empty_directory(tmp_path: Path):
    result = runner.invoke(app, ["generate", str(tmp_path)])
    assert result.exit_code == 0
    assert "No API contract files found" in result.output


def test_generate_directory_from_env(tmp_path: Path):
    write(tmp_path / "posts.py", POSTS_SOURCE)
    result = runner.invoke(app, ["generate"], env={"APIGEN_DIR": str(tmp_path)})
    assert result.exit_code == 0, result.output
    assert (tmp_path / "posts_client_gen.py").exists()


def test_missing_directory_is_a_usage_error(tmp_path: Path):
    result = runner.invoke(app, ["generate", str(tmp_path / "absent")])
    assert result.exit_code == 2


def test_strict_failure_exits_non_zero(tmp_path: Path):
    write(
        tmp_path / "users.py",
        '''
        from typing import Protocol


        class UsersAPI(Protocol):
            """@client UsersClient"""

            def get(self, ctx, userId: int) -> None:
                """@route GET /{id}"""
        ''',
    )
    result = runner.invoke(app, ["generate", str(tmp_path), "--strict"])
    assert result.exit_code == 1
    assert not (tmp_path / "users_client_gen.py").exists()


def test_generate_file_with_output(tmp_path: Path):
    write(tmp_path / "posts.py", POSTS_SOURCE)

    result = runner.invoke(app, ["generate-file", str(tmp_path / "posts.py"), "--output", "blog_client_gen.py"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "blog_client_gen.py").exists()
    assert (tmp_path / "blog_server_gen.py").exists()


def test_generate_file_without_contracts(tmp_path: Path):
    write(tmp_path / "empty.py", "x = 1\n")
    result = runner.invoke(app, ["generate-file", str(tmp_path / "empty.py")])
    assert result.exit_code == 1


def test_routes_json(tmp_path: Path):
    write(tmp_path / "posts.py", POSTS_SOURCE)

    result = runner.invoke(app, ["routes", str(tmp_path / "posts.py"), "--format", "json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    routes = payload[0]["contracts"][0]["routes"]
    assert {"method": "GET", "route": "/api/posts/{id}"}.items() <= routes[1].items()
    assert routes[2]["body"] == {"name": "req", "type": "CreatePostRequest"}


def test_routes_rejects_unknown_format(tmp_path: Path):
    write(tmp_path / "posts.py", POSTS_SOURCE)
    result = runner.invoke(app, ["routes", str(tmp_path), "--format", "yaml"])
    assert result.exit_code == 2


def test_verbose_shows_skipped_candidate_notes(tmp_path: Path):
    write(tmp_path / "posts.py", POSTS_SOURCE)

    quiet = runner.invoke(app, ["generate", str(tmp_path)])
    assert "no @route directive" not in " ".join(quiet.output.split())

    loud = runner.invoke(app, ["generate", str(tmp_path), "--verbose"])
    assert loud.exit_code == 0, loud.output
    assert "no @route directive" in " ".join(loud.output.split())
