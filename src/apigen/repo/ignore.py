from __future__ import annotations

from pathlib import Path

DEFAULT_IGNORES = {
    ".git",
    ".venv",
    "venv",
    "__pycache__",
    "node_modules",
    "dist",
    "build",
    ".mypy_cache",
    ".ruff_cache",
    ".pytest_cache",
}

GENERATED_SUFFIXES = ("_client_gen.py", "_server_gen.py", "_gen.py")


def should_ignore_dir(dir_path: Path) -> bool:
    return dir_path.name in DEFAULT_IGNORES or dir_path.name.startswith(".")


def is_generated_file(path: Path) -> bool:
    return path.name.endswith(GENERATED_SUFFIXES)
