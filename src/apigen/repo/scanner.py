from __future__ import annotations

import os
from pathlib import Path

from apigen.extractors.contract.directives import mentions_client
from apigen.repo.ignore import is_generated_file, should_ignore_dir


def scan_python_files(directory: Path, recursive: bool = False) -> list[Path]:
    """
    .py files under ``directory`` (top level only unless ``recursive``),
    sorted, skipping generated output and ``__init__.py``.
    """
    out: list[Path] = []
    for root, dirs, files in os.walk(directory):
        root_p = Path(root)

        # prune ignored dirs
        dirs[:] = sorted(d for d in dirs if not should_ignore_dir(root_p / d))
        if not recursive:
            dirs[:] = []

        for f in files:
            p = root_p / f
            if not f.endswith(".py") or f == "__init__.py" or is_generated_file(p):
                continue
            out.append(p.resolve())
    return sorted(out)


def file_contains_client_marker(path: Path, max_bytes: int = 2_000_000) -> bool:
    try:
        with open(path, "rb") as f:
            data = f.read(max_bytes)
    except OSError:
        return False
    return mentions_client(data.decode("utf-8", errors="ignore"))


def find_contract_files(directory: Path, recursive: bool = False) -> list[Path]:
    """Candidate contract modules: python files that mention the ``@client`` marker."""
    return [p for p in scan_python_files(directory, recursive=recursive) if file_contains_client_marker(p)]
