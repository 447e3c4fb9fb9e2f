from __future__ import annotations

import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

from apigen.config import GenerateOptions
from apigen.domain.errors import (
    ApigenError,
    NoContractsError,
    OutputWriteError,
    SpecificationError,
)
from apigen.domain.models import ContractFile, Diagnostic
from apigen.emit.client import render_client
from apigen.emit.server import render_server
from apigen.extractors.contract.declarations import extract_contracts_from_file
from apigen.ir.builder import build_contract_file
from apigen.repo.scanner import find_contract_files

logger = logging.getLogger(__name__)

FileStatus = Literal["written", "unchanged", "stale", "skipped", "failed"]


@dataclass(frozen=True)
class FileResult:
    source: str
    status: FileStatus
    client_path: Optional[str] = None
    server_path: Optional[str] = None
    interfaces: int = 0
    routes: int = 0
    diagnostics: list[Diagnostic] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status not in ("failed", "stale")


@dataclass(frozen=True)
class GenerateResult:
    directory: str
    mode: str  # "write" | "check"
    files: list[FileResult]

    @property
    def ok(self) -> bool:
        return all(f.ok for f in self.files)

    @property
    def failed(self) -> list[FileResult]:
        return [f for f in self.files if not f.ok]


def load_contract_file(source: Path) -> ContractFile:
    """Parse one module and build its IR. Raises ContractParseError."""
    source = source.resolve()
    decls = extract_contracts_from_file(source)
    return build_contract_file(
        decls,
        module=source.stem,
        package_relative=(source.parent / "__init__.py").exists(),
    )


def render(cf: ContractFile) -> tuple[str, str]:
    return render_client(cf), render_server(cf)


def generate_file(
    source: Path,
    options: GenerateOptions | None = None,
    client_output: Optional[Path] = None,
) -> FileResult:
    """
    source -> (<base>_client_gen.py, <base>_server_gen.py).

    ``client_output`` overrides the client file name (relative names land next
    to the source); the server file takes the same name with the client suffix
    swapped for the server suffix.

    Both files are rendered in memory before anything touches the disk, so a
    parse or contract failure leaves no partial output behind.
    """
    options = options or GenerateOptions()
    source = source.resolve()
    client_path, server_path = (Path(p) for p in options.output_paths(str(source)))
    if client_output is not None:
        client_path = client_output if client_output.is_absolute() else source.parent / client_output
        server_path = client_path.with_name(_server_name(client_path.name, options))

    cf: Optional[ContractFile] = None
    try:
        cf = load_contract_file(source)
        if options.strict and cf.warnings:
            raise SpecificationError(source, cf.warnings)
        if not cf.interfaces:
            if options.strict:
                raise NoContractsError(source)
            logger.warning("%s: no service contracts with @client directive found", source)
            return FileResult(source=str(source), status="skipped", diagnostics=cf.diagnostics)

        client_code, server_code = render(cf)

        if options.check:
            status: FileStatus = (
                "unchanged"
                if _read(client_path) == client_code and _read(server_path) == server_code
                else "stale"
            )
        elif _read(client_path) == client_code and _read(server_path) == server_code:
            status = "unchanged"
        else:
            write_outputs([(client_path, client_code), (server_path, server_code)])
            status = "written"
    except ApigenError as exc:
        logger.error("%s", exc)
        return FileResult(
            source=str(source),
            status="failed",
            diagnostics=cf.diagnostics if cf is not None else [],
            error=str(exc),
        )

    routes = sum(len(i.methods) for i in cf.interfaces)
    logger.info("%s: %s (%d contract(s), %d route(s))", source.name, status, len(cf.interfaces), routes)
    return FileResult(
        source=str(source),
        status=status,
        client_path=str(client_path),
        server_path=str(server_path),
        interfaces=len(cf.interfaces),
        routes=routes,
        diagnostics=cf.diagnostics,
    )


def run_generate(directory: Path, options: GenerateOptions | None = None) -> GenerateResult:
    """
    Generate for every contract file under ``directory``.

    Files share no state, so with ``options.jobs > 1`` they are processed
    concurrently; results always come back in sorted file order and one
    file's failure never affects another's output.
    """
    options = options or GenerateOptions()
    directory = directory.expanduser().resolve()
    files = find_contract_files(directory, recursive=options.recursive)
    logger.debug("found %d candidate file(s) in %s", len(files), directory)

    if options.jobs > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=options.jobs) as pool:
            results = list(pool.map(lambda p: generate_file(p, options), files))
    else:
        results = [generate_file(p, options) for p in files]

    return GenerateResult(
        directory=str(directory),
        mode="check" if options.check else "write",
        files=results,
    )


def collect_contracts(path: Path, recursive: bool = False) -> list[ContractFile]:
    """IR for a single file or every contract file in a directory."""
    path = path.expanduser().resolve()
    if path.is_file():
        return [load_contract_file(path)]
    return [load_contract_file(p) for p in find_contract_files(path, recursive=recursive)]


def write_outputs(outputs: list[tuple[Path, str]]) -> None:
    """
    Write every output through a temp file in the target directory, then
    rename them into place together.
    """
    staged: list[tuple[str, Path]] = []
    current: Optional[Path] = None
    try:
        for path, text in outputs:
            current = path
            staged.append((_stage(path, text), path))
        for tmp, path in staged:
            current = path
            os.replace(tmp, path)
    except OSError as exc:
        for tmp, _ in staged:
            if os.path.exists(tmp):
                os.unlink(tmp)
        raise OutputWriteError(current or "<none>", exc) from exc


def _stage(path: Path, text: str) -> str:
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
    except OSError:
        os.unlink(tmp)
        raise
    return tmp


def _read(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _server_name(client_name: str, options: GenerateOptions) -> str:
    if client_name.endswith(options.client_suffix):
        return client_name[: -len(options.client_suffix)] + options.server_suffix
    stem = client_name[:-3] if client_name.endswith(".py") else client_name
    return stem + "_server.py"
