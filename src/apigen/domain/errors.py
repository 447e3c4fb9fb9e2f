from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from apigen.domain.models import Diagnostic


class ApigenError(Exception):
    """Base class for generation-time failures."""


class ContractParseError(ApigenError):
    """The source module could not be parsed at all."""

    def __init__(self, path: str | Path, cause: BaseException) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"{self.path}: cannot parse source: {cause}")


class NoContractsError(ApigenError):
    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        super().__init__(f"{self.path}: no service contracts with @client directive found")


class OutputWriteError(ApigenError):
    def __init__(self, path: str | Path, cause: BaseException) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"{self.path}: cannot write output: {cause}")


class SpecificationError(ApigenError):
    """Raised in strict mode when a directive was present but could not be honoured."""

    def __init__(self, path: str | Path, diagnostics: Iterable["Diagnostic"]) -> None:
        self.path = str(path)
        self.diagnostics = list(diagnostics)
        lines = [d.format() for d in self.diagnostics]
        super().__init__(f"{self.path}: {len(lines)} contract error(s)\n  " + "\n  ".join(lines))
