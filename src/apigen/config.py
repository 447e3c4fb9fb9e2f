from __future__ import annotations

from dataclasses import dataclass

DEFAULT_API_DIR = "api"
CLIENT_SUFFIX = "_client_gen.py"
SERVER_SUFFIX = "_server_gen.py"


@dataclass(frozen=True)
class GenerateOptions:
    """
    Knobs for one generator run.

    strict:   rejected routes/contracts fail the file instead of being skipped
    jobs:     files processed concurrently (1 = sequential)
    check:    render and compare with the files on disk, write nothing
    """

    recursive: bool = False
    strict: bool = False
    jobs: int = 1
    check: bool = False
    client_suffix: str = CLIENT_SUFFIX
    server_suffix: str = SERVER_SUFFIX

    def output_paths(self, source: str) -> tuple[str, str]:
        base = source[:-3] if source.endswith(".py") else source
        return base + self.client_suffix, base + self.server_suffix
