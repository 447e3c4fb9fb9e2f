from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

from apigen.ir.pathtemplate import join

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]


class PrimitiveKind(str, Enum):
    INTEGER = "int"
    STRING = "str"


class PathParam(BaseModel):
    name: str
    kind: PrimitiveKind = PrimitiveKind.STRING

    @property
    def is_int(self) -> bool:
        return self.kind is PrimitiveKind.INTEGER


class MethodSpec(BaseModel):
    """One routed method of a service contract."""

    name: str
    http_method: HttpMethod
    path: str
    line: int = 0
    is_async: bool = False

    path_params: list[PathParam] = Field(default_factory=list)
    # non-context parameter names in declaration order (server call order)
    param_order: list[str] = Field(default_factory=list)

    has_body: bool = False
    body_param: str = ""
    body_type: str = ""

    # element type name; decoration lives in the flags below
    return_type: str = ""
    is_pointer: bool = False
    is_slice: bool = False
    has_return: bool = False

    @property
    def response_type(self) -> str:
        if not self.has_return:
            return "None"
        if self.is_slice:
            return f"list[{self.return_type}]"
        if self.is_pointer:
            return f"Optional[{self.return_type}]"
        return self.return_type


class InterfaceSpec(BaseModel):
    name: str
    client_name: str
    base_path: str = ""
    line: int = 0
    methods: list[MethodSpec] = Field(default_factory=list)

    def route(self, method: MethodSpec) -> str:
        return join(self.base_path, method.path)


class Diagnostic(BaseModel):
    severity: Literal["info", "warning", "error"]
    file: str
    line: int = 0
    contract: str = ""
    method: Optional[str] = None
    message: str

    def format(self) -> str:
        where = f"{self.file}:{self.line}" if self.line else self.file
        target = self.contract
        if self.method:
            target = f"{target}.{self.method}" if target else self.method
        return f"{where}: {target}: {self.message}" if target else f"{where}: {self.message}"


class ContractFile(BaseModel):
    """IR for one source module: everything both emitters need."""

    source_file: str
    module: str
    package_relative: bool = False
    interfaces: list[InterfaceSpec] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity != "info"]
