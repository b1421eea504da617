from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
BodyKind = Literal["json", "formdata"]
FieldKind = Literal["text", "file"]
ImportStyle = Literal["default", "named", "destructured"]


class ParamDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: str = ""
    description: str = ""


class FieldDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    kind: FieldKind = "text"
    description: str = ""


class HeaderDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: str = ""
    description: str = ""


class ImportBinding(BaseModel):
    """
    One locally bound name introduced by a require() or import statement.

    exported_name is "default" for `const x = require(...)` and default imports.
    """

    model_config = ConfigDict(frozen=True)

    local_name: str
    origin_module: str
    exported_name: str
    style: ImportStyle


class RouteRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    path: str
    source_file: str
    line: int = 0
    description: str = ""

    path_params: tuple[ParamDescriptor, ...] = ()
    query_params: tuple[FieldDescriptor, ...] = ()
    body_params: tuple[FieldDescriptor, ...] = ()
    body_kind: Optional[BodyKind] = None
    headers: tuple[HeaderDescriptor, ...] = ()
    handler_refs: tuple[str, ...] = ()
