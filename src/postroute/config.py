from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from postroute.converter.postman import (
    DEFAULT_BASE_URL,
    DEFAULT_COLLECTION_NAME,
    DEFAULT_DESCRIPTION,
)

DEFAULT_CONFIG_FILE = ".postmanrc.json"
DEFAULT_INCLUDE = ["**/*.js", "!node_modules/**"]
DEFAULT_EXCLUDE = ["node_modules/**", "test/**", "tests/**"]


class ConfigError(Exception):
    pass


class GeneratorConfig(BaseModel):
    """
    Settings for one generate run. Field aliases match the camelCase keys of
    .postmanrc.json; snake_case names work too.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    project_path: str = Field(".", alias="projectPath")
    output_path: Optional[str] = Field(None, alias="outputPath")
    collection_name: str = Field(DEFAULT_COLLECTION_NAME, alias="collectionName")
    base_url: str = Field(DEFAULT_BASE_URL, alias="baseUrl")
    description: str = DEFAULT_DESCRIPTION
    include_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_INCLUDE), alias="includePatterns")
    exclude_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE), alias="excludePatterns")
    request_names: list[str] = Field(default_factory=lambda: ["req"], alias="requestNames")

    def merged(self, **overrides: Any) -> "GeneratorConfig":
        """Copy with every override that is not None applied (CLI beats file)."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        return self.model_validate({**self.model_dump(), **updates})

    def resolved_output_path(self) -> Path:
        project = Path(self.project_path).expanduser().resolve()
        if self.output_path:
            return (project / Path(self.output_path).expanduser()).resolve()
        file_name = "-".join(self.collection_name.lower().split()) + ".postman_collection.json"
        return project / file_name


def load_config(path: Optional[Path] = None, *, required: bool = False) -> GeneratorConfig:
    """
    Read a .postmanrc.json style file.

    A missing file yields defaults unless `required` (explicit --config).
    """
    path = path or Path(DEFAULT_CONFIG_FILE)
    if not path.is_file():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return GeneratorConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")

    try:
        return GeneratorConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e
