from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from postroute.config import GeneratorConfig
from postroute.converter.postman import PostmanConverter
from postroute.domain.models import RouteRecord
from postroute.extractors.express.extractor import RouteExtractor, SkippedFile
from postroute.repo.scanner import scan_source_files

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateResult:
    project_path: str
    files_scanned: int
    routes: list[RouteRecord]
    skipped_files: list[SkippedFile]
    output_path: Optional[str]  # None when nothing was written


def extract_project_routes(config: GeneratorConfig) -> tuple[list[str], RouteExtractor]:
    """Discover files and run one extractor over them, in sorted path order."""
    project_path = Path(config.project_path).expanduser().resolve()
    files = scan_source_files(
        project_path,
        include=config.include_patterns,
        exclude=config.exclude_patterns,
    )
    logger.info("Found %d files to analyze under %s", len(files), project_path)

    extractor = RouteExtractor(request_names=config.request_names)
    for f in files:
        extractor.extract_file(f)

    logger.info("Extracted %d routes", len(extractor.routes))
    return files, extractor


def run_generate(config: GeneratorConfig, write: bool = True) -> GenerateResult:
    project_path = Path(config.project_path).expanduser().resolve()
    files, extractor = extract_project_routes(config)
    routes = list(extractor.routes)

    output_path: Optional[str] = None
    if routes and write:
        converter = PostmanConverter(
            name=config.collection_name,
            base_url=config.base_url,
            description=config.description,
        )
        collection = converter.convert(routes)

        out = config.resolved_output_path()
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(collection, indent=2, ensure_ascii=False), encoding="utf-8")
        output_path = str(out)
        logger.info("Collection saved to %s", out)

    return GenerateResult(
        project_path=str(project_path),
        files_scanned=len(files),
        routes=routes,
        skipped_files=list(extractor.skipped),
        output_path=output_path,
    )
