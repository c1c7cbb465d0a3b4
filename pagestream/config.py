"""Configuration: the page-stream description file and OCR dependencies.

A page-stream description is a plain-text file with one ``key=value`` pair
per line::

    remote_url=https://example.org/pages/{pageNumber}?w={maxWidth}
    count=42
    username=reader
    password=secret
    title=Some Book
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

import pytesseract

from pagestream.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "OPDS Streaming Document"
PAGE_NUMBER_PLACEHOLDER = "{pageNumber}"
MAX_WIDTH_PLACEHOLDER = "{maxWidth}"


@dataclass(frozen=True)
class PageStreamConfig:
    remote_url: str
    count: int
    username: Optional[str] = None
    password: Optional[str] = None
    title: str = DEFAULT_TITLE
    source_path: Optional[str] = None


def parse_config_text(content: str) -> Dict[str, str]:
    """Parse ``key=value`` lines into a dict.

    Doxygen:
    - @param content: Raw file content.
    - @return: Mapping of trimmed keys to trimmed values. Lines without ``=``
      or with an empty key are ignored; the value is everything after the
      first ``=``.
    """
    values: Dict[str, str] = {}
    for line in content.splitlines():
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        values[key] = value.strip()
    return values


def _parse_count(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        try:
            as_float = float(raw)
        except ValueError:
            return None
        return int(as_float) if as_float.is_integer() else None


def config_from_mapping(values: Dict[str, str], source_path: Optional[str] = None) -> PageStreamConfig:
    """Validate parsed values and build a :class:`PageStreamConfig`.

    Doxygen:
    - @param values: Output of :func:`parse_config_text`.
    - @param source_path: File the values were read from, if any.
    - @return: Immutable configuration record.
    - @throws ConfigError: If ``remote_url`` or ``count`` is missing or invalid.
    """
    remote_url = values.get("remote_url") or None
    count = _parse_count(values.get("count"))
    if not remote_url or count is None:
        raise ConfigError("Missing required fields 'remote_url' and/or 'count' in page-stream config")
    if count <= 0:
        raise ConfigError(f"Page count must be a positive integer, got {count}")
    if PAGE_NUMBER_PLACEHOLDER not in remote_url:
        raise ConfigError(f"remote_url must contain the {PAGE_NUMBER_PLACEHOLDER} placeholder")
    if MAX_WIDTH_PLACEHOLDER not in remote_url:
        logger.warning("remote_url has no %s placeholder; pages are requested at server size", MAX_WIDTH_PLACEHOLDER)

    return PageStreamConfig(
        remote_url=remote_url,
        count=count,
        username=values.get("username") or None,
        password=values.get("password") or None,
        title=values.get("title") or DEFAULT_TITLE,
        source_path=source_path,
    )


def load_config(path: str) -> PageStreamConfig:
    """Read and validate a page-stream description file.

    Doxygen:
    - @param path: Path to the description file.
    - @return: Immutable configuration record.
    - @throws ConfigError: If the file cannot be read or is incomplete.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as exc:
        logger.error("Cannot open page-stream config %s: %s", path, exc)
        raise ConfigError(f"Cannot read page-stream config {path}: {exc}") from exc

    try:
        return config_from_mapping(parse_config_text(content), source_path=path)
    except ConfigError:
        logger.error("Invalid page-stream config %s", path)
        raise


def _resolve_path(base: str, relative: str) -> str:
    return os.path.abspath(os.path.join(base, relative))


def configure_dependencies(project_root: Optional[str] = None) -> Optional[str]:
    """Point pytesseract at the Tesseract binary from config/dependencies.json.

    Doxygen:
    - @param project_root: Directory holding ``config/``; defaults to the repo root.
    - @return: Absolute Tesseract path that was applied, or None.
    """
    if project_root is None:
        project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
    deps_path = os.path.join(project_root, "config", "dependencies.json")

    if not os.path.exists(deps_path):
        logger.debug("dependencies.json not found at %s", deps_path)
        return None

    try:
        with open(deps_path, "r", encoding="utf-8") as deps_file:
            deps = json.load(deps_file) or {}
    except (OSError, ValueError) as exc:
        logger.warning("Could not load dependencies from %s: %s", deps_path, exc)
        return None

    tess_rel = deps.get("tesseract_path")
    if not tess_rel:
        return None
    tess_abs = _resolve_path(project_root, tess_rel)
    if not os.path.exists(tess_abs):
        logger.warning("Tesseract path from config does not exist: %s", tess_abs)
        return None
    pytesseract.pytesseract.tesseract_cmd = tess_abs
    return tess_abs
