"""Requirement catalog loading from YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import ValidationError

from ..models import Requirement


class CatalogLoadError(RuntimeError):
    """Raised when one or more catalog files cannot be parsed."""


class CatalogLoader:
    """Loads requirement definitions from YAML files on disk.

    Each file holds either a list of requirements or a mapping with a
    ``requirements`` list. Keys use the wire names (``scoreboardDisplay``,
    ``counts``) or the Python field names.
    """

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.exists()]

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def load_all(self) -> dict[str, Requirement]:
        """Load requirements from all configured search paths.

        Later search paths override earlier ones when requirement ids collide.
        """

        if not self._search_paths:
            return {}

        requirements: dict[str, Requirement] = {}
        errors: list[str] = []

        for path in self._files():
            try:
                document = yaml.safe_load(path.read_text(encoding="utf-8"))
            except yaml.YAMLError as exc:
                errors.append(f"Failed to parse YAML in {path}: {exc}")
                continue

            if document is None:
                continue

            entries = _entries(document)
            if entries is None:
                errors.append(f"Catalog {path} must be a list or contain a 'requirements' list")
                continue

            for index, entry in enumerate(entries):
                try:
                    requirement = Requirement.model_validate(entry)
                except ValidationError as exc:
                    errors.append(f"Requirement validation error in {path} (entry {index}): {exc}")
                    continue
                requirements[requirement.id] = requirement

        if errors:
            raise CatalogLoadError("; ".join(errors))

        return requirements

    def get(self, requirement_id: str) -> Requirement:
        requirements = self.load_all()
        try:
            return requirements[requirement_id]
        except KeyError as exc:
            raise CatalogLoadError(
                f"Requirement '{requirement_id}' not found in search paths"
            ) from exc

    def _files(self) -> list[Path]:
        files: list[Path] = []
        for base in self._search_paths:
            if base.is_file():
                files.append(base)
                continue
            files.extend(sorted(base.glob("*.yml")) + sorted(base.glob("*.yaml")))
        return files


def _entries(document: Any) -> list[Any] | None:
    if isinstance(document, list):
        return document
    if isinstance(document, dict) and isinstance(document.get("requirements"), list):
        return document["requirements"]
    return None


def load_catalog(search_paths: Iterable[Path] | None = None) -> dict[str, Requirement]:
    """Convenience wrapper for loading requirements from the provided paths."""

    return CatalogLoader(search_paths).load_all()


__all__ = ["CatalogLoadError", "CatalogLoader", "load_catalog"]
