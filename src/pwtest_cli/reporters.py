"""Reporter identifier resolution."""

from __future__ import annotations

import importlib.machinery
import sys
from dataclasses import dataclass
from pathlib import Path

from .errors import ResolutionError

BUILTIN_REPORTERS = ("list", "line", "dot", "json", "junit", "null", "github", "html")


@dataclass(frozen=True)
class ReporterSpec:
    """A reporter as requested on the command line and where it lives."""

    name: str
    location: str
    builtin: bool = False


def _find_module_origin(module: str, cwd: Path) -> str | None:
    top_level, _, rest = module.partition(".")
    search_path = [str(cwd), *sys.path]
    spec = importlib.machinery.PathFinder.find_spec(top_level, search_path)
    if spec is None:
        return None
    if rest:
        # Submodules are looked up within the package found above
        locations = spec.submodule_search_locations
        for part in rest.split("."):
            if not locations:
                return None
            spec = importlib.machinery.PathFinder.find_spec(part, list(locations))
            if spec is None:
                return None
            locations = spec.submodule_search_locations
    return spec.origin


def resolve_reporter(identifier: str, cwd: Path | None = None) -> ReporterSpec:
    """Resolve a reporter identifier.

    Resolution order:
    1. Built-in reporter name, used as-is
    2. Path relative to ``cwd`` that exists, used as an absolute path
    3. Importable module name, searched with ``cwd`` first on the path

    Raises:
        ResolutionError: If none of the above matches.
    """
    cwd = cwd or Path.cwd()
    if identifier in BUILTIN_REPORTERS:
        return ReporterSpec(name=identifier, location=identifier, builtin=True)

    local_path = (cwd / identifier).resolve()
    if local_path.exists():
        return ReporterSpec(name=identifier, location=str(local_path))

    try:
        origin = _find_module_origin(identifier, cwd)
    except (ImportError, ValueError):
        origin = None
    if origin is None:
        raise ResolutionError(
            message=f'Cannot find reporter "{identifier}"',
            data={"reporter": identifier, "cwd": str(cwd)},
        )
    return ReporterSpec(name=identifier, location=origin)
