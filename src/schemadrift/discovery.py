"""
Discovery of tracked models on disk.

A models directory is laid out one model per module, and the file path
determines the tracked name::

    models/order.py            -> Order
    models/shop/line_item.py   -> shop.LineItem

Each module is loaded fresh from its file with the models directory on
``sys.path`` (so models can import one another).  Modules loaded from the
models directory are removed from ``sys.modules`` again once the model is
resolved, and any module they shadowed is restored.  Files that fail to
import, or that do not define a pydantic model named after the file, come
back with ``model=None`` and a reason instead of raising.
"""

from __future__ import annotations

import contextlib
import importlib.util
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Iterable, Optional

from schemadrift.errors import UnresolvedModel
from schemadrift.reflection import is_tracked_model
from schemadrift.schema import ModelLocation

logger = logging.getLogger(__name__)

MODULE_NAMESPACE = "_schemadrift_models"


@dataclass(frozen=True)
class DiscoveredModel:
    location: ModelLocation
    model: Optional[type] = None
    reason: Optional[str] = None


def camelize(stem: str) -> str:
    """``line_item`` -> ``LineItem``."""
    return "".join(part[:1].upper() + part[1:] for part in stem.split("_") if part)


def model_files(models_dir: Path, exclude_patterns: Iterable[str] = ()) -> list[Path]:
    """Model modules under *models_dir*, minus excluded and private files."""
    patterns = [p for p in exclude_patterns if p]
    files: list[Path] = []
    for path in sorted(models_dir.rglob("*.py")):
        if any(part.startswith("_") for part in path.relative_to(models_dir).parts):
            continue
        if any(pattern in str(path) for pattern in patterns):
            logger.debug("Excluded %s", path)
            continue
        files.append(path)
    return files


def _relative_parts(models_dir: Path, path: Path) -> tuple[str, ...]:
    try:
        relative = path.resolve().relative_to(models_dir.resolve())
    except ValueError:
        raise UnresolvedModel(
            str(path), f"outside the models directory {models_dir}"
        ) from None
    return relative.with_suffix("").parts


def location_for(models_dir: Path, path: Path) -> ModelLocation:
    """Map a model file to its tracked name.

    Raises:
        UnresolvedModel: If *path* is not inside *models_dir*.
    """
    parts = _relative_parts(models_dir, path)
    name = ".".join([*parts[:-1], camelize(parts[-1])])
    return ModelLocation(name=name, path=path)


def resolve_model(models_dir: Path, path: Path) -> type:
    """Load the module at *path* and return its tracked model class.

    The module is registered as ``_schemadrift_models.<dotted path>``, never
    under a name another importable module could own.

    Raises:
        UnresolvedModel: If the module fails to import or declares no
            pydantic model named after the file.
    """
    location = location_for(models_dir, path)
    module_name = ".".join([MODULE_NAMESPACE, *_relative_parts(models_dir, path)])

    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise UnresolvedModel(str(path), "not an importable module")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        raise UnresolvedModel(str(path), f"import failed: {exc}") from exc

    candidate = getattr(module, location.class_name, None)
    if not is_tracked_model(candidate):
        raise UnresolvedModel(str(path), f"not a tracked model ({location.class_name})")
    return candidate


def _loaded_from(module: object, root: Path) -> bool:
    filename = getattr(module, "__file__", None)
    if not filename:
        return False
    try:
        Path(filename).resolve().relative_to(root)
    except ValueError:
        return False
    return True


@contextlib.contextmanager
def _isolated_imports(models_dir: Path) -> Generator[None, None, None]:
    """Put *models_dir* on ``sys.path`` and undo what it adds to ``sys.modules``."""
    root = models_dir.resolve()
    entry = str(root)
    saved = dict(sys.modules)
    added = entry not in sys.path
    if added:
        sys.path.insert(0, entry)
    try:
        yield
    finally:
        if added:
            with contextlib.suppress(ValueError):
                sys.path.remove(entry)
        for name, module in list(sys.modules.items()):
            if saved.get(name) is module or not _loaded_from(module, root):
                continue
            if name in saved:
                sys.modules[name] = saved[name]
            else:
                del sys.modules[name]


def load_model(models_dir: Path, path: Path) -> DiscoveredModel:
    """Resolve a single model file, never raising for unresolvable files.

    Raises:
        UnresolvedModel: Only when *path* is not inside *models_dir*.
    """
    models_dir = Path(models_dir)
    location = location_for(models_dir, path)
    with _isolated_imports(models_dir):
        try:
            return DiscoveredModel(location, resolve_model(models_dir, path))
        except UnresolvedModel as exc:
            logger.debug("%s", exc)
            return DiscoveredModel(location, None, exc.reason)


def discover_models(
    models_dir: Path, exclude_patterns: Iterable[str] = ()
) -> list[DiscoveredModel]:
    """Find and resolve every model under *models_dir*."""
    models_dir = Path(models_dir)
    if not models_dir.is_dir():
        logger.warning("Models directory not found: %s", models_dir)
        return []

    discovered = [load_model(models_dir, path) for path in model_files(models_dir, exclude_patterns)]

    logger.debug(
        "Discovered %d model file(s) under %s", len(discovered), models_dir
    )
    return discovered
