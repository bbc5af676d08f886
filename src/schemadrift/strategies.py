"""
Write-back strategies for a model's current version identifier.

Two interchangeable strategies, selected by configuration:

- ``InlineStrategy`` keeps the identifier next to the model's own
  declaration as a class attribute::

      class Order(BaseModel):
          model_config = ConfigDict(frozen=True)
          __schema_version__ = "3f2a9c0d..."

  Edits are made at the positions the ``ast`` reports for the class, so
  text elsewhere in the module that happens to look like an assignment is
  never touched.

- ``CentralizedStrategy`` keeps every identifier in one registry file
  mapping model name to identifier.

Both ``insert()`` and ``update()`` are upserts from the caller's point of
view.  Write failures raise ``WriteFailure`` and are never swallowed.

Usage::

    from schemadrift.strategies import get_strategy

    strategy = get_strategy("centralized", config)
    strategy.update(ModelLocation("shop.Order"), "3f2a9c0d...")
"""

from __future__ import annotations

import ast
import json
import logging
from pathlib import Path
from typing import Any, ClassVar, Optional, Union

import yaml

from schemadrift.config import SchemaDriftConfig
from schemadrift.errors import SourceEditError, StoreUnreadable, WriteFailure
from schemadrift.locking import atomic_write, file_lock
from schemadrift.schema import ModelLocation

logger = logging.getLogger(__name__)

# Class attribute holding the inline identifier
IDENTIFIER_ATTRIBUTE = "__schema_version__"

# Per-model configuration block of a tracked pydantic model; an inserted
# identifier goes directly after it when present.
TRACKING_MARKER = "model_config"


class VersionStrategy:
    """Base class for identifier persistence strategies."""

    name: ClassVar[str]

    def current_identifier(
        self, location: ModelLocation, model: Optional[type] = None
    ) -> Optional[str]:
        raise NotImplementedError

    def insert(
        self, location: ModelLocation, identifier: str, source_text: Optional[str] = None
    ) -> Optional[str]:
        raise NotImplementedError

    def update(
        self, location: ModelLocation, identifier: str, source_text: Optional[str] = None
    ) -> Optional[str]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Inline
# ---------------------------------------------------------------------------


class InlineStrategy(VersionStrategy):
    """Stores the identifier as ``__schema_version__`` inside the class body."""

    name = "inline"

    def current_identifier(
        self, location: ModelLocation, model: Optional[type] = None
    ) -> Optional[str]:
        """The identifier declared on the class itself (never inherited).

        Without a loaded *model*, the declaring module is read statically.
        """
        if model is not None:
            value = vars(model).get(IDENTIFIER_ATTRIBUTE)
            return value if isinstance(value, str) and value else None
        if location.path is None or not location.path.exists():
            return None
        source = location.path.read_text(encoding="utf-8")
        return read_identifier(source, location.class_name)

    def update(
        self, location: ModelLocation, identifier: str, source_text: Optional[str] = None
    ) -> str:
        """Replace the existing identifier literal (inserting one if absent)."""
        return self._apply(location, identifier, source_text)

    def insert(
        self, location: ModelLocation, identifier: str, source_text: Optional[str] = None
    ) -> str:
        """Add an identifier assignment (replacing one if already present)."""
        return self._apply(location, identifier, source_text)

    def _apply(
        self, location: ModelLocation, identifier: str, source_text: Optional[str]
    ) -> str:
        _check_identifier(identifier)
        if source_text is None and location.path is None:
            raise ValueError(f"No source path or text given for {location.name}")

        if location.path is None:
            return set_identifier(source_text, location.class_name, identifier)

        path = location.path
        if source_text is None:
            try:
                source_text = path.read_bytes().decode("utf-8")
            except OSError as exc:
                raise WriteFailure(path, exc) from exc
        new_text = set_identifier(source_text, location.class_name, identifier)
        atomic_write(path, new_text)

        logger.info("Set %s = %r on %s in %s", IDENTIFIER_ATTRIBUTE, identifier, location.name, path)
        return new_text


def read_identifier(source: str, class_name: str) -> Optional[str]:
    """Statically read the identifier literal declared in *class_name*."""
    try:
        tree = ast.parse(source)
    except SyntaxError:
        logger.debug("Cannot parse source for %s", class_name)
        return None
    node = _find_class(tree, class_name)
    if node is None:
        return None
    stmt = _find_identifier_assignment(node)
    if stmt is None:
        return None
    value = stmt.value
    if isinstance(value, ast.Constant) and isinstance(value.value, str):
        return value.value
    return None


def set_identifier(source: str, class_name: str, identifier: str) -> str:
    """Return *source* with *class_name*'s identifier set to *identifier*.

    Only the identifier literal (or the inserted assignment) differs from
    the input; every other byte is preserved.

    Raises:
        SourceEditError: If the source does not parse or has no such class.
    """
    try:
        tree = ast.parse(source)
    except SyntaxError as exc:
        raise SourceEditError(f"Cannot parse source declaring {class_name}: {exc}") from exc

    node = _find_class(tree, class_name)
    if node is None:
        raise SourceEditError(f"Class {class_name} not found in source")

    literal = json.dumps(identifier)
    existing = _find_identifier_assignment(node)
    if existing is not None:
        value = existing.value
        return _splice(
            source,
            (value.lineno, value.col_offset),
            (value.end_lineno, value.end_col_offset),
            literal,
        )
    return _insert_assignment(source, node, f"{IDENTIFIER_ATTRIBUTE} = {literal}")


def _check_identifier(identifier: str) -> None:
    if not isinstance(identifier, str) or not identifier.strip():
        raise ValueError("Identifier must be a non-empty string")
    if "\n" in identifier or "\r" in identifier:
        raise ValueError("Identifier must be a single line")


def _find_class(tree: ast.Module, class_name: str) -> Optional[ast.ClassDef]:
    for stmt in tree.body:
        if isinstance(stmt, ast.ClassDef) and stmt.name == class_name:
            return stmt
    # Nested declarations
    for node in ast.walk(tree):
        if isinstance(node, ast.ClassDef) and node.name == class_name:
            return node
    return None


def _targets_name(stmt: ast.stmt, name: str) -> bool:
    if isinstance(stmt, ast.Assign):
        return any(isinstance(t, ast.Name) and t.id == name for t in stmt.targets)
    if isinstance(stmt, ast.AnnAssign):
        return isinstance(stmt.target, ast.Name) and stmt.target.id == name
    return False


def _find_identifier_assignment(
    node: ast.ClassDef,
) -> Optional[Union[ast.Assign, ast.AnnAssign]]:
    for stmt in node.body:
        if _targets_name(stmt, IDENTIFIER_ATTRIBUTE) and stmt.value is not None:
            return stmt  # type: ignore[return-value]
    return None


def _is_docstring(stmt: ast.stmt) -> bool:
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )


def _insert_assignment(source: str, node: ast.ClassDef, assignment: str) -> str:
    data = source.encode("utf-8")
    lines = data.splitlines(keepends=True)
    newline = _newline_of(lines)

    anchor = next((s for s in node.body if _targets_name(s, TRACKING_MARKER)), None)
    if anchor is None and _is_docstring(node.body[0]):
        anchor = node.body[0]

    if anchor is not None:
        end_line = lines[anchor.end_lineno - 1]
        rest = end_line[anchor.end_col_offset:].strip()
        shares_header = bool(lines[anchor.lineno - 1][: anchor.col_offset].strip())
        if shares_header or (rest and not rest.startswith(b"#")):
            # Other code shares the anchor's line
            return _splice(
                source,
                (anchor.end_lineno, anchor.end_col_offset),
                (anchor.end_lineno, anchor.end_col_offset),
                f"; {assignment}",
            )
        indent = _indent_of(lines[anchor.lineno - 1])
        offset = sum(len(ln) for ln in lines[: anchor.end_lineno])
        prefix = b"" if end_line.endswith((b"\n", b"\r")) else newline
        text = prefix + indent + assignment.encode("utf-8") + newline
        return (data[:offset] + text + data[offset:]).decode("utf-8")

    first = node.body[0]
    start_line = _stmt_start_line(first)
    line = lines[start_line - 1]
    if line[: first.col_offset].strip():
        # Body shares the class header line
        return _splice(
            source,
            (first.lineno, first.col_offset),
            (first.lineno, first.col_offset),
            f"{assignment}; ",
        )
    indent = _indent_of(line)
    offset = sum(len(ln) for ln in lines[: start_line - 1])
    text = indent + assignment.encode("utf-8") + newline
    return (data[:offset] + text + data[offset:]).decode("utf-8")


def _stmt_start_line(stmt: ast.stmt) -> int:
    decorators = getattr(stmt, "decorator_list", None)
    if decorators:
        return min(d.lineno for d in decorators)
    return stmt.lineno


def _indent_of(line: bytes) -> bytes:
    return line[: len(line) - len(line.lstrip(b" \t"))]


def _newline_of(lines: list[bytes]) -> bytes:
    for line in lines:
        if line.endswith(b"\r\n"):
            return b"\r\n"
        if line.endswith(b"\n"):
            return b"\n"
    return b"\n"


def _splice(
    source: str, start: tuple[int, int], end: tuple[int, int], replacement: str
) -> str:
    """Replace the span between two ``ast`` (line, utf-8 column) positions."""
    data = source.encode("utf-8")
    lines = data.splitlines(keepends=True)

    def offset(pos: tuple[int, int]) -> int:
        lineno, col = pos
        return sum(len(ln) for ln in lines[: lineno - 1]) + col

    return (data[: offset(start)] + replacement.encode("utf-8") + data[offset(end) :]).decode(
        "utf-8"
    )


# ---------------------------------------------------------------------------
# Centralized
# ---------------------------------------------------------------------------


class VersionRegistry:
    """Model name -> current identifier, loaded and saved explicitly."""

    def __init__(self, path: Path, versions: Optional[dict[str, str]] = None) -> None:
        self.path = Path(path)
        self._versions: dict[str, str] = dict(versions or {})

    @classmethod
    def load(cls, path: Path, strict: bool = False) -> "VersionRegistry":
        """Load the registry at *path*; a missing file is an empty registry.

        Args:
            path: Registry YAML file.
            strict: Raise ``StoreUnreadable`` on a corrupt file instead of
                logging it and returning an empty registry.
        """
        path = Path(path)
        if not path.exists():
            return cls(path)
        try:
            return cls(path, _parse_registry(path))
        except StoreUnreadable as exc:
            if strict:
                raise
            logger.error("ERROR: unable to load version registry: %s", exc)
            return cls(path)

    def get(self, model_name: str) -> Optional[str]:
        return self._versions.get(model_name)

    def set(self, model_name: str, identifier: str) -> None:
        self._versions[model_name] = identifier

    def as_dict(self) -> dict[str, str]:
        return dict(self._versions)

    def __contains__(self, model_name: object) -> bool:
        return model_name in self._versions

    def __len__(self) -> int:
        return len(self._versions)

    def save(self) -> None:
        """Rewrite the whole registry file atomically.

        Raises:
            WriteFailure: If the file cannot be written.
        """
        content = yaml.safe_dump(self._versions, sort_keys=True, default_flow_style=False)
        atomic_write(self.path, content)


def _parse_registry(path: Path) -> dict[str, str]:
    try:
        with open(path, encoding="utf-8") as fh:
            raw: Any = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise StoreUnreadable(path, str(exc)) from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise StoreUnreadable(path, f"expected a mapping, got {type(raw).__name__}")
    return {str(k): str(v) for k, v in raw.items() if v is not None}


class CentralizedStrategy(VersionStrategy):
    """Stores every model's identifier in one shared registry file."""

    name = "centralized"

    def __init__(self, registry_path: Path) -> None:
        self.registry_path = Path(registry_path)

    def load_registry(self) -> VersionRegistry:
        return VersionRegistry.load(self.registry_path)

    def current_identifier(
        self, location: ModelLocation, model: Optional[type] = None
    ) -> Optional[str]:
        return self.load_registry().get(location.name)

    def update(
        self, location: ModelLocation, identifier: str, source_text: Optional[str] = None
    ) -> None:
        """Upsert ``registry[location.name] = identifier``."""
        self._upsert(location.name, identifier)

    def insert(
        self, location: ModelLocation, identifier: str, source_text: Optional[str] = None
    ) -> None:
        """Same upsert as ``update()``."""
        self._upsert(location.name, identifier)

    def _upsert(self, model_name: str, identifier: str) -> None:
        _check_identifier(identifier)
        with file_lock(self.registry_path):
            registry = VersionRegistry.load(self.registry_path, strict=True)
            action = "Updated" if model_name in registry else "Registered"
            registry.set(model_name, identifier)
            registry.save()

        logger.info(
            "%s %s = %r in %s (%d model(s))",
            action,
            model_name,
            identifier,
            self.registry_path,
            len(registry),
        )


def get_strategy(name: str, config: SchemaDriftConfig) -> VersionStrategy:
    """Build the strategy named *name* from *config*."""
    if name == InlineStrategy.name:
        return InlineStrategy()
    if name == CentralizedStrategy.name:
        return CentralizedStrategy(config.registry_path)
    raise ValueError(f"Unknown strategy {name!r}; expected 'inline' or 'centralized'")
