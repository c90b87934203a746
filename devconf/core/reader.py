"""Reading of device record files, including ``$import`` template expansion."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from devconf.core.errors import ConfigValidationError, CorpusIOError

IMPORT_KEY = "$import"
_IMPORT_RE = re.compile(r"^(?P<file>[^#]+\.json)(?:#(?P<selector>[\w/.\-]+))?$")
# Whole-line ``#`` or ``//`` comments; JSON strings cannot span lines
_COMMENT_LINE_RE = re.compile(r"^[ \t]*(?:#|//).*$", re.MULTILINE)


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key, value in pairs:
        if key in mapping:
            raise ValueError(f"found duplicate key '{key}'")
        mapping[key] = value
    return mapping


def parse_json_document(content: str, *, source: str) -> Any:
    """Parse a JSON document that may carry whole-line comments.

    Comment lines are blanked rather than removed so error positions still
    point at the right line.
    """
    text = _COMMENT_LINE_RE.sub("", content)
    try:
        return json.loads(text, object_pairs_hook=_reject_duplicate_keys)
    except ValueError as exc:
        raise ConfigValidationError(source, f"Invalid JSON: {exc}") from exc


def read_json(path: Path) -> Any:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise CorpusIOError(f"Could not read device file {path}: {exc}") from exc
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ConfigValidationError(str(path), f"Invalid JSON: {exc}") from exc
    return parse_json_document(content, source=str(path))


class _TemplateExpander:
    def __init__(self, root: Path) -> None:
        self.root = root
        self._documents: dict[Path, Any] = {}

    def expand_file(self, path: Path, stack: tuple[Path, ...] = ()) -> Any:
        path = path.resolve()
        if path in stack:
            chain = " -> ".join(str(p) for p in (*stack, path))
            raise ConfigValidationError(str(stack[0]), f"Circular $import detected: {chain}")
        if path not in self._documents:
            if not path.is_file():
                source = str(stack[-1]) if stack else str(path)
                raise ConfigValidationError(source, f"Imported file {path} does not exist")
            self._documents[path] = self._expand(read_json(path), path, (*stack, path))
        return self._documents[path]

    def _expand(self, value: Any, current: Path, stack: tuple[Path, ...]) -> Any:
        if isinstance(value, list):
            return [self._expand(item, current, stack) for item in value]
        if not isinstance(value, dict):
            return value

        expanded: dict[str, Any] = {}
        if IMPORT_KEY in value:
            expanded.update(self._resolve_import(value[IMPORT_KEY], current, stack))
        for key, item in value.items():
            if key == IMPORT_KEY:
                continue
            expanded[key] = self._expand(item, current, stack)
        return expanded

    def _resolve_import(self, specifier: Any, current: Path, stack: tuple[Path, ...]) -> dict[str, Any]:
        source = str(current)
        match = _IMPORT_RE.match(specifier) if isinstance(specifier, str) else None
        if match is None:
            raise ConfigValidationError(
                source,
                f"Invalid import specifier {specifier!r}, expected '<file>.json' or '<file>.json#<selector>'",
                field=IMPORT_KEY,
            )

        target = match.group("file")
        if target.startswith("~/"):
            target_path = self.root / target[2:]
        else:
            target_path = current.parent / target

        imported = self.expand_file(target_path, stack)
        selector = match.group("selector")
        if selector:
            for part in selector.split("/"):
                if not isinstance(imported, dict) or part not in imported:
                    raise ConfigValidationError(
                        source,
                        f"Import selector '{selector}' not found in {target}",
                        field=IMPORT_KEY,
                    )
                imported = imported[part]

        if not isinstance(imported, dict):
            raise ConfigValidationError(
                source,
                f"Import target {specifier!r} must be an object",
                field=IMPORT_KEY,
            )
        return imported


def read_json_with_template(path: Path, *, root: Path | None = None) -> Any:
    """Read ``path`` and expand every ``$import`` directive it contains.

    ``~/`` import paths resolve against ``root`` (the corpus root); all others
    resolve relative to the importing file. Keys next to an ``$import``
    override the imported ones.
    """
    path = Path(path)
    expander = _TemplateExpander(Path(root).resolve() if root is not None else path.resolve().parent)
    return expander.expand_file(path)
