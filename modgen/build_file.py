"""Reading and writing the Starlark subset used by BUILD files."""

from __future__ import annotations

import ast
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .models import BuildFile, LoadStatement, Rule, Statement, Verbatim

_TEMPLATE_NAME = "BUILD.bazel.j2"
_ATTR_INDENT = " " * 4
_ITEM_INDENT = " " * 8


class BuildFileError(RuntimeError):
    """Raised when a BUILD file cannot be parsed."""


@dataclass(frozen=True)
class Expression:
    """Attribute value kept as source text, e.g. ``glob(["*.go"])``."""

    source: str


def load_build_file(path: Path) -> BuildFile:
    """Parse ``path`` into load statements, rules and verbatim chunks."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise BuildFileError(f"Failed to read {path}: {exc}") from exc
    return parse_build_file(path, text)


def parse_build_file(path: Path, text: str) -> BuildFile:
    """Parse BUILD source text.

    Top-level ``load`` calls and rule calls whose arguments are all keywords
    become structured statements. Anything else, including comments between
    statements, is carried through as :class:`Verbatim` text. Each rule keeps
    the lines it was parsed from so it renders unchanged until it is modified.
    """
    try:
        module = ast.parse(text, filename=str(path))
    except SyntaxError as exc:
        raise BuildFileError(f"Failed to parse {path}: {exc.msg} (line {exc.lineno})") from exc

    lines = text.splitlines()
    statements: List[Statement] = []
    cursor = 0
    for node in module.body:
        start = node.lineno - 1
        statements.extend(_comment_chunks(lines[cursor:start], before_statement=True))
        end = node.end_lineno or node.lineno
        source = "\n".join(lines[start:end])
        statements.append(_statement_from_node(node, text, source) or Verbatim(source))
        cursor = end
    statements.extend(_comment_chunks(lines[cursor:], before_statement=False))
    return BuildFile(path=path, statements=statements)


def _comment_chunks(lines: Sequence[str], *, before_statement: bool) -> List[Verbatim]:
    """Split the text between statements into chunks separated by blank lines.

    A chunk with no blank line before the next statement stays attached to it.
    """
    chunks: List[Verbatim] = []
    current: List[str] = []
    for line in lines:
        if line.strip():
            current.append(line.rstrip())
        elif current:
            chunks.append(Verbatim("\n".join(current)))
            current = []
    if current:
        chunks.append(Verbatim("\n".join(current), attached=before_statement))
    return chunks


def _statement_from_node(node: ast.stmt, text: str, source: str) -> Optional[Statement]:
    if not isinstance(node, ast.Expr) or not isinstance(node.value, ast.Call):
        return None
    call = node.value
    if not isinstance(call.func, ast.Name):
        return None

    if call.func.id == "load":
        return _load_from_call(call)
    return _rule_from_call(call, text, source)


def _load_from_call(call: ast.Call) -> Optional[LoadStatement]:
    if call.keywords or not call.args:
        return None
    values: List[str] = []
    for arg in call.args:
        if not isinstance(arg, ast.Constant) or not isinstance(arg.value, str):
            return None
        values.append(arg.value)
    return LoadStatement(label=values[0], symbols=values[1:])


def _rule_from_call(call: ast.Call, text: str, source: str) -> Optional[Rule]:
    if call.args:
        return None
    attrs: Dict[str, Any] = {}
    name: Optional[str] = None
    for keyword in call.keywords:
        if keyword.arg is None:
            return None
        value = _literal_or_expression(keyword.value, text)
        if keyword.arg == "name":
            if not isinstance(value, str):
                return None
            name = value
            continue
        attrs[keyword.arg] = value
    if name is None:
        return None
    return Rule(call.func.id, name, attrs, source=source)


def _literal_or_expression(node: ast.expr, text: str) -> Any:
    try:
        return ast.literal_eval(node)
    except (ValueError, TypeError):
        return Expression(ast.get_source_segment(text, node) or "")


def format_value(value: Any) -> str:
    """Render an attribute value as Starlark at attribute indentation."""
    if isinstance(value, Expression):
        return value.source
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (int, float)):
        return repr(value)
    if value is None:
        return "None"
    if isinstance(value, dict):
        items = ", ".join(f"{format_value(k)}: {format_value(v)}" for k, v in value.items())
        return "{" + items + "}"
    if isinstance(value, (list, tuple)):
        if len(value) <= 1:
            return "[" + ", ".join(format_value(item) for item in value) + "]"
        body = "".join(f"{_ITEM_INDENT}{format_value(item)},\n" for item in value)
        return f"[\n{body}{_ATTR_INDENT}]"
    raise TypeError(f"Unsupported attribute value: {value!r}")


class BuildFileRenderer:
    """Renders :class:`BuildFile` objects through the packaged Jinja template."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir or Path(__file__).with_name("templates")
        self._env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self._env.filters["starlark"] = format_value

    def render(self, build_file: BuildFile) -> str:
        blocks = _blocks_for(build_file.statements)
        if not blocks:
            return ""
        template = self._env.get_template(_TEMPLATE_NAME)
        return template.render(blocks=blocks)


def _blocks_for(statements: Sequence[Statement]) -> List[Dict[str, Any]]:
    blocks: List[Dict[str, Any]] = []
    previous: Optional[Statement] = None
    for stmt in statements:
        if isinstance(stmt, Rule) and stmt.deleted:
            continue
        # Consecutive loads and comments directly above a statement stay together.
        tight = (
            isinstance(stmt, LoadStatement) and isinstance(previous, LoadStatement)
        ) or (isinstance(previous, Verbatim) and previous.attached)
        if isinstance(stmt, LoadStatement):
            blocks.append(
                {"type": "load", "label": stmt.label, "symbols": list(stmt.symbols), "tight": tight}
            )
        elif isinstance(stmt, Rule) and stmt.source is not None:
            blocks.append({"type": "verbatim", "text": stmt.source, "tight": tight})
        elif isinstance(stmt, Rule):
            blocks.append(
                {
                    "type": "rule",
                    "kind": stmt.kind,
                    "name": stmt.name,
                    "attrs": list(stmt.attrs.items()),
                    "tight": tight,
                }
            )
        else:
            blocks.append({"type": "verbatim", "text": stmt.text, "tight": tight})
        previous = stmt
    return blocks


__all__ = [
    "BuildFileError",
    "BuildFileRenderer",
    "Expression",
    "format_value",
    "load_build_file",
    "parse_build_file",
]
