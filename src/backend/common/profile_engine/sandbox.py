"""Restricted execution of profile source.

Profile files use Python syntax but run with a whitelisted set of builtins and
a namespace that only holds the profile vocabulary. Source is checked before it
runs: imports, scope escapes and underscore names (the route to interpreter
internals such as `__class__.__subclasses__`) are rejected.
"""

from __future__ import annotations

import ast
import builtins
import traceback
from types import CodeType, TracebackType
from typing import Any, Dict, Mapping, Optional

BLOCKED_NAMES = frozenset(
    {
        "exec",
        "eval",
        "compile",
        "open",
        "input",
        "breakpoint",
        "exit",
        "quit",
        "globals",
        "locals",
        "vars",
        "dir",
        "getattr",
        "setattr",
        "delattr",
        "memoryview",
        "help",
    }
)

# Frame and generator attributes lead back to engine globals; str.format reads arbitrary attributes.
BLOCKED_ATTRIBUTES = frozenset(
    {
        "format",
        "format_map",
        "gi_frame",
        "gi_code",
        "cr_frame",
        "cr_code",
        "ag_frame",
        "ag_code",
        "f_back",
        "f_globals",
        "f_locals",
        "f_builtins",
        "f_code",
        "tb_frame",
        "tb_next",
    }
)


def is_blocked_attribute(name: str) -> bool:
    return name.startswith("_") or name in BLOCKED_ATTRIBUTES


SAFE_BUILTINS = (
    "abs",
    "all",
    "any",
    "bool",
    "dict",
    "enumerate",
    "filter",
    "float",
    "frozenset",
    "hasattr",
    "int",
    "isinstance",
    "len",
    "list",
    "map",
    "max",
    "min",
    "range",
    "repr",
    "reversed",
    "round",
    "set",
    "sorted",
    "str",
    "sum",
    "tuple",
    "zip",
    "AssertionError",
    "Exception",
    "KeyError",
    "LookupError",
    "RuntimeError",
    "TypeError",
    "ValueError",
)


class SandboxViolation(SyntaxError):
    pass


class _Validator(ast.NodeVisitor):
    def __init__(self, filename: str):
        self.filename = filename

    def _reject(self, node: ast.AST, message: str) -> None:
        raise SandboxViolation(message, (self.filename, getattr(node, "lineno", None), None, None))

    def visit_Import(self, node: ast.Import) -> None:
        self._reject(node, "imports are not allowed in profiles")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._reject(node, "imports are not allowed in profiles")

    def visit_Global(self, node: ast.Global) -> None:
        self._reject(node, "'global' is not allowed in profiles")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self._reject(node, "'nonlocal' is not allowed in profiles")

    def visit_Name(self, node: ast.Name) -> None:
        if node.id in BLOCKED_NAMES or (node.id.startswith("_") and node.id != "_"):
            self._reject(node, f"name {node.id!r} is not available in profiles")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if is_blocked_attribute(node.attr):
            self._reject(node, f"attribute {node.attr!r} is not accessible in profiles")
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._check_binding(node, node.name)
        self.generic_visit(node)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._reject(node, "class definitions are not allowed in profiles")

    def visit_arg(self, node: ast.arg) -> None:
        self._check_binding(node, node.arg)

    def _check_binding(self, node: ast.AST, name: str) -> None:
        if name in BLOCKED_NAMES or (name.startswith("_") and name != "_"):
            self._reject(node, f"name {name!r} is not allowed in profiles")


def compile_profile(content: str, filename: str, line_offset: int = 1) -> CodeType:
    """Parse, validate and compile profile source; line numbers are shifted by `line_offset`."""
    try:
        tree = ast.parse(content, filename=filename, mode="exec")
    except SyntaxError as exc:
        if exc.lineno is not None and line_offset > 1:
            exc.lineno += line_offset - 1
        raise
    if line_offset > 1:
        ast.increment_lineno(tree, line_offset - 1)
    _Validator(filename).visit(tree)
    return compile(tree, filename, "exec")


def safe_builtins() -> Dict[str, Any]:
    return {name: getattr(builtins, name) for name in SAFE_BUILTINS}


def execute(code: CodeType, namespace: Mapping[str, Any]) -> Dict[str, Any]:
    scope: Dict[str, Any] = dict(namespace)
    scope["__builtins__"] = safe_builtins()
    exec(code, scope)  # noqa: S102
    return scope


def error_line(exc: BaseException, filename: str, tb: Optional[TracebackType] = None) -> Optional[int]:
    """Innermost line of `filename` in the traceback of `exc`."""
    if isinstance(exc, SyntaxError) and exc.filename == filename:
        return exc.lineno
    line = None
    for frame in traceback.extract_tb(tb if tb is not None else exc.__traceback__):
        if frame.filename == filename:
            line = frame.lineno
    return line
