"""Static checks and compilation for orchestration scripts.

A script is the body of an ``async def``: it may ``await`` tool calls and
must ``return`` its final value. The AST guard is a best-effort layer, not
a security boundary; it rejects the obvious ways out of the restricted
scope (imports, dunder names, private and introspection attributes).

Before compiling, a deadline checkpoint call is injected at the top of
every loop and function body, into every lambda and into every
comprehension, so code that never awaits still stops once the deadline
has passed. Handlers that could swallow the deadline (bare ``except:``
and ``except BaseException``) are rejected.
"""

from __future__ import annotations

import ast
import copy
from typing import Any, Dict, Optional

ENTRY_POINT = "__hub_main__"
CHECKPOINT = "__hub_checkpoint__"
SCRIPT_FILENAME = "<script>"

SAFE_BUILTINS: Dict[str, Any] = {
    "abs": abs,
    "all": all,
    "any": any,
    "bool": bool,
    "dict": dict,
    "enumerate": enumerate,
    "filter": filter,
    "float": float,
    "int": int,
    "isinstance": isinstance,
    "len": len,
    "list": list,
    "map": map,
    "max": max,
    "min": min,
    "range": range,
    "repr": repr,
    "reversed": reversed,
    "round": round,
    "set": set,
    "sorted": sorted,
    "str": str,
    "sum": sum,
    "tuple": tuple,
    "zip": zip,
    "Exception": Exception,
    "KeyError": KeyError,
    "IndexError": IndexError,
    "RuntimeError": RuntimeError,
    "TypeError": TypeError,
    "ValueError": ValueError,
}

BLOCKED_ATTRIBUTES = frozenset(
    {
        "ag_code",
        "ag_frame",
        "cr_code",
        "cr_frame",
        "co_code",
        "f_back",
        "f_builtins",
        "f_code",
        "f_globals",
        "f_locals",
        "format",
        "format_map",
        "gi_code",
        "gi_frame",
        "mro",
        "tb_frame",
        "tb_next",
    }
)


class ScriptRejected(Exception):
    """The script failed to parse or violated the guard."""


def _is_dunder(name: Optional[str]) -> bool:
    return bool(name) and name.startswith("__") and name.endswith("__")


class _Guard(ast.NodeVisitor):
    def _reject(self, node: ast.AST, what: str) -> None:
        line = getattr(node, "lineno", None)
        where = f"Line {line}: " if line is not None else ""
        raise ScriptRejected(f"{where}{what} not allowed in scripts")

    def visit_Import(self, node: ast.Import) -> None:
        self._reject(node, "import statements are")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._reject(node, "import statements are")

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._reject(node, "class definitions are")

    def visit_Yield(self, node: ast.Yield) -> None:
        self._reject(node, "'yield' is")

    def visit_YieldFrom(self, node: ast.YieldFrom) -> None:
        self._reject(node, "'yield from' is")

    def visit_Name(self, node: ast.Name) -> None:
        if _is_dunder(node.id):
            self._reject(node, f"name '{node.id}' is")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_"):
            self._reject(node, f"private attribute '{node.attr}' is")
        if node.attr in BLOCKED_ATTRIBUTES:
            self._reject(node, f"attribute '{node.attr}' is")
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        if _is_dunder(node.name):
            self._reject(node, f"function name '{node.name}' is")
        self.generic_visit(node)

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_arg(self, node: ast.arg) -> None:
        if _is_dunder(node.arg):
            self._reject(node, f"argument name '{node.arg}' is")

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.type is None:
            self._reject(node, "bare 'except:' is")
        caught = node.type.elts if isinstance(node.type, ast.Tuple) else [node.type]
        for expr in caught:
            if isinstance(expr, ast.Name) and expr.id == "BaseException":
                self._reject(node, "'except BaseException' is")
        self.generic_visit(node)


class _CheckpointInjector(ast.NodeTransformer):
    def __init__(self) -> None:
        self._call = ast.parse(f"{CHECKPOINT}()", mode="eval").body

    def _stmt(self, anchor: ast.AST) -> ast.stmt:
        return ast.copy_location(ast.Expr(value=copy.deepcopy(self._call)), anchor)

    def _prepend(self, node):
        self.generic_visit(node)
        node.body.insert(0, self._stmt(node.body[0] if node.body else node))
        return node

    visit_For = _prepend
    visit_AsyncFor = _prepend
    visit_While = _prepend
    visit_FunctionDef = _prepend
    visit_AsyncFunctionDef = _prepend

    def visit_Lambda(self, node: ast.Lambda) -> ast.Lambda:
        # The checkpoint returns True, so ``check() and body`` yields body.
        self.generic_visit(node)
        check = ast.copy_location(copy.deepcopy(self._call), node.body)
        node.body = ast.copy_location(
            ast.BoolOp(op=ast.And(), values=[check, node.body]), node.body
        )
        return node

    def visit_comprehension(self, node: ast.comprehension) -> ast.comprehension:
        self.generic_visit(node)
        node.ifs.append(ast.copy_location(copy.deepcopy(self._call), node.iter))
        return node


def parse_script(code: str) -> ast.Module:
    """Parse and guard a script, returning its (unwrapped) module AST."""
    try:
        tree = compile(
            code,
            SCRIPT_FILENAME,
            "exec",
            flags=ast.PyCF_ONLY_AST | ast.PyCF_ALLOW_TOP_LEVEL_AWAIT,
            dont_inherit=True,
        )
    except SyntaxError as exc:
        raise ScriptRejected(f"Syntax error at line {exc.lineno}: {exc.msg}") from None
    except ValueError as exc:
        raise ScriptRejected(f"Invalid script: {exc}") from None
    _Guard().visit(tree)
    return tree


def compile_script(code: str):
    """Compile a script into a module defining ``async def __hub_main__()``.

    Raises :class:`ScriptRejected` for syntax errors and guard violations.
    Line numbers in tracebacks match the script's own lines.
    """
    user_tree = _CheckpointInjector().visit(parse_script(code))

    module = ast.parse(f"async def {ENTRY_POINT}():\n    pass\n", filename=SCRIPT_FILENAME)
    if user_tree.body:
        module.body[0].body = user_tree.body
    ast.fix_missing_locations(module)

    try:
        return compile(module, SCRIPT_FILENAME, "exec", dont_inherit=True)
    except SyntaxError as exc:
        raise ScriptRejected(f"Syntax error at line {exc.lineno}: {exc.msg}") from None
