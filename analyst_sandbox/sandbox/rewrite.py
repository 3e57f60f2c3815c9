"""AST preparation of scripts: auto-return, redeclaration rules and compilation.

A script is a function body. It is parsed on its own and its statements are
grafted into a generated function definition whose parameters are the bound
names, so user text is never spliced into a source template.
"""

import ast
import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import CompileError

logger = logging.getLogger(__name__)

SCRIPT_FUNCTION_NAME = "__sandbox_script__"
SCRIPT_FILENAME = "<script>"

_SCOPE_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)


@dataclass
class PreparedScript:
    """A parsed script ready to be compiled."""

    body: list[ast.stmt]
    has_explicit_return: bool
    return_source: str | None = None
    auto_return: str | None = None  # "names", "expression" or None
    returned_names: list[str] = field(default_factory=list)
    rewrites: list[str] = field(default_factory=list)


def _walk_function_scope(nodes: list[ast.stmt]):
    """Yield nodes in the function's own scope, skipping nested scopes."""
    stack: list[ast.AST] = list(reversed(nodes))
    while stack:
        node = stack.pop()
        if isinstance(node, _SCOPE_NODES):
            continue
        yield node
        stack.extend(reversed(list(ast.iter_child_nodes(node))))


def find_returns(body: list[ast.stmt]) -> list[ast.Return]:
    """Return statements that belong to the script itself, in source order."""
    returns = [n for n in _walk_function_scope(body) if isinstance(n, ast.Return)]
    return sorted(returns, key=lambda n: (n.lineno, n.col_offset))


def _target_names(target: ast.expr) -> list[str]:
    if isinstance(target, ast.Name):
        return [target.id]
    if isinstance(target, (ast.Tuple, ast.List)):
        names = []
        for elt in target.elts:
            names.extend(_target_names(elt))
        return names
    if isinstance(target, ast.Starred):
        return _target_names(target.value)
    return []


def collect_assigned_names(body: list[ast.stmt]) -> list[str]:
    """Names bound by top-level assignments, in order of first appearance."""
    names: list[str] = []
    for stmt in body:
        if isinstance(stmt, ast.Assign):
            targets = stmt.targets
        elif isinstance(stmt, ast.AnnAssign) and stmt.value is not None:
            targets = [stmt.target]
        else:
            continue
        for target in targets:
            for name in _target_names(target):
                if name not in names:
                    names.append(name)
    return names


def _ends_with_semicolon(source: str, stmt: ast.stmt) -> bool:
    lines = source.splitlines()
    # end_col_offset counts UTF-8 bytes
    line = lines[stmt.end_lineno - 1].encode("utf-8")
    tail = line[stmt.end_col_offset :].decode("utf-8", errors="ignore")
    return tail.lstrip().startswith(";")


def apply_auto_return(body: list[ast.stmt], source: str) -> tuple[str | None, list[str]]:
    """
    Give a script without a return statement an implicit result.

    Top-level assignments are returned as a dict of name -> value. Without
    assignments, a trailing expression statement becomes the return value
    unless it is followed by `;`.

    Returns:
        Tuple of (auto-return kind or None, names included in the dict)
    """
    names = collect_assigned_names(body)
    if names:
        body.append(
            ast.Return(
                value=ast.Dict(
                    keys=[ast.Constant(value=n) for n in names],
                    values=[ast.Name(id=n, ctx=ast.Load()) for n in names],
                )
            )
        )
        logger.debug(f"[EXEC] Auto-return of variables: {names}")
        return "names", names

    if body and isinstance(body[-1], ast.Expr) and not _ends_with_semicolon(source, body[-1]):
        last = body[-1]
        body[-1] = ast.copy_location(ast.Return(value=last.value), last)
        logger.debug("[EXEC] Auto-return of trailing expression")
        return "expression", []

    return None, []


class RedeclarationRules(ast.NodeTransformer):
    """
    Rewrites statements that redeclare names already bound as parameters.

    - `global` / `nonlocal` of a bound name is dropped (other names are kept)
    - `x: T = v` of a bound name becomes `x = v`; a bare `x: T` is dropped
    - tuple/list unpacking that rebinds a bound name is only reported
    """

    def __init__(self, bound: set[str]):
        self.bound = bound
        self.rewrites: list[str] = []

    def _skip_scope(self, node: ast.AST) -> ast.AST:
        return node

    visit_FunctionDef = _skip_scope
    visit_AsyncFunctionDef = _skip_scope
    visit_ClassDef = _skip_scope
    visit_Lambda = _skip_scope

    def _drop_bound(self, node: ast.Global | ast.Nonlocal) -> ast.AST | None:
        kept = [n for n in node.names if n not in self.bound]
        dropped = [n for n in node.names if n in self.bound]
        if not dropped:
            return node
        keyword = "global" if isinstance(node, ast.Global) else "nonlocal"
        self.rewrites.append(f"dropped {keyword} {', '.join(dropped)}")
        if not kept:
            return None
        node.names = kept
        return node

    visit_Global = _drop_bound
    visit_Nonlocal = _drop_bound

    def visit_AnnAssign(self, node: ast.AnnAssign) -> ast.AST | None:
        if not (isinstance(node.target, ast.Name) and node.target.id in self.bound):
            return node
        self.rewrites.append(f"annotated redeclaration of {node.target.id}")
        if node.value is None:
            return None
        return ast.copy_location(ast.Assign(targets=[node.target], value=node.value), node)

    def visit_Assign(self, node: ast.Assign) -> ast.AST:
        for target in node.targets:
            if isinstance(target, (ast.Tuple, ast.List)):
                rebound = [n for n in _target_names(target) if n in self.bound]
                if rebound:
                    logger.warning(
                        f"[EXEC] Unpacking assignment rebinds existing names: {rebound}"
                    )
        return node

    def generic_visit(self, node: ast.AST) -> ast.AST:
        super().generic_visit(node)
        # compound statements must keep a non-empty body
        if isinstance(getattr(node, "body", None), list) and not node.body:
            node.body = [ast.Pass()]
        return node


def prepare_script(source: str, bound: set[str]) -> PreparedScript:
    """
    Parse a script and apply auto-return and redeclaration rules.

    Args:
        source: Normalized script text
        bound: Names that will be bound as parameters

    Returns:
        PreparedScript

    Raises:
        CompileError: If the script does not parse
    """
    try:
        tree = ast.parse(source, SCRIPT_FILENAME)
    except SyntaxError as e:
        raise CompileError(
            f"Code syntax error: {e.msg} (line {e.lineno})",
            {"code_length": len(source), "excerpt": source[:500], "lineno": e.lineno},
        ) from e

    body = tree.body
    returns = find_returns(body)
    has_return = bool(returns)
    return_source = None
    if has_return and returns[0].value is not None:
        return_source = ast.unparse(returns[0].value)

    auto_return = None
    names: list[str] = []
    if not has_return:
        auto_return, names = apply_auto_return(body, source)
        if auto_return == "expression":
            return_source = ast.unparse(body[-1].value)

    rules = RedeclarationRules(bound)
    module = rules.visit(ast.Module(body=body, type_ignores=[]))
    body = module.body or [ast.Pass()]
    if rules.rewrites:
        logger.info(f"[EXEC] Redeclaration fixes: {rules.rewrites}")

    return PreparedScript(
        body=body,
        has_explicit_return=has_return,
        return_source=return_source,
        auto_return=auto_return,
        returned_names=names,
        rewrites=rules.rewrites,
    )


def compile_script(
    prepared: PreparedScript, params: list[str], namespace: dict[str, Any]
) -> Any:
    """
    Build the script function with the given parameter list.

    Args:
        prepared: Output of prepare_script
        params: Ordered parameter names
        namespace: Globals for the function (holds the restricted builtins)

    Returns:
        The compiled function object

    Raises:
        CompileError: If the host compiler rejects the function
    """
    func = ast.parse(f"def {SCRIPT_FUNCTION_NAME}(): pass").body[0]
    func.args.args = [ast.arg(arg=name) for name in params]
    func.body = prepared.body
    module = ast.fix_missing_locations(ast.Module(body=[func], type_ignores=[]))

    try:
        code = compile(module, SCRIPT_FILENAME, "exec")
    except (SyntaxError, ValueError) as e:
        message = e.msg if isinstance(e, SyntaxError) else str(e)
        raise CompileError(f"Code syntax error: {message}", {"params": params}) from e

    exec(code, namespace)
    return namespace[SCRIPT_FUNCTION_NAME]
