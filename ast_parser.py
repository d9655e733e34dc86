# ast_parser.py
"""Front-ends that turn source files into the language-neutral ``Program`` tree."""
import ast
import json
import logging
from pathlib import Path
from typing import List, Optional

from syntax_model import (
    ExpressionStatement,
    ForStatement,
    FunctionDeclaration,
    IfStatement,
    Parameter,
    Program,
    ReturnStatement,
    SourceLocation,
    Statement,
    VariableDeclaration,
    WhileStatement,
    program_from_dict,
)

logger = logging.getLogger(__name__)


def _src(node: ast.AST) -> str:
    return ast.unparse(node)


def _first_line(node: ast.AST, limit: int = 80) -> str:
    text = _src(node).splitlines()[0]
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _location(node: ast.AST) -> SourceLocation:
    start = getattr(node, "lineno", 0)
    end = getattr(node, "end_lineno", None) or start
    return SourceLocation.from_lines(
        start, end, getattr(node, "col_offset", 0), getattr(node, "end_col_offset", None) or 0
    )


def _is_docstring(stmt: ast.stmt) -> bool:
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )


class PythonParser:
    """Python front-end built on the standard ``ast`` module.

    Only the statement shapes the analyzers know are kept structured. Block
    statements without a branching meaning (``with``, ``try``) contribute a
    header statement followed by their bodies inline; everything else is
    carried as an expression statement with its source text.
    """

    language = "Python"
    extensions = (".py",)

    def parse(self, code: str, file_path: Optional[str] = None) -> Program:
        tree = ast.parse(code, filename=file_path or "<unknown>")
        body: List[Statement] = []
        for node in tree.body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                body.append(self._function(node))
            elif isinstance(node, ast.ClassDef):
                for item in node.body:
                    if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                        body.append(self._function(item, prefix=f"{node.name}."))
            elif isinstance(node, ast.Assign) and isinstance(node.value, ast.Lambda):
                # name = lambda ...: treated like a function whose body returns the expression
                if len(node.targets) == 1 and isinstance(node.targets[0], ast.Name):
                    body.append(self._lambda(node.targets[0].id, node.value))
        return Program(body=tuple(body), source_file=file_path)

    # ---------- functions ----------

    def _parameters(self, args: ast.arguments) -> tuple:
        params = []

        def add(arg: ast.arg, prefix: str = ""):
            annotation = _src(arg.annotation) if arg.annotation is not None else None
            params.append(Parameter(prefix + arg.arg, annotation))

        for arg in args.posonlyargs + args.args:
            add(arg)
        if args.vararg:
            add(args.vararg, "*")
        for arg in args.kwonlyargs:
            add(arg)
        if args.kwarg:
            add(args.kwarg, "**")
        return tuple(params)

    def _function(self, node, prefix: str = "") -> FunctionDeclaration:
        stmts = node.body[1:] if node.body and _is_docstring(node.body[0]) else node.body
        return FunctionDeclaration(
            name=prefix + node.name,
            parameters=self._parameters(node.args),
            body=self._statements(stmts),
            return_type=_src(node.returns) if node.returns is not None else None,
            location=_location(node),
        )

    def _lambda(self, name: str, node: ast.Lambda) -> FunctionDeclaration:
        return FunctionDeclaration(
            name=name,
            parameters=self._parameters(node.args),
            body=(ReturnStatement(_src(node.body), _location(node.body)),),
            location=_location(node),
        )

    # ---------- statements ----------

    def _statements(self, stmts) -> tuple:
        out: List[Statement] = []
        for stmt in stmts:
            out.extend(self._statement(stmt))
        return tuple(out)

    def _statement(self, stmt: ast.stmt) -> List[Statement]:
        loc = _location(stmt)

        if isinstance(stmt, ast.If):
            return [IfStatement(
                condition=_src(stmt.test),
                then_branch=self._statements(stmt.body),
                else_branch=self._statements(stmt.orelse) if stmt.orelse else None,
                location=loc,
            )]

        if isinstance(stmt, (ast.For, ast.AsyncFor)):
            loop = ForStatement(
                body=self._statements(stmt.body),
                condition=f"{_src(stmt.target)} in {_src(stmt.iter)}",
                location=loc,
            )
            # break is not modeled, so a loop's else block always runs after it
            return [loop, *self._statements(stmt.orelse)]

        if isinstance(stmt, ast.While):
            loop = WhileStatement(condition=_src(stmt.test), body=self._statements(stmt.body), location=loc)
            return [loop, *self._statements(stmt.orelse)]

        if isinstance(stmt, ast.Assign):
            return [VariableDeclaration(
                name=" = ".join(_src(t) for t in stmt.targets),
                initializer=_src(stmt.value),
                location=loc,
            )]

        if isinstance(stmt, ast.AnnAssign):
            return [VariableDeclaration(
                name=_src(stmt.target),
                var_type=_src(stmt.annotation),
                initializer=_src(stmt.value) if stmt.value is not None else None,
                location=loc,
            )]

        if isinstance(stmt, ast.Return):
            return [ReturnStatement(_src(stmt.value) if stmt.value is not None else None, loc)]

        if isinstance(stmt, ast.Expr):
            return [ExpressionStatement(_src(stmt.value), loc)]

        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            return [self._function(stmt)]

        if isinstance(stmt, (ast.With, ast.AsyncWith)):
            header = ExpressionStatement(_first_line(stmt).rstrip(":"), loc)
            return [header, *self._statements(stmt.body)]

        if isinstance(stmt, ast.Try):
            if stmt.handlers:
                logger.debug("line %s: except handlers are not part of the flow graph", loc.start.line)
            header = ExpressionStatement("try", loc)
            return [header, *self._statements(stmt.body), *self._statements(stmt.orelse),
                    *self._statements(stmt.finalbody)]

        return [ExpressionStatement(_first_line(stmt), loc)]


PARSERS = [PythonParser()]


def get_parser(file_path) -> Optional[PythonParser]:
    ext = Path(file_path).suffix
    for parser in PARSERS:
        if ext in parser.extensions:
            return parser
    return None


def supported_extensions() -> List[str]:
    exts = [".json"]
    for parser in PARSERS:
        exts.extend(parser.extensions)
    return sorted(set(exts))


def load_program(file_path):
    """Read ``file_path`` into a ``Program`` and report its language.

    ``.json`` files hold a tree already produced by an external parser; their
    language is taken from a top-level ``language`` key when present.
    """
    path = Path(file_path)
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        data = json.loads(text)
        language = data.get("language", "unknown") if isinstance(data, dict) else "unknown"
        return program_from_dict(data), language

    parser = get_parser(path)
    if parser is None:
        raise ValueError(f"no parser for {path.suffix or 'extensionless'} files: {path}")
    return parser.parse(text, str(path)), parser.language
