# syntax_model.py
"""
Data vocabularies shared by the analyzers.

Three groups of plain records live here:

  - the language-neutral AST handed over by a parsing front-end
    (``Program`` and its statements),
  - the IR graph produced by ``cfg_builder`` (typed nodes + labeled edges),
  - the macro summary produced by ``macro_summarizer``.

Everything is a frozen dataclass. ``to_dict`` methods emit the camelCase
wire format a rendering collaborator consumes; ``program_from_dict`` loads
the same format coming from an external parser.
"""
import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Union

IR_VERSION = "1.0.0"


class InvalidInputError(ValueError):
    """AST root or transformation metadata has the wrong shape."""


# ---------- Locations ----------

@dataclass(frozen=True)
class Position:
    line: int
    column: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True)
class SourceLocation:
    start: Position
    end: Position

    @classmethod
    def from_lines(cls, start_line: int, end_line: int, start_column: int = 0, end_column: int = 0):
        return cls(Position(start_line, start_column), Position(end_line, end_column))

    @property
    def line_span(self) -> int:
        """Number of lines covered, both boundary lines included."""
        return self.end.line - self.start.line + 1

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}


UNKNOWN_LOCATION = SourceLocation(Position(0), Position(0))


# ---------- AST ----------

@dataclass(frozen=True)
class Parameter:
    name: str
    type: Optional[str] = None

    def render(self) -> str:
        return f"{self.name}: {self.type}" if self.type else self.name


@dataclass(frozen=True)
class FunctionDeclaration:
    name: str
    parameters: Tuple[Parameter, ...] = ()
    body: Tuple["Statement", ...] = ()
    return_type: Optional[str] = None
    location: SourceLocation = UNKNOWN_LOCATION
    TAG: ClassVar[str] = "FunctionDeclaration"


@dataclass(frozen=True)
class IfStatement:
    condition: str
    then_branch: Tuple["Statement", ...] = ()
    else_branch: Optional[Tuple["Statement", ...]] = None
    location: SourceLocation = UNKNOWN_LOCATION
    TAG: ClassVar[str] = "IfStatement"


@dataclass(frozen=True)
class ForStatement:
    body: Tuple["Statement", ...] = ()
    initializer: Optional[str] = None
    condition: Optional[str] = None
    incrementor: Optional[str] = None
    location: SourceLocation = UNKNOWN_LOCATION
    TAG: ClassVar[str] = "ForStatement"


@dataclass(frozen=True)
class WhileStatement:
    condition: str
    body: Tuple["Statement", ...] = ()
    location: SourceLocation = UNKNOWN_LOCATION
    TAG: ClassVar[str] = "WhileStatement"


@dataclass(frozen=True)
class VariableDeclaration:
    name: str
    var_type: Optional[str] = None
    initializer: Optional[str] = None
    location: SourceLocation = UNKNOWN_LOCATION
    TAG: ClassVar[str] = "VariableDeclaration"


@dataclass(frozen=True)
class ReturnStatement:
    value: Optional[str] = None
    location: SourceLocation = UNKNOWN_LOCATION
    TAG: ClassVar[str] = "ReturnStatement"


@dataclass(frozen=True)
class ExpressionStatement:
    expression: str
    location: SourceLocation = UNKNOWN_LOCATION
    TAG: ClassVar[str] = "ExpressionStatement"


@dataclass(frozen=True)
class UnknownStatement:
    """Statement whose tag is outside the vocabulary; kept so analysis can degrade."""
    type_name: str
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    location: SourceLocation = UNKNOWN_LOCATION


Statement = Union[
    FunctionDeclaration,
    IfStatement,
    ForStatement,
    WhileStatement,
    VariableDeclaration,
    ReturnStatement,
    ExpressionStatement,
    UnknownStatement,
]

LOOP_TYPES = (ForStatement, WhileStatement)


@dataclass(frozen=True)
class Program:
    body: Tuple[Statement, ...] = ()
    source_file: Optional[str] = None

    def functions(self) -> List[FunctionDeclaration]:
        return [s for s in self.body if isinstance(s, FunctionDeclaration)]

    def find_function(self, name: str) -> Optional[FunctionDeclaration]:
        for fn in self.functions():
            if fn.name == name:
                return fn
        return None


# ---------- Loading the wire format ----------

def _location_from_dict(data: Any) -> SourceLocation:
    if not isinstance(data, Mapping):
        return UNKNOWN_LOCATION
    start = data.get("start") or {}
    end = data.get("end") or {}
    return SourceLocation(
        Position(int(start.get("line", 0)), int(start.get("column", 0))),
        Position(int(end.get("line", 0)), int(end.get("column", 0))),
    )


def _statements_from_list(items: Any) -> Tuple[Statement, ...]:
    # A missing or malformed statement list reads as empty.
    if not isinstance(items, list):
        return ()
    return tuple(statement_from_dict(item) for item in items)


def _optional_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def statement_from_dict(data: Any) -> Statement:
    """Build one statement from its dict form; unknown tags become ``UnknownStatement``."""
    if not isinstance(data, Mapping):
        return UnknownStatement(type(data).__name__)

    tag = data.get("type")
    loc = _location_from_dict(data.get("location"))

    if tag == FunctionDeclaration.TAG:
        params = tuple(
            Parameter(str(p.get("name", "")), _optional_text(p.get("type")))
            for p in data.get("parameters") or []
            if isinstance(p, Mapping)
        )
        return FunctionDeclaration(
            name=str(data.get("name") or "anonymous"),
            parameters=params,
            body=_statements_from_list(data.get("body")),
            return_type=_optional_text(data.get("returnType")),
            location=loc,
        )
    if tag == IfStatement.TAG:
        else_items = data.get("elseBranch")
        return IfStatement(
            condition=str(data.get("condition", "")),
            then_branch=_statements_from_list(data.get("thenBranch")),
            else_branch=None if else_items is None else _statements_from_list(else_items),
            location=loc,
        )
    if tag == ForStatement.TAG:
        return ForStatement(
            body=_statements_from_list(data.get("body")),
            initializer=_optional_text(data.get("initializer")),
            condition=_optional_text(data.get("condition")),
            incrementor=_optional_text(data.get("incrementor")),
            location=loc,
        )
    if tag == WhileStatement.TAG:
        return WhileStatement(
            condition=str(data.get("condition", "")),
            body=_statements_from_list(data.get("body")),
            location=loc,
        )
    if tag == VariableDeclaration.TAG:
        return VariableDeclaration(
            name=str(data.get("name", "")),
            var_type=_optional_text(data.get("varType")),
            initializer=_optional_text(data.get("initializer")),
            location=loc,
        )
    if tag == ReturnStatement.TAG:
        return ReturnStatement(value=_optional_text(data.get("value")), location=loc)
    if tag == ExpressionStatement.TAG:
        return ExpressionStatement(expression=str(data.get("expression", "")), location=loc)

    return UnknownStatement(str(tag), raw=dict(data), location=loc)


def program_from_dict(data: Any) -> Program:
    """Load a ``{"type": "Program", "body": [...]}`` tree produced by an external parser."""
    if data is None:
        raise InvalidInputError("AST root is missing")
    if not isinstance(data, Mapping) or data.get("type") != "Program":
        raise InvalidInputError("AST root must be a mapping with type 'Program'")
    body = data.get("body", [])
    if not isinstance(body, list):
        raise InvalidInputError("AST root 'body' must be a list of statements")
    return Program(
        body=tuple(statement_from_dict(item) for item in body),
        source_file=_optional_text(data.get("sourceFile")),
    )


# ---------- Transformation metadata ----------

@dataclass(frozen=True)
class TransformMetadata:
    language: str
    file: str


def coerce_metadata(metadata: Any) -> TransformMetadata:
    if isinstance(metadata, TransformMetadata):
        return metadata
    if not isinstance(metadata, Mapping):
        raise InvalidInputError("metadata must be a mapping with 'language' and 'file'")
    missing = [key for key in ("language", "file") if key not in metadata]
    if missing:
        raise InvalidInputError(f"metadata is missing {', '.join(missing)}")
    return TransformMetadata(str(metadata["language"]), str(metadata["file"]))


@dataclass(frozen=True)
class IRMetadata:
    source_language: str
    source_file: str
    timestamp: int

    @classmethod
    def stamp(cls, metadata: TransformMetadata) -> "IRMetadata":
        return cls(metadata.language, metadata.file, int(time.time() * 1000))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceLanguage": self.source_language,
            "sourceFile": self.source_file,
            "timestamp": self.timestamp,
        }


# ---------- IR graph ----------

def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


@dataclass(frozen=True)
class IRStartNode:
    id: str
    label: str
    type: str = "start"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "label": self.label}


@dataclass(frozen=True)
class IREndNode:
    id: str
    label: str
    type: str = "end"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "label": self.label}


@dataclass(frozen=True)
class IRFunctionNode:
    id: str
    name: str
    parameters: Tuple[str, ...] = ()
    body_node_ids: Tuple[str, ...] = ()
    return_type: Optional[str] = None
    location: SourceLocation = UNKNOWN_LOCATION
    type: str = "function"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "parameters": list(self.parameters),
            "returnType": self.return_type,
            "bodyNodeIds": list(self.body_node_ids),
            "location": self.location.to_dict(),
        })


@dataclass(frozen=True)
class IRControlFlowNode:
    """Branching node (``if``, ``for`` or ``while``).

    ``branches`` maps a branch name to the ids created while that branch was
    transformed. Renderers may use it for grouping; edges do not depend on it.
    """
    id: str
    type: str
    condition: Optional[str] = None
    branches: Mapping[str, Tuple[str, ...]] = field(default_factory=dict, hash=False)
    location: SourceLocation = UNKNOWN_LOCATION

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "type": self.type,
            "condition": self.condition,
            "branches": {name: list(ids) for name, ids in self.branches.items()},
            "location": self.location.to_dict(),
        })


@dataclass(frozen=True)
class IRProcessNode:
    id: str
    type: str
    label: str
    details: Optional[str] = None
    location: SourceLocation = UNKNOWN_LOCATION

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "type": self.type,
            "label": self.label,
            "details": self.details,
            "location": self.location.to_dict(),
        })


IRNode = Union[IRStartNode, IREndNode, IRFunctionNode, IRControlFlowNode, IRProcessNode]

CONTROL_FLOW_TYPES = ("if", "for", "while")
PROCESS_TYPES = ("variable", "return", "expression")


@dataclass(frozen=True)
class IREdge:
    id: str
    source: str
    target: str
    label: Optional[str] = None
    type: str = "control"

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "type": self.type,
        })


@dataclass(frozen=True)
class IRGraph:
    metadata: IRMetadata
    nodes: Tuple[IRNode, ...]
    edges: Tuple[IREdge, ...]
    entry_id: Optional[str] = None
    diagnostics: Tuple[str, ...] = ()
    version: str = IR_VERSION

    def node(self, node_id: str) -> IRNode:
        for n in self.nodes:
            if n.id == node_id:
                return n
        raise KeyError(node_id)

    def nodes_of_type(self, *types: str) -> List[IRNode]:
        return [n for n in self.nodes if n.type in types]

    def edges_from(self, node_id: str) -> List[IREdge]:
        return [e for e in self.edges if e.source == node_id]

    def edges_to(self, node_id: str) -> List[IREdge]:
        return [e for e in self.edges if e.target == node_id]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "version": self.version,
            "metadata": self.metadata.to_dict(),
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }
        if self.diagnostics:
            data["diagnostics"] = list(self.diagnostics)
        return data


# ---------- Macro summary ----------

@dataclass(frozen=True)
class FunctionSummary:
    id: str
    name: str
    parameters: Tuple[str, ...]
    line_count: int
    complexity: int
    has_loops: bool
    has_conditionals: bool
    return_type: Optional[str] = None
    location: SourceLocation = UNKNOWN_LOCATION

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "name": self.name,
            "parameters": list(self.parameters),
            "returnType": self.return_type,
            "lineCount": self.line_count,
            "complexity": self.complexity,
            "hasLoops": self.has_loops,
            "hasConditionals": self.has_conditionals,
            "location": self.location.to_dict(),
        })


@dataclass(frozen=True)
class FunctionCall:
    id: str
    caller: str
    callee: str
    location: SourceLocation = UNKNOWN_LOCATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "caller": self.caller,
            "callee": self.callee,
            "location": self.location.to_dict(),
        }


@dataclass(frozen=True)
class MacroSummary:
    metadata: IRMetadata
    functions: Tuple[FunctionSummary, ...] = ()
    call_graph: Tuple[FunctionCall, ...] = ()

    def function(self, name: str) -> Optional[FunctionSummary]:
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "functions": [f.to_dict() for f in self.functions],
            "callGraph": [c.to_dict() for c in self.call_graph],
        }
