# cfg_builder.py
"""
Control-flow graph construction for one function.

Statements are threaded through a *frontier*: the list of places control
can leave from once the previous statement is done. A straight-line
statement has a single exit (itself). An ``if`` exits through whatever its
two branches end on, so divergent branches rejoin at the next statement
without a synthetic merge node. A loop exits through its own header.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence

import networkx as nx

from syntax_model import (
    UNKNOWN_LOCATION,
    ExpressionStatement,
    ForStatement,
    FunctionDeclaration,
    IfStatement,
    InvalidInputError,
    IRControlFlowNode,
    IREdge,
    IREndNode,
    IRFunctionNode,
    IRGraph,
    IRMetadata,
    IRNode,
    IRProcessNode,
    IRStartNode,
    Program,
    ReturnStatement,
    TransformMetadata,
    VariableDeclaration,
    WhileStatement,
    coerce_metadata,
    program_from_dict,
    statement_from_dict,
)

logger = logging.getLogger(__name__)

ALL_FUNCTIONS = "*"


class Exit(NamedTuple):
    """Control leaves ``node_id``; the next edge out of it carries ``label``."""
    node_id: str
    label: Optional[str] = None


def _merge(*frontiers: Iterable[Exit]) -> List[Exit]:
    merged: List[Exit] = []
    for frontier in frontiers:
        for exit_ in frontier:
            if exit_ not in merged:
                merged.append(exit_)
    return merged


class CFGBuilder:
    """Builds IR graphs. Counters and accumulators are reset on every call."""

    def __init__(self):
        self._reset()

    def _reset(self):
        self._slots: List[Optional[IRNode]] = []
        self._slot_index: Dict[str, int] = {}
        self._edges: List[IREdge] = []
        self.edge_counter = 0
        self.diagnostics: List[str] = []

    # ---------- public entry points ----------

    def build(self, name: str, body: Optional[Sequence[Any]], metadata) -> IRGraph:
        """Build the CFG of one function from its name and body statements.

        ``entry_id`` of the result is the id of the Start node.
        """
        meta = coerce_metadata(metadata)
        self._reset()
        # wire-format statements are accepted as well as dataclasses
        body = [statement_from_dict(s) if isinstance(s, Mapping) else s for s in body or ()]
        start_id = self._thread_function(name, body)
        return self._graph(meta, start_id)

    def build_function(self, fn: FunctionDeclaration, metadata) -> IRGraph:
        return self.build(fn.name, fn.body, metadata)

    def transform(self, program, metadata, function_name: Optional[str] = None) -> IRGraph:
        """Micro view of a file.

        With no ``function_name`` the first function is used; ``"*"`` lays
        every function out in one graph, each inside its own Function node.
        """
        if program is None:
            raise InvalidInputError("AST root is missing")
        if isinstance(program, Mapping):
            program = program_from_dict(program)
        if not isinstance(program, Program):
            raise InvalidInputError(f"expected a Program, got {type(program).__name__}")
        meta = coerce_metadata(metadata)

        functions = program.functions()
        if function_name == ALL_FUNCTIONS:
            return self._transform_all(functions, meta)
        if function_name is None:
            if not functions:
                raise LookupError(f"no function declarations in {meta.file}")
            return self.build_function(functions[0], meta)

        fn = program.find_function(function_name)
        if fn is None:
            raise LookupError(f"function '{function_name}' not found in {meta.file}")
        return self.build_function(fn, meta)

    # ---------- arena ----------

    def _new_id(self) -> str:
        """Reserve a node id; the node is emitted into its slot once complete."""
        node_id = f"node_{len(self._slots)}"
        self._slot_index[node_id] = len(self._slots)
        self._slots.append(None)
        return node_id

    def _emit(self, node: IRNode):
        self._slots[self._slot_index[node.id]] = node

    def _ids_since(self, mark: int) -> tuple:
        return tuple(f"node_{i}" for i in range(mark, len(self._slots)))

    def _add_edge(self, source: str, target: str, label: Optional[str] = None):
        self._edges.append(IREdge(f"edge_{self.edge_counter}", source, target, label))
        self.edge_counter += 1

    def _connect(self, frontier: Iterable[Exit], target: str, label: Optional[str] = None):
        """Edges from every frontier entry; ``label`` replaces the pending labels when given."""
        for exit_ in frontier:
            self._add_edge(exit_.node_id, target, label or exit_.label)

    def _graph(self, meta: TransformMetadata, entry_id: Optional[str]) -> IRGraph:
        return IRGraph(
            metadata=IRMetadata.stamp(meta),
            nodes=tuple(self._slots),
            edges=tuple(self._edges),
            entry_id=entry_id,
            diagnostics=tuple(self.diagnostics),
        )

    # ---------- threading ----------

    def _thread_function(self, name: str, body: Optional[Sequence[Any]]) -> str:
        start_id = self._new_id()
        self._emit(IRStartNode(start_id, f"Start: {name}"))

        frontier = self._sequence(body or (), [Exit(start_id)])

        end_id = self._new_id()
        self._emit(IREndNode(end_id, f"End: {name}"))
        self._connect(frontier, end_id)
        return start_id

    def _transform_all(self, functions: List[FunctionDeclaration], meta: TransformMetadata) -> IRGraph:
        self._reset()
        entry_id = None
        for fn in functions:
            fn_id = self._new_id()
            mark = len(self._slots)
            start_id = self._thread_function(fn.name, fn.body)
            entry_id = entry_id or start_id
            self._emit(IRFunctionNode(
                id=fn_id,
                name=fn.name,
                parameters=tuple(p.render() for p in fn.parameters),
                body_node_ids=self._ids_since(mark),
                return_type=fn.return_type,
                location=fn.location,
            ))
        return self._graph(meta, entry_id)

    def _sequence(self, statements: Sequence[Any], frontier: List[Exit]) -> List[Exit]:
        for stmt in statements:
            frontier = self._handle_stmt(stmt, frontier)
        return frontier

    def _handle_stmt(self, stmt, frontier: List[Exit]) -> List[Exit]:
        """Handle one statement and return its exits"""

        if isinstance(stmt, IfStatement):
            return self._handle_if(stmt, frontier)

        elif isinstance(stmt, (ForStatement, WhileStatement)):
            return self._handle_loop(stmt, frontier)

        elif isinstance(stmt, VariableDeclaration):
            label = f"{stmt.name} = {stmt.initializer}" if stmt.initializer else stmt.name
            return self._process(frontier, "variable", label, stmt.location, details=stmt.var_type)

        elif isinstance(stmt, ReturnStatement):
            label = f"return {stmt.value}" if stmt.value else "return"
            return self._process(frontier, "return", label, stmt.location)

        elif isinstance(stmt, ExpressionStatement):
            return self._process(frontier, "expression", stmt.expression, stmt.location)

        elif isinstance(stmt, FunctionDeclaration):
            # nested declaration: shown in place, its body is not expanded
            params = ", ".join(p.render() for p in stmt.parameters)
            return self._process(frontier, "expression", f"function {stmt.name}({params})", stmt.location)

        return self._placeholder(stmt, frontier)

    def _process(self, frontier, node_type, label, location, details=None) -> List[Exit]:
        node_id = self._new_id()
        self._connect(frontier, node_id)
        self._emit(IRProcessNode(node_id, node_type, label, details, location))
        return [Exit(node_id)]

    def _handle_if(self, stmt: IfStatement, frontier: List[Exit]) -> List[Exit]:
        cond_id = self._new_id()
        self._connect(frontier, cond_id)

        # then branch
        mark = len(self._slots)
        then_exits = self._sequence(stmt.then_branch or (), [Exit(cond_id, "true")])
        then_ids = self._ids_since(mark)

        # else branch
        mark = len(self._slots)
        else_exits = self._sequence(stmt.else_branch or (), [Exit(cond_id, "false")])
        else_ids = self._ids_since(mark)

        self._emit(IRControlFlowNode(
            id=cond_id,
            type="if",
            condition=stmt.condition,
            branches={"then": then_ids, "else": else_ids},
            location=stmt.location,
        ))
        return _merge(then_exits, else_exits)

    def _handle_loop(self, stmt, frontier: List[Exit]) -> List[Exit]:
        is_for = isinstance(stmt, ForStatement)
        loop_id = self._new_id()
        self._connect(frontier, loop_id)

        mark = len(self._slots)
        body_exits = self._sequence(stmt.body or (), [Exit(loop_id, "loop-continue" if is_for else "true")])
        body_ids = self._ids_since(mark)
        if body_ids:
            self._connect(body_exits, loop_id, label="loop")  # back edge

        self._emit(IRControlFlowNode(
            id=loop_id,
            type="for" if is_for else "while",
            condition=stmt.condition,
            branches={"body": body_ids},
            location=stmt.location,
        ))
        return [Exit(loop_id, "loop-exit" if is_for else "false")]

    def _placeholder(self, stmt, frontier: List[Exit]) -> List[Exit]:
        kind = getattr(stmt, "type_name", None) or type(stmt).__name__
        node_id = self._new_id()
        message = f"unsupported statement '{kind}' replaced by placeholder {node_id}"
        logger.warning(message)
        self.diagnostics.append(message)

        self._connect(frontier, node_id)
        self._emit(IRProcessNode(
            node_id, "expression", f"<{kind}>",
            details="unsupported", location=getattr(stmt, "location", UNKNOWN_LOCATION),
        ))
        return [Exit(node_id)]


# ---------- graph views ----------

def node_label(node: IRNode) -> str:
    if isinstance(node, IRControlFlowNode):
        return f"{node.type} {node.condition}" if node.condition else node.type
    if isinstance(node, IRFunctionNode):
        return f"{node.name}({', '.join(node.parameters)})"
    return node.label


def to_networkx(ir: IRGraph) -> nx.MultiDiGraph:
    """Multigraph view: an ``if`` with two empty branches has two edges to the same successor."""
    graph = nx.MultiDiGraph()
    for node in ir.nodes:
        graph.add_node(node.id, type=node.type, label=node_label(node))
    for edge in ir.edges:
        graph.add_edge(edge.source, edge.target, key=edge.id, label=edge.label, type=edge.type)
    return graph


def verify_cfg(ir: IRGraph) -> List[str]:
    """Check per-function graph invariants and return the violations found."""
    graph = to_networkx(ir)
    containers = ir.nodes_of_type("function")
    if containers:
        groups = [(fn.name, set(fn.body_node_ids)) for fn in containers]
    else:
        groups = [("<graph>", {n.id for n in ir.nodes})]

    problems = []
    for name, members in groups:
        starts = [n for n in members if graph.nodes[n]["type"] == "start"]
        ends = [n for n in members if graph.nodes[n]["type"] == "end"]
        if len(starts) != 1 or len(ends) != 1:
            problems.append(f"{name}: expected one start and one end, found {len(starts)} and {len(ends)}")
            continue
        start, end = starts[0], ends[0]

        reachable = nx.descendants(graph, start) | {start}
        for node_id in sorted(members - reachable):
            problems.append(f"{name}: {node_id} is unreachable from start")
        reaches_end = nx.ancestors(graph, end) | {end}
        for node_id in sorted(members - reaches_end):
            problems.append(f"{name}: {node_id} never reaches end")
    return problems
