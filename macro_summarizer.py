# macro_summarizer.py
"""
Whole-file overview: one summary per top-level function plus a call graph.

Complexity here is additive and recursive rather than McCabe's
edges - nodes + 2: every ``if`` and every loop adds one decision, nested
decisions add theirs, and the function's base path counts once. A function
with no branching scores 1.

Calls are found heuristically. Only expression statements are scanned, and
only a leading identifier directly followed by ``(`` counts, so
``helper(x)`` is a call to ``helper`` while ``obj.helper(x)``,
``return helper(x)`` and ``if helper(x)`` are not seen.
"""
import logging
import re
from typing import List, Mapping, Sequence

import networkx as nx

from syntax_model import (
    LOOP_TYPES,
    ExpressionStatement,
    FunctionCall,
    FunctionDeclaration,
    FunctionSummary,
    IfStatement,
    InvalidInputError,
    IRMetadata,
    MacroSummary,
    Program,
    coerce_metadata,
    program_from_dict,
)

logger = logging.getLogger(__name__)

CALL_PATTERN = re.compile(r"\s*([A-Za-z_$][\w$]*)\(")


def decision_count(body: Sequence) -> int:
    """Branch and loop constructs in ``body``, nested ones included."""
    count = 0
    for node in body or ():
        if isinstance(node, IfStatement):
            count += 1 + decision_count(node.then_branch)
            if node.else_branch is not None:
                count += decision_count(node.else_branch)
        elif isinstance(node, LOOP_TYPES):
            count += 1 + decision_count(node.body)
    return count


def calculate_complexity(body: Sequence) -> int:
    return 1 + decision_count(body)


def has_loops(body: Sequence) -> bool:
    for node in body or ():
        if isinstance(node, LOOP_TYPES):
            return True
        if isinstance(node, IfStatement):
            if has_loops(node.then_branch) or (node.else_branch and has_loops(node.else_branch)):
                return True
    return False


def has_conditionals(body: Sequence) -> bool:
    for node in body or ():
        if isinstance(node, IfStatement):
            return True
        if isinstance(node, LOOP_TYPES) and has_conditionals(node.body):
            return True
    return False


def extract_callee(expression: str):
    match = CALL_PATTERN.match(expression or "")
    return match.group(1) if match else None


class MacroSummarizer:
    def __init__(self):
        self.function_counter = 0
        self.call_counter = 0

    def summarize(self, program, metadata) -> MacroSummary:
        """Summarize every top-level function of ``program``."""
        if program is None:
            raise InvalidInputError("AST root is missing")
        if isinstance(program, Mapping):
            program = program_from_dict(program)
        if not isinstance(program, Program):
            raise InvalidInputError(f"expected a Program, got {type(program).__name__}")
        meta = coerce_metadata(metadata)

        self.function_counter = 0
        self.call_counter = 0
        functions: List[FunctionSummary] = []
        calls: List[FunctionCall] = []

        for fn in program.functions():
            functions.append(self._summarize_function(fn))
            calls.extend(self._extract_calls(fn))

        logger.debug("%s: %d functions, %d calls", meta.file, len(functions), len(calls))
        return MacroSummary(IRMetadata.stamp(meta), tuple(functions), tuple(calls))

    def _summarize_function(self, fn: FunctionDeclaration) -> FunctionSummary:
        summary = FunctionSummary(
            id=f"func_{self.function_counter}",
            name=fn.name,
            parameters=tuple(p.render() for p in fn.parameters),
            return_type=fn.return_type,
            line_count=fn.location.line_span,
            complexity=calculate_complexity(fn.body),
            has_loops=has_loops(fn.body),
            has_conditionals=has_conditionals(fn.body),
            location=fn.location,
        )
        self.function_counter += 1
        return summary

    def _extract_calls(self, fn: FunctionDeclaration) -> List[FunctionCall]:
        calls: List[FunctionCall] = []
        self._find_calls(fn.body, fn.name, calls)
        return calls

    def _find_calls(self, body: Sequence, caller: str, calls: List[FunctionCall]):
        for node in body or ():
            if isinstance(node, ExpressionStatement):
                callee = extract_callee(node.expression)
                if callee:
                    calls.append(FunctionCall(f"call_{self.call_counter}", caller, callee, node.location))
                    self.call_counter += 1
            elif isinstance(node, IfStatement):
                self._find_calls(node.then_branch, caller, calls)
                if node.else_branch is not None:
                    self._find_calls(node.else_branch, caller, calls)
            elif isinstance(node, LOOP_TYPES):
                self._find_calls(node.body, caller, calls)


# ---------- call graph views ----------

def call_digraph(summary: MacroSummary) -> nx.DiGraph:
    """Function names as nodes, one edge per distinct caller/callee pair.

    Callees that are not defined in the file are kept and marked ``external``.
    """
    graph = nx.DiGraph()
    for fn in summary.functions:
        graph.add_node(fn.name, external=False, complexity=fn.complexity)
    for call in summary.call_graph:
        if call.callee not in graph:
            graph.add_node(call.callee, external=True)
        if graph.has_edge(call.caller, call.callee):
            graph[call.caller][call.callee]["count"] += 1
        else:
            graph.add_edge(call.caller, call.callee, count=1)
    return graph


def recursive_functions(summary: MacroSummary) -> List[str]:
    """Names of functions that sit on a call cycle, self-calls included."""
    graph = call_digraph(summary)
    names = set()
    for component in nx.strongly_connected_components(graph):
        if len(component) > 1:
            names.update(component)
        else:
            (name,) = component
            if graph.has_edge(name, name):
                names.add(name)
    return sorted(names)
