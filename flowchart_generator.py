# flowchart_generator.py
from syntax_model import IRFunctionNode, IRGraph
from cfg_builder import node_label

NODE_STYLES = {
    "start": 'shape=ellipse, style=filled, fillcolor=lightgray',
    "end": 'shape=ellipse, style=filled, fillcolor=lightgray',
    "if": 'shape=diamond, style=filled, fillcolor=lightblue',
    "for": 'shape=parallelogram, style=filled, fillcolor=lightyellow',
    "while": 'shape=parallelogram, style=filled, fillcolor=lightyellow',
    "return": 'shape=ellipse, style=filled, fillcolor=lightgreen',
    "variable": 'shape=box',
    "expression": 'shape=box',
}


def _escape(text: str, limit: int = 50) -> str:
    text = text.splitlines()[0] if text else ""
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return text.replace("\\", "\\\\").replace('"', '\\"')


class FlowchartBuilder:
    """Graphviz DOT text for an IR graph. Function nodes become clusters."""

    def __init__(self):
        self.lines = []

    def build(self, ir: IRGraph, name="flow") -> str:
        self.lines = [f'digraph "{_escape(name)}" {{', "  node [shape=box];"]

        containers = [n for n in ir.nodes if isinstance(n, IRFunctionNode)]
        clustered = set()
        for idx, fn in enumerate(containers):
            self.lines.append(f"  subgraph cluster_{idx} {{")
            self.lines.append(f'    label="{_escape(node_label(fn))}";')
            for node_id in fn.body_node_ids:
                self._node(ir.node(node_id), indent="    ")
                clustered.add(node_id)
            self.lines.append("  }")

        for node in ir.nodes:
            if isinstance(node, IRFunctionNode) or node.id in clustered:
                continue
            self._node(node)

        for edge in ir.edges:
            attrs = f' [label="{_escape(edge.label)}"]' if edge.label else ""
            self.lines.append(f"  {edge.source} -> {edge.target}{attrs};")

        self.lines.append("}")
        return "\n".join(self.lines)

    def _node(self, node, indent="  "):
        style = NODE_STYLES.get(node.type, "shape=box")
        self.lines.append(f'{indent}{node.id} [label="{_escape(node_label(node))}", {style}];')


def simple_dot_for_graph(ir: IRGraph, name="flow") -> str:
    builder = FlowchartBuilder()
    return builder.build(ir, name)
