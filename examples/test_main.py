import sys, os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json

import pytest

from config import AnalyzerConfig, find_config, load_config
from flowchart_generator import simple_dot_for_graph
from cfg_builder import ALL_FUNCTIONS, CFGBuilder
from ast_parser import PythonParser
from main import discover_files, main, scan
from utils import explain_summary
from macro_summarizer import MacroSummarizer

GOOD = """
def total(values):
    acc = 0
    for v in values:
        acc += v
    return acc

def show(values):
    print(total(values))
"""


@pytest.fixture
def project(tmp_path):
    (tmp_path / "good.py").write_text(GOOD, encoding="utf-8")
    (tmp_path / "broken.py").write_text("def oops(:\n", encoding="utf-8")
    (tmp_path / "tree.json").write_text(json.dumps({
        "type": "Program",
        "language": "TypeScript",
        "body": [{"type": "FunctionDeclaration", "name": "f", "parameters": [],
                  "body": [{"type": "LabeledStatement"}]}],
    }), encoding="utf-8")
    (tmp_path / "bad.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
    skipped = tmp_path / "node_modules"
    skipped.mkdir()
    (skipped / "dep.py").write_text("def dep():\n    pass\n", encoding="utf-8")
    return tmp_path


class TestScan:
    def test_failures_are_isolated(self, project):
        report = scan(project, AnalyzerConfig())

        assert report["attempted"] == 4
        assert report["succeeded"] == 2
        failed = {os.path.basename(f["file"]) for f in report["failed"]}
        assert failed == {"bad.json", "broken.py"}

        by_name = {os.path.basename(r["file"]): r for r in report["files"]}
        good = by_name["good.py"]
        assert good["language"] == "Python"
        assert good["graphProblems"] == []
        assert [f["name"] for f in good["summary"]["functions"]] == ["total", "show"]
        assert by_name["tree.json"]["diagnostics"]

    def test_file_cap(self, project):
        report = scan(project, AnalyzerConfig(max_files=1))
        assert report["attempted"] == 1

    def test_discovery_skips_excluded_dirs_and_extensions(self, project):
        names = [p.name for p in discover_files(project, AnalyzerConfig())]
        assert names == ["bad.json", "broken.py", "good.py", "tree.json"]

    def test_single_file_root(self, project):
        assert discover_files(project / "good.py", AnalyzerConfig()) == [project / "good.py"]

    def test_config_and_foreign_json_are_not_analyzed(self, project):
        (project / ".flowgraph.json").write_text(json.dumps({"max_files": 50}), encoding="utf-8")
        (project / "package.json").write_text(json.dumps({"name": "demo"}), encoding="utf-8")

        names = [p.name for p in discover_files(project, AnalyzerConfig())]
        assert names == ["bad.json", "broken.py", "good.py", "tree.json"]
        report = scan(project, AnalyzerConfig())
        assert report["attempted"] == 4
        failed = {os.path.basename(f["file"]) for f in report["failed"]}
        assert failed == {"bad.json", "broken.py"}


class TestConfig:
    def test_defaults_without_file(self, tmp_path):
        warnings = []
        assert load_config(None, warnings) == AnalyzerConfig()
        assert find_config(tmp_path) is None
        assert warnings == []

    def test_values_and_warnings(self, tmp_path):
        path = tmp_path / ".flowgraph.json"
        path.write_text(json.dumps({
            "max_files": 5,
            "extensions": ".py",
            "log_level": "debug",
            "output_format": "svg",
            "theme": "dark",
        }), encoding="utf-8")
        warnings = []
        config = load_config(path, warnings)

        assert find_config(tmp_path) == path
        assert config.max_files == 5
        assert config.extensions == (".py",)
        assert config.log_level == "DEBUG"
        assert config.output_format == "json"
        assert config.extra == {"theme": "dark"}
        assert len(warnings) == 1 and "output_format" in warnings[0]

    def test_unreadable_config(self, tmp_path):
        path = tmp_path / "cfg.json"
        path.write_text("[1, 2]", encoding="utf-8")
        warnings = []
        assert load_config(path, warnings) == AnalyzerConfig()
        assert "expected a JSON object" in warnings[0]

    def test_missing_explicit_config(self, tmp_path):
        warnings = []
        assert load_config(tmp_path / "missing.json", warnings) == AnalyzerConfig()
        assert len(warnings) == 1 and "not found" in warnings[0]


class TestCli:
    def test_micro_json(self, project, capsys):
        assert main(["micro", str(project / "good.py"), "--function", "total"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["metadata"]["sourceLanguage"] == "Python"
        assert {n["type"] for n in data["nodes"]} >= {"start", "end", "for", "variable", "return"}

    def test_micro_dot_all_functions(self, project, capsys):
        assert main(["micro", str(project / "good.py"), "-f", "*", "--format", "dot"]) == 0
        out = capsys.readouterr().out
        assert out.startswith('digraph "good"')
        assert "subgraph cluster_0" in out and "subgraph cluster_1" in out
        assert '[label="loop"]' in out

    def test_macro_with_explanations(self, project, capsys):
        assert main(["macro", str(project / "good.py"), "--explain"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert [(c["caller"], c["callee"]) for c in data["callGraph"]] == [("show", "print")]
        assert "total" in data["explanations"]

    def test_scan_writes_report(self, project, tmp_path, capsys):
        out_file = tmp_path / "report.json"
        assert main(["-o", str(out_file), "scan", str(project), "--max-files", "3"]) == 0
        report = json.loads(out_file.read_text(encoding="utf-8"))
        assert report["attempted"] == 3
        assert "of 3 files" in capsys.readouterr().err

    def test_output_after_subcommand(self, project, tmp_path):
        report_file = tmp_path / "scan.json"
        assert main(["scan", str(project), "--output", str(report_file)]) == 0
        assert json.loads(report_file.read_text(encoding="utf-8"))["attempted"] == 4

        graph_file = tmp_path / "total.dot"
        assert main(["micro", str(project / "good.py"), "-f", "total", "--format", "dot", "-o", str(graph_file)]) == 0
        assert graph_file.read_text(encoding="utf-8").startswith('digraph "total"')

    def test_unknown_function_is_an_error(self, project, capsys):
        assert main(["micro", str(project / "good.py"), "-f", "missing"]) == 1
        assert "missing" in capsys.readouterr().err

    def test_syntax_error_is_an_error(self, project):
        assert main(["macro", str(project / "broken.py")]) == 1

    def test_missing_path_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["micro", str(tmp_path / "nope.py")])


def test_dot_output_styles_nodes():
    program = PythonParser().parse(GOOD)
    ir = CFGBuilder().transform(program, {"language": "Python", "file": "good.py"}, "total")
    dot = simple_dot_for_graph(ir, "total")

    assert 'label="for v in values", shape=parallelogram' in dot
    assert 'label="return acc", shape=ellipse' in dot
    assert '[label="loop-continue"]' in dot
    assert dot.rstrip().endswith("}")


def test_explanations_mention_shape_and_recursion():
    source = "def fact(n):\n    if n:\n        fact(n - 1)\n    return 1\n"
    summary = MacroSummarizer().summarize(PythonParser().parse(source), {"language": "Python", "file": "f.py"})
    text = explain_summary(summary)["fact"]
    assert "complexity **2**" in text
    assert "conditional branches but no loops" in text
    assert "recursive" in text
