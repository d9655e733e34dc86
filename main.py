#!/usr/bin/env python3
"""
Flowgraph CLI - control-flow graphs and function overviews for source files.

Usage:
    flowgraph micro <file> [--function NAME|*] [--format json|dot] [--output FILE]
    flowgraph macro <file> [--explain] [--output FILE]
    flowgraph scan [path] [--max-files N] [--output FILE]

Files are Python sources (``.py``) or JSON AST dumps (``.json``) in the
``{"type": "Program", "body": [...]}`` format.
"""
import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from ast_parser import load_program
from cfg_builder import ALL_FUNCTIONS, CFGBuilder, verify_cfg
from config import CONFIG_FILENAME, AnalyzerConfig, find_config, load_config
from flowchart_generator import simple_dot_for_graph
from macro_summarizer import MacroSummarizer
from syntax_model import InvalidInputError
from utils import explain_summary

logger = logging.getLogger("flowgraph")


# ---------- single-file commands ----------

def run_micro(file_path: Path, function: Optional[str], fmt: str, check: bool = False) -> str:
    program, language = load_program(file_path)
    ir = CFGBuilder().transform(program, {"language": language, "file": str(file_path)}, function)
    logger.info("IR generated: %d nodes, %d edges", len(ir.nodes), len(ir.edges))
    if check:
        for problem in verify_cfg(ir):
            logger.warning("graph check: %s", problem)
    if fmt == "dot":
        return simple_dot_for_graph(ir, name=function if function and function != ALL_FUNCTIONS else file_path.stem)
    return json.dumps(ir.to_dict(), indent=2, ensure_ascii=False)


def run_macro(file_path: Path, explain: bool = False) -> str:
    program, language = load_program(file_path)
    summary = MacroSummarizer().summarize(program, {"language": language, "file": str(file_path)})
    logger.info("Macro view generated: %d functions", len(summary.functions))
    data = summary.to_dict()
    if explain:
        data["explanations"] = explain_summary(summary)
    return json.dumps(data, indent=2, ensure_ascii=False)


# ---------- batch scan ----------

def _is_ast_dump(path: Path) -> bool:
    """False only for JSON that parses but is not a Program tree; unreadable files are kept and fail later."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return True
    return isinstance(data, dict) and data.get("type") == "Program"


def discover_files(root: Path, config: AnalyzerConfig) -> List[Path]:
    if root.is_file():
        return [root]
    files = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix not in config.extensions:
            continue
        if any(part in config.exclude_dirs for part in path.relative_to(root).parts[:-1]):
            continue
        if path.name == CONFIG_FILENAME or (path.suffix == ".json" and not _is_ast_dump(path)):
            logger.debug("Skipping %s: not a JSON AST dump", path)
            continue
        files.append(path)
    return files


def analyze_file(file_path: Path) -> dict:
    program, language = load_program(file_path)
    metadata = {"language": language, "file": str(file_path)}
    ir = CFGBuilder().transform(program, metadata, ALL_FUNCTIONS)
    summary = MacroSummarizer().summarize(program, metadata)
    return {
        "file": str(file_path),
        "language": language,
        "nodes": len(ir.nodes),
        "edges": len(ir.edges),
        "diagnostics": list(ir.diagnostics),
        "graphProblems": verify_cfg(ir) if ir.nodes else [],
        "summary": summary.to_dict(),
    }


def scan(root: Path, config: AnalyzerConfig) -> dict:
    """Analyze every matching file under ``root``; one file failing never stops the run."""
    files = discover_files(root, config)
    if len(files) > config.max_files:
        logger.warning("Found %d files, analyzing the first %d", len(files), config.max_files)
        files = files[: config.max_files]

    results, failures = [], []
    for file_path in files:
        try:
            results.append(analyze_file(file_path))
        except Exception as e:
            logger.warning("Failed to process %s: %s", file_path, e)
            failures.append({"file": str(file_path), "error": f"{type(e).__name__}: {e}"})

    logger.info("Analyzed %d of %d files", len(results), len(files))
    return {
        "attempted": len(files),
        "succeeded": len(results),
        "failed": failures,
        "files": results,
    }


# ---------- entry point ----------

def _validate_path(path: str, must_be_file: bool = False) -> Path:
    p = Path(path)
    if not p.exists():
        print(f"Error: Path not found: {path}", file=sys.stderr)
        sys.exit(1)
    if must_be_file and not p.is_file():
        print(f"Error: Expected a file, got directory: {path}", file=sys.stderr)
        sys.exit(1)
    return p


def _emit(text: str, output: Optional[str]):
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowgraph",
        description="Control-flow graphs and function overviews for source files",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress (INFO level)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    parser.add_argument("--config", help="JSON config file (default: .flowgraph.json next to the input)")
    parser.add_argument("-o", "--output", help="Write the result to a file instead of stdout")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # accepted after the subcommand too; SUPPRESS keeps a global -o from being reset
    output_p = argparse.ArgumentParser(add_help=False)
    output_p.add_argument("-o", "--output", default=argparse.SUPPRESS, help="Write the result to a file instead of stdout")

    micro_p = subparsers.add_parser("micro", parents=[output_p], help="Control-flow graph of one function")
    micro_p.add_argument("file", help="Source file or JSON AST")
    micro_p.add_argument(
        "-f", "--function",
        help="Function name (default: first function; '*' for every function)",
    )
    micro_p.add_argument("--format", choices=["json", "dot"], help="Output format")
    micro_p.add_argument("--check", action="store_true", help="Log graph invariant violations")

    macro_p = subparsers.add_parser("macro", parents=[output_p], help="Per-function metrics and call graph")
    macro_p.add_argument("file", help="Source file or JSON AST")
    macro_p.add_argument("--explain", action="store_true", help="Add plain-language explanations")

    scan_p = subparsers.add_parser("scan", parents=[output_p], help="Analyze every supported file under a path")
    scan_p.add_argument("path", nargs="?", default=".", help="Directory to scan")
    scan_p.add_argument("--max-files", type=int, help="Stop after this many files")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    target = Path(getattr(args, "file", None) or getattr(args, "path", "."))
    warnings: List[str] = []
    config_path = Path(args.config) if args.config else find_config(target) if target.exists() else None
    config = load_config(config_path, warnings)
    if getattr(args, "max_files", None):
        config = replace(config, max_files=args.max_files)

    level = logging.INFO if args.verbose else logging.ERROR if args.quiet else config.log_level
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    for warning in warnings:
        logger.warning(warning)

    try:
        if args.command == "micro":
            path = _validate_path(args.file, must_be_file=True)
            _emit(run_micro(path, args.function, args.format or config.output_format, args.check), args.output)
        elif args.command == "macro":
            path = _validate_path(args.file, must_be_file=True)
            _emit(run_macro(path, args.explain), args.output)
        elif args.command == "scan":
            path = _validate_path(args.path)
            report = scan(path, config)
            _emit(json.dumps(report, indent=2, ensure_ascii=False), args.output)
            print(f"Analyzed {report['succeeded']} of {report['attempted']} files", file=sys.stderr)
    except (InvalidInputError, LookupError, SyntaxError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
