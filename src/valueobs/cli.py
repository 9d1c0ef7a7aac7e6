"""
Command-line interface.

    valueobs expand models.py -o models_observed.py
    valueobs report models.py --format yaml
"""

import argparse
import logging
import sys
from typing import List, Optional

from valueobs import __version__
from valueobs.backends.python_generator import expand_unit, generate_python
from valueobs.config import ConfigError, load_config
from valueobs.model import Diagnostic
from valueobs.serialization import report_to_json, report_to_yaml
from valueobs.source_parser import SourceParseError, parse_file


logger = logging.getLogger("valueobs")


def _print_diagnostics(diagnostics: List[Diagnostic], path: str) -> None:
    for diagnostic in diagnostics:
        print(diagnostic.format(path), file=sys.stderr)


def _cmd_expand(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    unit = parse_file(args.source, config=config)
    expansions, diagnostics = expand_unit(unit, config)
    _print_diagnostics(diagnostics, unit.path)

    text = generate_python(unit, expansions, config)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info("Wrote %s", args.output)
    else:
        sys.stdout.write(text)

    return 1 if diagnostics else 0


def _cmd_report(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    unit = parse_file(args.source, config=config)
    expansions, diagnostics = expand_unit(unit, config)

    if args.format == "yaml":
        sys.stdout.write(report_to_yaml(expansions, unit.path))
    else:
        sys.stdout.write(report_to_json(expansions, unit.path) + "\n")

    return 1 if diagnostics else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="valueobs",
        description="Generate change-observable record classes from annotated Python source",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity")
    parser.add_argument("--config", default=None, help="Path to a valueobs YAML config")

    sub = parser.add_subparsers(dest="command", required=True)

    expand = sub.add_parser("expand", help="Write the expanded source")
    expand.add_argument("source", help="Python source file")
    expand.add_argument("-o", "--output", default=None, help="Output file (default: stdout)")
    expand.set_defaults(handler=_cmd_expand)

    report = sub.add_parser("report", help="Describe what would be generated")
    report.add_argument("source", help="Python source file")
    report.add_argument("--format", choices=["json", "yaml"], default="json")
    report.set_defaults(handler=_cmd_report)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return args.handler(args)
    except (FileNotFoundError, SourceParseError, ConfigError) as e:
        print(f"valueobs: error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
