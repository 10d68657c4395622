"""
Disclosure CLI: inspect transcripts offline.

Usage examples:
    python -m disclosurectl.cli.disclose parse response.txt --kind response
    python -m disclosurectl.cli.disclose resolve response.txt --kind response --include state --include amount
    python -m disclosurectl.cli.disclose plan request.txt response.txt
"""

import argparse
import json
import sys
from pathlib import Path

from disclosure.ast.documents import load_request, load_response
from disclosure.base.config import get_config, setup_logging
from disclosure.errors import DisclosureError
from disclosure.grammar.nodes import NodeKind, RawMessage
from disclosure.grammar.parser import parse_request, parse_response
from disclosure.orchestrator import DisclosurePolicy, TranscriptDisclosureOrchestrator

EXIT_ERROR = 2


def _read(path: str) -> RawMessage:
    return RawMessage(Path(path).read_bytes())


def cmd_parse(args) -> int:
    raw = _read(args.file)
    config = get_config()
    parse = parse_request if args.kind == "request" else parse_response
    tree = parse(raw, max_json_depth=config.parser.max_json_depth)
    print(tree.pretty())
    return 0


def cmd_resolve(args) -> int:
    raw = _read(args.file)
    config = get_config()
    load = load_request if args.kind == "request" else load_response
    document = load(raw, max_json_depth=config.parser.max_json_depth)
    ranges = document.resolve_keypaths(args.include, args.exclude)
    print(json.dumps({
        "length": ranges.limit,
        "ranges": ranges.to_pairs(),
        "covered_bytes": ranges.covered_bytes,
    }))
    return 0


def cmd_plan(args) -> int:
    config = get_config()
    policy = DisclosurePolicy.from_config(config.policy)
    orchestrator = TranscriptDisclosureOrchestrator(limits=config.limits, parser_config=config.parser)
    prepared = orchestrator.prepare(_read(args.request), _read(args.response), policy)
    print(json.dumps({
        "status": prepared.response.status,
        "sent_ranges": prepared.sent_ranges.to_pairs(),
        "recv_ranges": prepared.recv_ranges.to_pairs(),
    }))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transcript disclosure tools")
    sub = parser.add_subparsers(dest="command", required=True)

    kinds = [NodeKind.REQUEST.value, NodeKind.RESPONSE.value]

    p = sub.add_parser("parse", help="Print the syntax tree of a transcript")
    p.add_argument("file")
    p.add_argument("--kind", choices=kinds, required=True)
    p.set_defaults(func=cmd_parse)

    r = sub.add_parser("resolve", help="Print the byte ranges named by keypaths")
    r.add_argument("file")
    r.add_argument("--kind", choices=kinds, required=True)
    r.add_argument("--include", action="append", default=[], metavar="KEYPATH")
    r.add_argument("--exclude", action="append", default=[], metavar="KEYPATH")
    r.set_defaults(func=cmd_resolve)

    pl = sub.add_parser("plan", help="Apply the configured policy to a request/response pair")
    pl.add_argument("request")
    pl.add_argument("response")
    pl.set_defaults(func=cmd_plan)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        return args.func(args)
    except DisclosureError as e:
        print(e.to_json(), file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
