#!/usr/bin/env python3
"""
scrapesynth CLI

Usage:
    scrapesynth synthesize https://example.gov/meetings -f date -f time -f location
    scrapesynth synthesize https://example.gov/meetings -f date --json > result.json
    scrapesynth serve --port 3003
"""

import argparse
import asyncio
import json
import sys

from .config import Config
from .diagnostics import get_logger
from .errors import SynthesisError
from .progress import ProgressEmitter

logger = get_logger(__name__)

EVENT_ICONS = {"info": "·", "warning": "!", "success": "+", "error": "x"}


def _stderr_sink(event):
    if event["type"] == "complete":
        return
    icon = EVENT_ICONS.get(event["type"], "-")
    print(f"[{icon}] {event.get('message', '')}", file=sys.stderr, flush=True)


def cmd_synthesize(args) -> int:
    from .synthesizer import ScraperSynthesizer

    cfg = Config()
    if args.model:
        cfg.ollama_model = args.model
    if args.no_run_log:
        cfg.run_logs = False

    synth = ScraperSynthesizer(cfg)
    progress = ProgressEmitter(None if args.quiet else _stderr_sink)
    try:
        result = asyncio.run(synth.synthesize(args.url, args.field, progress=progress))
    except SynthesisError as e:
        logger.error(f"❌ {e}")
        return 2

    payload = result.to_payload()
    if args.json:
        payload.pop("html", None)
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(payload["output"])
        status = "validated" if result.validated else f"NOT validated ({result.result.field_coverage}% coverage)"
        print(
            f"# {status}: {result.result.item_count} items, "
            f"{result.total_attempts} attempts, {result.supervisor_iterations} supervisor iteration(s)",
            file=sys.stderr,
        )
        for suggestion in (result.result.diagnostics or {}).get("suggestions", []):
            print(f"#  - {suggestion}", file=sys.stderr)
    return 0 if result.validated else 1


def cmd_serve(args) -> int:
    from . import server

    if args.port:
        server.config.api_port = args.port
    server.run_server()
    return 0


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        prog="scrapesynth",
        description="Synthesize and validate a web scraper for a page and a list of fields",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    synth_parser = subparsers.add_parser('synthesize', help='Synthesize a scraper for a URL')
    synth_parser.add_argument('url', help='Target page URL')
    synth_parser.add_argument('--field', '-f', action='append', required=True, help='Required field (repeatable)')
    synth_parser.add_argument('--model', '-m', help='Ollama model (overrides SCRAPESYNTH_MODEL)')
    synth_parser.add_argument('--json', action='store_true', help='Print the full result as JSON')
    synth_parser.add_argument('--no-run-log', action='store_true', help='Do not write a markdown run log')
    synth_parser.add_argument('--quiet', '-q', action='store_true', help='No progress output')
    synth_parser.set_defaults(func=cmd_synthesize)

    serve_parser = subparsers.add_parser('serve', help='Run the HTTP API server')
    serve_parser.add_argument('--port', '-p', type=int, help='Port (overrides SCRAPESYNTH_API_PORT)')
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
