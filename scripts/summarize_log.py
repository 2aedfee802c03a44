#!/usr/bin/env python
"""Summarize a CSP NDJSON log offline, e.g. an archived csp-2026-01-01.ndjson."""
import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from csp_collector.services.aggregation import count_blocked_uris, summarize_lines


def main(argv=None):
    parser = argparse.ArgumentParser(description="Count CSP violations in an NDJSON report log.")
    parser.add_argument("input", help="Path to a csp-<YYYY-MM-DD>.ndjson file")
    parser.add_argument("--top", type=int, metavar="N",
                        help="Print the N most blocked URIs instead of the directive breakdown")
    parser.add_argument("-o", "--output", help="Output file (defaults to stdout)")
    args = parser.parse_args(argv)

    try:
        lines = Path(args.input).read_text(encoding="utf-8").split("\n")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Failed to read log: {exc}", file=sys.stderr)
        return 2

    if args.top is not None:
        if args.top <= 0:
            print("--top must be a positive integer", file=sys.stderr)
            return 2
        ranked = count_blocked_uris(lines).most_common(args.top)
        result = [{"blocked_uri": uri, "count": count} for uri, count in ranked]
    else:
        result = summarize_lines(lines)

    payload = json.dumps(result, indent=2)
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
