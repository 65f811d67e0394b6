"""Query one SNTP server and report clock offset statistics."""

from __future__ import annotations

import argparse
import json
import math
import statistics
import time

from .client import DEFAULT_TIMEOUT, Client, SntpResult
from .clock import default_server, parse_server
from .errors import InvalidArgument, SntpError
from .message import describe_reference_id


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Query an SNTP server and print local clock offset statistics.",
    )
    parser.add_argument(
        "--server",
        default=default_server(),
        help="SNTP server as host[:port] (default: %(default)s)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Server port, overrides the one in --server (default: 123)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Per-query timeout in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=1,
        help="Number of queries to send (default: %(default)s)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Pause between queries in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON instead of text output",
    )
    return parser.parse_args(argv)


def run_queries(host: str, port: int, timeout: float, count: int, interval: float) -> tuple[list[SntpResult], list[str]]:
    results: list[SntpResult] = []
    errors: list[str] = []

    with Client(timeout=timeout) as client:
        for index in range(count):
            if index:
                time.sleep(interval)
            try:
                results.append(client.query(host, port))
            except SntpError as exc:
                errors.append(str(exc))
    return results, errors


def build_report(server: str, results: list[SntpResult], queries: int, errors: list[str] | None = None) -> dict:
    report = {
        "generated_at": int(time.time()),
        "server": server,
        "queries": queries,
        "replies": len(results),
        "errors": list(errors or []),
        "samples": [],
        "stats": None,
    }

    if not results:
        return report

    report["samples"] = [
        {
            "offset_ms": result.offset_ms,
            "delay_ms": result.delay_ms,
            "stratum": result.stratum,
            "leap": result.leap,
            "version": result.version,
            "reference_id": describe_reference_id(result.reference_id, result.stratum),
        }
        for result in results
    ]

    offsets = [r.offset_ms for r in results]
    delays = [r.delay_ms for r in results]
    rms = math.sqrt(sum(v * v for v in offsets) / len(offsets))
    report["stats"] = {
        "min_offset_ms": min(offsets),
        "max_offset_ms": max(offsets),
        "mean_offset_ms": round(statistics.mean(offsets), 3),
        "median_offset_ms": round(statistics.median(offsets), 3),
        "stdev_offset_ms": round(statistics.stdev(offsets), 3) if len(offsets) > 1 else None,
        "rms_offset_ms": round(rms, 3),
        "mean_delay_ms": round(statistics.mean(delays), 3),
        "min_delay_ms": min(delays),
    }
    return report


def print_report(report: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report, separators=(",", ":")))
        return

    print(f"Server        : {report['server']}")
    print(f"Queries       : {report['queries']}")
    print(f"Replies       : {report['replies']}")

    for error in report["errors"]:
        print(f"  error: {error}")

    if not report["samples"]:
        return

    print("\nSamples:")
    for sample in report["samples"]:
        print(
            f"  offset={sample['offset_ms']:+8d} ms delay={sample['delay_ms']:6d} ms "
            f"stratum={sample['stratum']:<2} ref={sample['reference_id']} "
            f"LI={sample['leap']} VN={sample['version']}"
        )

    stats = report["stats"]
    print("\nOffset statistics (ms):")
    print(f"  min          : {stats['min_offset_ms']:+d}")
    print(f"  max          : {stats['max_offset_ms']:+d}")
    print(f"  mean         : {stats['mean_offset_ms']:+.3f}")
    print(f"  median       : {stats['median_offset_ms']:+.3f}")
    if stats["stdev_offset_ms"] is not None:
        print(f"  stdev        : {stats['stdev_offset_ms']:.3f}")
    else:
        print("  stdev        : n/a")
    print(f"  RMS          : {stats['rms_offset_ms']:.3f}")
    print(f"  mean delay   : {stats['mean_delay_ms']:.3f}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        host, port = parse_server(args.server)
        if args.port is not None:
            if not 1 <= args.port <= 65535:
                raise InvalidArgument(f"port out of range: {args.port}")
            port = args.port
        if args.count < 1:
            raise InvalidArgument("--count must be at least 1")
        if args.timeout < 0 or args.interval < 0:
            raise InvalidArgument("--timeout and --interval must not be negative")
    except InvalidArgument as exc:
        print(f"Error: {exc}")
        return 2

    results, errors = run_queries(host, port, args.timeout, args.count, args.interval)
    report = build_report(f"{host}:{port}", results, queries=args.count, errors=errors)
    print_report(report, as_json=args.json)
    return 0 if results else 1


if __name__ == "__main__":
    raise SystemExit(main())
