from __future__ import annotations

import argparse
import json
import sys
import time
from typing import Any, Dict, List, Optional

from .core.cache import SWEEP_INTERVAL, AAAACache
from .core.resolver import DNSResolver, Resolver, SystemResolver
from .logging_config import setup_logging

VERSION = "0.1.0"


def _csv(s: Optional[str]) -> List[str]:
    if not s:
        return []
    return [x.strip() for x in s.split(",") if x.strip()]


def _build_resolver(args: argparse.Namespace) -> Resolver:
    servers = _csv(args.servers)
    if not servers:
        return SystemResolver()
    return DNSResolver(servers=servers, timeout=args.timeout, tries=args.tries)


def _write_json(out: Dict[str, Any], dest: str) -> None:
    if dest == "-":
        print(json.dumps(out, indent=2))
    else:
        with open(dest, "w", encoding="utf-8") as f:
            json.dump(out, f, indent=2)


def cmd_lookup(args: argparse.Namespace) -> int:
    cache = AAAACache(_build_resolver(args), cache=not args.no_cache, ttl=args.ttl)
    results: List[Dict[str, Any]] = []
    failed = False

    for host in args.hosts:
        try:
            address = cache.lookup(host)
        except Exception as e:
            failed = True
            results.append({"host": host, "error": str(e)})
            if not args.json:
                print(f"{host} AAAA: ERROR {e}", file=sys.stderr)
            continue
        results.append({"host": host, "address": address})
        if not args.json:
            print(f"{host} AAAA {address}")

    if args.json:
        _write_json({"results": results}, args.json)
    return 1 if failed else 0


def _print_entries(cache: AAAACache) -> None:
    now = time.time()
    entries = cache.snapshot()
    if not entries:
        print("  (empty)")
    for host, entry in sorted(entries.items()):
        print(f"  {host} {entry.address} age={now - entry.resolved_at:.0f}s")


def cmd_watch(args: argparse.Namespace) -> int:
    cache = AAAACache(_build_resolver(args), cache=True, ttl=args.ttl, sweep_interval=args.interval)
    for host in args.hosts:
        try:
            cache.lookup(host)
        except Exception as e:
            print(f"{host} AAAA: ERROR {e}", file=sys.stderr)

    print("[0] cache:")
    _print_entries(cache)

    rounds = 0
    try:
        while not args.rounds or rounds < args.rounds:
            time.sleep(args.interval)
            rounds += 1
            evicted = cache.sweep_once()
            print(f"[{rounds}] cache:" + (f" evicted={','.join(evicted)}" if evicted else ""))
            _print_entries(cache)
    except KeyboardInterrupt:
        pass
    return 0


def _add_resolver_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--servers", help="Comma-separated nameservers to query directly (default: system resolver)")
    p.add_argument("--timeout", type=float, default=2.0)
    p.add_argument("--tries", type=int, default=2)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="aaaacache", description="aaaacache: cached IPv6 (AAAA) host resolution")
    p.add_argument("--version", action="version", version=f"aaaacache {VERSION}")
    p.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--log-file", help="Also write detailed logs to this file")
    sub = p.add_subparsers(dest="cmd", required=True)

    # lookup
    a = sub.add_parser("lookup", help="Resolve the IPv6 address of one or more hosts")
    a.add_argument("hosts", nargs="+")
    a.add_argument("--ttl", type=int, default=60, help="Cache TTL in seconds")
    a.add_argument("--no-cache", action="store_true", help="Resolve every lookup, never store results")
    a.add_argument("--json", help="Write JSON output to file (or '-' for stdout)")
    _add_resolver_args(a)
    a.set_defaults(func=cmd_lookup)

    # watch
    w = sub.add_parser("watch", help="Cache hosts and show the periodic sweep refreshing/evicting them")
    w.add_argument("hosts", nargs="+")
    w.add_argument("--ttl", type=int, default=60, help="Cache TTL in seconds")
    w.add_argument("--interval", type=float, default=SWEEP_INTERVAL, help="Seconds between sweeps")
    w.add_argument("--rounds", type=int, default=0, help="Number of sweeps (0: until interrupted)")
    _add_resolver_args(w)
    w.set_defaults(func=cmd_watch)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "ttl", 0) < 0:
        parser.error("--ttl must be >= 0")
    setup_logging(args.log_level, log_file=args.log_file)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
