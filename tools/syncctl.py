#!/usr/bin/env python3
# ============================================================================
# SYNCCTL - COMMAND LINE CLIENT
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Tool - CLI over the HTTP API
# PURPOSE: Create primitives and run client operations from a shell
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
syncctl - drive the sync controller's HTTP API.

Usage:
    syncctl <kind> <verb> [name] [options]

Examples:
    # Mutex with a 30s TTL, then lock it
    python tools/syncctl.py mutex create db-migration --ttl 30s
    python tools/syncctl.py mutex lock db-migration --holder job-7 --timeout 10

    # Semaphore with 3 permits
    python tools/syncctl.py semaphore create api-limit --permits 3
    python tools/syncctl.py semaphore acquire api-limit --holder worker-1

    # Barrier of 5 that opens at 3 and fails after an hour
    python tools/syncctl.py barrier create start --expected 5 --quorum 3 --timeout 1h
    python tools/syncctl.py barrier arrive start --holder worker-1

    # Gate waiting on a semaphore and a barrier
    python tools/syncctl.py gate create deploy \\
        --condition Semaphore:api-limit:2 --condition Barrier:start:Open
    python tools/syncctl.py gate wait deploy --timeout 5m

    # WaitGroup
    python tools/syncctl.py waitgroup add batch --delta 3
    python tools/syncctl.py waitgroup done batch

Server: --server or $SYNC_API_URL (default http://localhost:8000).
Holder: --holder or $HOSTNAME, else sdk-<unix timestamp> (decided server-side).
"""

import argparse
import json
import os
import sys
from typing import Any, Dict, List, Optional, Tuple

import httpx

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.timeutil import parse_go_duration

API_PREFIX = "/api/v1"

# CLI kind -> URL path segment
KIND_PATHS = {
    "mutex": "mutexes",
    "rwmutex": "rwmutexes",
    "semaphore": "semaphores",
    "permit": "permits",
    "barrier": "barriers",
    "arrival": "arrivals",
    "lease": "leases",
    "leaserequest": "leaserequests",
    "gate": "gates",
    "once": "onces",
    "waitgroup": "waitgroups",
    "job": "jobs",
}

COMMON_VERBS = ("create", "get", "list", "delete")

KIND_VERBS = {
    "mutex": ("lock", "unlock"),
    "rwmutex": ("rlock", "lock", "unlock"),
    "semaphore": ("acquire", "release", "permits"),
    "barrier": ("arrive", "wait"),
    "lease": ("acquire", "renew", "release"),
    "gate": ("wait",),
    "once": ("execute",),
    "waitgroup": ("add", "done", "wait"),
}

# Verbs that block server-side and take a wait timeout
WAITING_VERBS = {"lock", "rlock", "acquire", "wait"}


class UsageError(Exception):
    """Bad combination of arguments."""


def seconds(text: Optional[str]) -> Optional[float]:
    """'30', '30s', '5m', '1h30m' -> seconds."""
    if text is None:
        return None
    try:
        return float(text)
    except ValueError:
        return parse_go_duration(text).total_seconds()


def parse_condition(text: str) -> Dict[str, Any]:
    """
    TYPE:NAME[:ARG] -> gate condition.

    ARG is the required available count for Semaphore conditions and the
    target state for every other type. NAME may be namespace/name.
    """
    parts = text.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise UsageError(f"Invalid condition {text!r}, expected TYPE:NAME[:ARG]")

    ctype, ref = parts[0], parts[1]
    condition: Dict[str, Any] = {"type": ctype}
    if "/" in ref:
        condition["namespace"], condition["name"] = ref.split("/", 1)
    else:
        condition["name"] = ref

    if len(parts) > 2 and parts[2]:
        if ctype == "Semaphore":
            try:
                condition["value"] = int(parts[2])
            except ValueError:
                raise UsageError(f"Semaphore condition value must be an integer: {parts[2]!r}")
        else:
            condition["state"] = parts[2]
    return condition


def build_spec(args: argparse.Namespace) -> Dict[str, Any]:
    """Spec for `create` from the flags that were given."""
    spec: Dict[str, Any] = {}
    if args.spec:
        spec.update(json.loads(args.spec))
    if args.ttl is not None:
        spec["ttl"] = args.ttl
    if args.permits is not None:
        spec["permits"] = args.permits
    if args.expected is not None:
        spec["expected"] = args.expected
    if args.quorum is not None:
        spec["quorum"] = args.quorum
    if args.timeout is not None:
        spec["timeout"] = args.timeout
    if args.priority is not None:
        spec["priority"] = args.priority
    if args.condition:
        spec["conditions"] = [parse_condition(c) for c in args.condition]
    return spec


def build_request(args: argparse.Namespace) -> Tuple[str, str, Optional[Dict[str, Any]], Optional[Dict[str, str]]]:
    """
    Turn parsed arguments into (method, path, json body, query params).

    Raises:
        UsageError: verb not valid for the kind, or name missing
    """
    kind, verb, ns = args.kind, args.verb, args.namespace
    allowed = COMMON_VERBS + KIND_VERBS.get(kind, ())
    if verb not in allowed:
        raise UsageError(f"{kind} does not support {verb!r} (choose from {', '.join(allowed)})")

    plural = KIND_PATHS[kind]

    if verb == "list":
        params = {"namespace": ns} if args.all_namespaces is False else None
        return "GET", f"{API_PREFIX}/{plural}", None, params

    if not args.name:
        raise UsageError(f"{kind} {verb} needs a name")

    base = f"{API_PREFIX}/{plural}/{ns}/{args.name}"

    if verb == "create":
        body = {"name": args.name, "spec": build_spec(args), "labels": dict(args.label or [])}
        return "POST", f"{API_PREFIX}/{plural}/{ns}", body, None
    if verb == "get":
        return "GET", base, None, None
    if verb == "delete":
        return "DELETE", base, None, None
    if verb == "permits":
        return "GET", f"{base}/permits", None, None

    body: Dict[str, Any] = {}
    if verb in ("lock", "rlock", "acquire", "unlock", "release", "renew", "arrive"):
        body["holder"] = args.holder
    if verb in ("lock", "rlock", "acquire") and args.ttl is not None:
        body["ttl"] = args.ttl
    if verb in WAITING_VERBS:
        body["timeout"] = seconds(args.timeout)
    if kind == "lease" and verb == "acquire":
        body["priority"] = args.priority
    if verb == "execute":
        body["executor"] = args.holder
    if verb == "add":
        body["delta"] = args.delta

    return "POST", f"{base}/{verb}", body, None


def send(
    server: str,
    method: str,
    path: str,
    body: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, str]] = None,
    wait_seconds: Optional[float] = None,
) -> Tuple[int, Any]:
    """
    Call the API.

    The read timeout stretches to cover a server-side wait.
    """
    read = None if wait_seconds is None else wait_seconds + 30.0
    timeout = httpx.Timeout(connect=10.0, read=read, write=10.0, pool=10.0)

    with httpx.Client(base_url=server.rstrip("/"), timeout=timeout) as client:
        resp = client.request(method, path, json=body, params=params)

    if resp.status_code == 204:
        return resp.status_code, None
    try:
        return resp.status_code, resp.json()
    except ValueError:
        return resp.status_code, {"detail": resp.text}


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="syncctl",
        description="Client for the sync primitives controller",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:")[1] if "Examples:" in __doc__ else None,
    )
    parser.add_argument("kind", choices=sorted(KIND_PATHS), help="Primitive type")
    parser.add_argument("verb", help="create|get|list|delete or a kind-specific verb")
    parser.add_argument("name", nargs="?", help="Resource name")
    parser.add_argument("--namespace", "-n", default=os.environ.get("SYNC_NAMESPACE", "default"))
    parser.add_argument("--all-namespaces", "-A", action="store_true", help="list: every namespace")
    parser.add_argument(
        "--server", "-s",
        default=os.environ.get("SYNC_API_URL", "http://localhost:8000"),
        help="Controller base URL",
    )
    parser.add_argument("--holder", help="Caller identity")
    parser.add_argument("--ttl", help="Lock/permit/lease TTL (30s, 5m, ...)")
    parser.add_argument("--timeout", "-t", help="Wait timeout, or spec.timeout on create")
    parser.add_argument("--priority", type=int, help="Lease request priority (higher wins)")
    parser.add_argument("--permits", type=int, help="Semaphore size")
    parser.add_argument("--expected", type=int, help="Barrier participant count")
    parser.add_argument("--quorum", type=int, help="Barrier opens at this many arrivals")
    parser.add_argument("--delta", type=int, default=1, help="WaitGroup add amount")
    parser.add_argument(
        "--condition", action="append", metavar="TYPE:NAME[:ARG]",
        help="Gate condition (repeatable)",
    )
    parser.add_argument(
        "--label", action="append", type=lambda s: tuple(s.split("=", 1)), metavar="KEY=VALUE",
        help="Label on create (repeatable)",
    )
    parser.add_argument("--spec", help="Raw JSON spec, merged under the flags")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = make_parser()
    args = parser.parse_args(argv)

    try:
        method, path, body, params = build_request(args)
    except (UsageError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    wait_seconds = body.get("timeout") if body and args.verb in WAITING_VERBS else None

    try:
        status, data = send(args.server, method, path, body, params, wait_seconds=wait_seconds)
    except httpx.ConnectError as e:
        print(f"ERROR: cannot reach {args.server}: {e}", file=sys.stderr)
        return 3
    except httpx.TimeoutException as e:
        print(f"ERROR: request timed out: {e}", file=sys.stderr)
        return 3

    if data is not None:
        print(json.dumps(data, indent=2, default=str))

    if status >= 400:
        print(f"ERROR: HTTP {status}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
