# src/salary_reveal/cli.py
from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict

from .config import CryptoConfig, EngineConfig, load_engine_config
from .crypto import PaillierCapability, save_keypair
from .engine import StaticIdentity, build_engine
from .errors import ExitCode, SalaryRevealException, problem_to_dict
from .observability import configure_logging


# =============================================================================
# Helpers: config + output
# =============================================================================

def _print_payload(payload: Dict[str, Any], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True, default=str))
    elif fmt == "jsonl":
        print(json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str))
    else:
        # "text": caller prints human-friendly output
        pass


def _load_config(args: argparse.Namespace) -> EngineConfig:
    if getattr(args, "config", None):
        return load_engine_config(args.config)
    return EngineConfig()


def _engine(args: argparse.Namespace, *, identity: str | None = None):
    config = _load_config(args)
    provider = StaticIdentity(identity) if identity is not None else None
    return build_engine(config, identity_provider=provider)


# =============================================================================
# Commands
# =============================================================================

def cmd_keygen(args: argparse.Namespace) -> int:
    n_length = args.n_length or CryptoConfig().n_length
    cap = PaillierCapability.generate(n_length=n_length)
    out = save_keypair(args.out, cap)
    payload: Dict[str, Any] = {"ok": True, "out": str(out), "n_length": n_length}
    if args.public_out:
        payload["public_out"] = str(save_keypair(args.public_out, cap, include_private=False))

    if args.format in ("json", "jsonl"):
        _print_payload(payload, args.format)
    else:
        print(f"Wrote keypair: {out}")
        if args.public_out:
            print(f"Wrote public key: {payload['public_out']}")
    return 0


def cmd_submit(args: argparse.Namespace) -> int:
    engine = _engine(args, identity=args.identity)
    sub = engine.submit(args.value, args.role, args.experience)
    payload = {"ok": True, "bucket": sub.bucket.to_dict()}
    if args.format in ("json", "jsonl"):
        _print_payload(payload, args.format)
    else:
        print(f"Submission recorded for bucket {sub.bucket.role.label} / {sub.bucket.experience.label}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    engine = _engine(args)
    submitted = engine.check_submission(args.identity)
    if args.format in ("json", "jsonl"):
        _print_payload({"ok": True, "submitted": submitted}, args.format)
    else:
        print("submitted" if submitted else "not submitted")
    return 0


def cmd_reveal(args: argparse.Namespace) -> int:
    engine = _engine(args)
    agg = engine.reveal(args.role, args.experience)
    if args.format in ("json", "jsonl"):
        _print_payload({"ok": True, "aggregate": agg.to_dict()}, args.format)
    else:
        print(f"{agg.bucket.role.label} / {agg.bucket.experience.label}")
        print(f"  participants: {agg.count}")
        print(f"  sum:          {agg.sum}")
        print(f"  average:      {agg.average}")
    return 0


def cmd_buckets(args: argparse.Namespace) -> int:
    engine = _engine(args)
    rows = engine.bucket_overview()
    if args.format in ("json", "jsonl"):
        _print_payload({"ok": True, "buckets": [r.to_dict() for r in rows]}, args.format)
    else:
        if not rows:
            print("no submissions yet")
        for r in rows:
            state = "revealable" if r.revealable else "below threshold"
            extra = f" ({r.participants} participants)" if r.participants is not None else ""
            print(f"{r.bucket.role.label} / {r.bucket.experience.label}: {state}{extra}")
    return 0


# =============================================================================
# Parser
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--format", choices=["text", "json", "jsonl"], default="text")

    with_config = argparse.ArgumentParser(add_help=False, parents=[common])
    with_config.add_argument("--config", help="YAML/JSON engine config (defaults apply when omitted)")

    parser = argparse.ArgumentParser(
        prog="salary-reveal",
        description="Encrypted, k-anonymous compensation aggregation.",
    )
    sub = parser.add_subparsers(dest="cmd")

    p = sub.add_parser("keygen", parents=[common], help="Generate a Paillier keypair file")
    p.add_argument("--out", required=True)
    p.add_argument("--public-out", help="Also write a public-only key file (submission nodes)")
    p.add_argument("--n-length", type=int, default=None)
    p.set_defaults(func=cmd_keygen)

    p = sub.add_parser("submit", parents=[with_config], help="Submit one compensation figure")
    p.add_argument("--identity", required=True)
    p.add_argument("--value", type=int, required=True)
    p.add_argument("--role", required=True)
    p.add_argument("--experience", required=True)
    p.set_defaults(func=cmd_submit)

    p = sub.add_parser("check", parents=[with_config], help="Has this identity submitted?")
    p.add_argument("--identity", required=True)
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("reveal", parents=[with_config], help="Reveal a bucket aggregate")
    p.add_argument("--role", required=True)
    p.add_argument("--experience", required=True)
    p.set_defaults(func=cmd_reveal)

    p = sub.add_parser("buckets", parents=[with_config], help="List buckets and whether they can be revealed")
    p.set_defaults(func=cmd_buckets)

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Entry point used by the console script: `from salary_reveal.cli import main`.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "cmd", None):
        parser.print_help()
        return 2

    fmt = getattr(args, "format", "text")
    try:
        cfg = _load_config(args) if hasattr(args, "config") else EngineConfig()
        configure_logging(cfg.logging.environment, cfg.logging.level)
        return int(args.func(args))
    except SalaryRevealException as e:
        payload = {"ok": False, "error": problem_to_dict(e.problem), "exit_code": int(e.exit_code)}
        if fmt in ("json", "jsonl"):
            _print_payload(payload, fmt)
        else:
            err = payload["error"]
            print(f"ERROR[{err.get('code', 'SR_ERROR')}]: {err.get('message')}", file=sys.stderr)
            if err.get("remediation"):
                print(f"REMEDIATION: {err['remediation']}", file=sys.stderr)
            print(f"DETAILS: {err.get('details', {})}", file=sys.stderr)
        return int(e.exit_code)
    except Exception as e:
        payload = {
            "ok": False,
            "error": {
                "code": "SR_INTERNAL_ERROR",
                "category": "internal",
                "message": "Unexpected internal error",
                "details": {"error_type": type(e).__name__},
            },
            "exit_code": int(ExitCode.INTERNAL_ERROR),
        }
        if fmt in ("json", "jsonl"):
            _print_payload(payload, fmt)
        else:
            print(f"ERROR[SR_INTERNAL_ERROR]: {type(e).__name__}", file=sys.stderr)
        return int(ExitCode.INTERNAL_ERROR)


if __name__ == "__main__":
    sys.exit(main())
