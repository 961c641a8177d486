from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="envstack", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    upsert = sub.add_parser("upsert", help="Create or update an environment")
    upsert.add_argument("environment", help="Environment name (case-insensitive)")
    upsert.add_argument("--config", dest="config_path", default=None, help="Config file path")
    upsert.add_argument(
        "--dryrun-path",
        default=None,
        help="Write each stack submission to <dir>/<stack>.json",
    )
    upsert.add_argument("--region", default=None, help="AWS region for image and AZ lookups")
    upsert.add_argument("--profile", default=None, help="AWS profile for image and AZ lookups")
    upsert.add_argument("--log-file", default=None, help="Also log (at DEBUG) to this file")
    upsert.add_argument("-v", "--verbose", action="store_true", help="Log DEBUG to stderr")

    sub.add_parser("list-stages", help="List available stages")

    list_envs = sub.add_parser("list-environments", help="List configured environments")
    list_envs.add_argument("--config", dest="config_path", default=None, help="Config file path")

    return parser


def list_stages() -> None:
    from .stages.registry import get_stage_registry

    for entry in get_stage_registry().describe():
        doc = entry.get("doc") or ""
        print(f"{entry['stage_id']}\t{doc}")
        requires = ", ".join(entry["io"]["requires"]) or "-"
        provides = ", ".join(entry["io"]["provides"]) or "-"
        print(f"\trequires: {requires}")
        print(f"\tprovides: {provides}")


def list_environments(config_path: str | None) -> None:
    from .foundation.config_io import load_config
    from .framework.config import Config

    cfg_dict, _meta = load_config(config_path)
    config, _warnings = Config.from_dict(cfg_dict)
    for env in config.environments:
        print(f"{env.name}\t{env.provider or 'ecs'}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    if args.command == "upsert":
        from .app.upsert import run_upsert

        return run_upsert(
            args.environment,
            config_path=args.config_path,
            dryrun_path=args.dryrun_path,
            region=args.region,
            profile=args.profile,
            log_file=args.log_file,
            verbose=args.verbose,
        )

    if args.command == "list-stages":
        list_stages()
        return 0

    if args.command == "list-environments":
        list_environments(args.config_path)
        return 0

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main(sys.argv[1:]))
