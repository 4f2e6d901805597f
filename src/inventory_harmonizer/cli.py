"""
Command-line entry point.

Examples:
    inventory-harmonizer --source xdr=xdr.json --source directory-device=jc.csv \\
        --roster terminated.json --export endpoints.csv

    XDR_BASE_URL=https://api.xdr.example.com XDR_API_TOKEN=... \\
        inventory-harmonizer --state-dir /var/lib/inventory-harmonizer
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ._types import SOURCE_ORDER, SourceId, SyncStatus
from .adapters import load_roster_file, read_endpoint_file, resolve_adapter
from .config import HarmonizerConfig, build_policy, load_config, load_config_file
from .exceptions import ConfigError, HarmonizerError
from .export import endpoints_to_csv
from .storage import InMemoryStore, ReconciliationStore, SqliteStore
from .sync import SyncOutcome, SyncService

logger = logging.getLogger(__name__)


def _parse_source_arg(value: str) -> tuple:
    name, sep, path = value.partition("=")
    if not sep or not path:
        raise argparse.ArgumentTypeError(f"expected NAME=PATH, got {value!r}")
    try:
        source = SourceId(name.strip().lower().replace("_", "-"))
    except ValueError:
        choices = ", ".join(s.value for s in SOURCE_ORDER)
        raise argparse.ArgumentTypeError(f"unknown source {name!r} (choose from {choices})")
    return source, Path(path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inventory-harmonizer",
        description="Reconcile endpoint inventories across security tools",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML configuration file (uses env vars if not specified)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides configuration)"
    )
    parser.add_argument(
        "--source",
        action="append",
        default=[],
        type=_parse_source_arg,
        metavar="NAME=PATH",
        help="Import a source inventory from a JSON or CSV file (repeatable)"
    )
    parser.add_argument(
        "--roster",
        type=Path,
        help="Terminated-employee roster (JSON array); replaces the stored roster"
    )
    parser.add_argument(
        "--export",
        type=Path,
        help="Write all reconciled endpoints to this CSV file"
    )
    parser.add_argument(
        "--state-dir",
        type=Path,
        help="Persist state in this directory (in-memory if omitted)"
    )
    return parser


def _load(args) -> HarmonizerConfig:
    config = load_config_file(args.config) if args.config else load_config()
    if args.state_dir is not None:
        config.state_dir = args.state_dir
    if args.log_level is not None:
        config.log_level = args.log_level
    return config


def _open_store(args, config: HarmonizerConfig) -> ReconciliationStore:
    if args.state_dir is not None:
        return SqliteStore(config.db_path, sync_log_retention=config.sync_log_retention)
    return InMemoryStore(sync_log_retention=config.sync_log_retention)


def print_report(outcome: SyncOutcome, out=None) -> None:
    """Human-readable summary of one run."""
    out = out or sys.stdout
    result = outcome.result
    summary = result.summary()

    print(f"Sync status: {outcome.status.value} - {outcome.sync_log.message}", file=out)
    print(f"Endpoints:        {summary['total']}", file=out)
    print(f"  workstations:   {summary['workstations']}", file=out)
    print(f"  servers:        {summary['servers']}", file=out)
    print(f"  fully synced:   {summary['in_all_sources']}", file=out)
    print(f"  non-compliant:  {summary['non_compliant']}", file=out)
    print(f"  naming issues:  {summary['naming_violations']}", file=out)
    print(f"  terminated:     {summary['terminated_with_active_endpoints']}", file=out)
    print("Per source:", file=out)
    for source in SOURCE_ORDER:
        print(
            f"  {source.label:<16} reported={summary['source_counts'][source.value]:<5} "
            f"only={summary['only_in'][source.value]:<5} "
            f"missing={summary['missing_from'][source.value]}",
            file=out,
        )

    if outcome.alerts:
        print("Alerts:", file=out)
        for alert in outcome.alerts:
            print(f"  [{alert.type.value.upper()}] {alert.title}: {alert.message}", file=out)
    else:
        print("No alerts", file=out)


async def run(args) -> int:
    config = _load(args)
    logging.getLogger().setLevel(getattr(logging, config.log_level))

    policy = build_policy(config)
    store = _open_store(args, config)

    if args.roster is not None:
        store.save_terminated_employees(load_roster_file(args.roster))

    imported: Dict[SourceId, List[dict]] = {}
    for source, path in args.source:
        imported[source] = read_endpoint_file(path)
        logger.info(f"Imported {len(imported[source])} record(s) for {source.label} from {path}")

    adapters = []
    for source in SOURCE_ORDER:
        adapter = resolve_adapter(source, config, imported=imported.get(source))
        if adapter is None:
            logger.info(f"No data for {source.label}; treating as empty")
        else:
            adapters.append(adapter)

    if not adapters:
        raise ConfigError("No sources configured: pass --source or set <SOURCE>_BASE_URL/_API_TOKEN")

    outcome = await SyncService(store, policy).run(adapters)

    if args.export is not None:
        args.export.write_text(endpoints_to_csv(outcome.result.all_endpoints))
        logger.info(f"Exported {len(outcome.result.all_endpoints)} endpoint(s) to {args.export}")

    print_report(outcome)
    return 1 if outcome.status == SyncStatus.ERROR else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level or "INFO"),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        return asyncio.run(run(args))
    except HarmonizerError as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
