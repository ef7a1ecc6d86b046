#!/usr/bin/env python3
"""Rule configuration tool — validate, inspect and edit the rule file.

Usage::

    # Validate the configured rule file
    python scripts/ruleconf.py check

    # Content hash of the rule file
    python scripts/ruleconf.py hash

    # Diff the rule file against a candidate
    python scripts/ruleconf.py diff candidate.conf

    # Is an alert instance squelched, and which chains would fire?
    python scripts/ruleconf.py resolve cpu.high --tags host=web01,env=prod

    # Replace the rule file with a candidate, run the save hook, reload
    python scripts/ruleconf.py save candidate.conf --user alice --message "raise cpu threshold"
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from src.alerting.runtime import NotificationLevel, RuleRuntime
from src.core.config import Settings, load_settings
from src.core.logging import setup_logging
from src.editing.exceptions import HookError
from src.editing.hook import make_save_command_hook
from src.editing.store import RuleStore
from src.rules.exceptions import RuleConfError
from src.rules.parser import parse_rules
from src.rules.tags import parse_tags

logger = structlog.get_logger(__name__)


def _build_store(settings: Settings) -> RuleStore:
    hook = None
    if settings.rules.save_hook:
        hook = make_save_command_hook(
            settings.rules.save_hook,
            timeout_secs=settings.rules.hook_timeout_secs,
        )
    return RuleStore.from_file(settings.rules.path, save_hook=hook)


def cmd_check(store: RuleStore, args: argparse.Namespace) -> int:
    ruleset = parse_rules(store.get_raw_text())
    print(
        f"ok: {len(ruleset.alerts)} alerts, {len(ruleset.notifications)} notifications,"
        f" {len(ruleset.lookups)} lookups, {len(ruleset.templates)} templates,"
        f" {len(ruleset.macros)} macros (hash {ruleset.hash})"
    )
    return 0


def cmd_hash(store: RuleStore, args: argparse.Namespace) -> int:
    print(store.get_hash())
    return 0


def cmd_diff(store: RuleStore, args: argparse.Namespace) -> int:
    diff = store.raw_diff(Path(args.candidate).read_text())
    sys.stdout.write(diff)
    return 0


def cmd_resolve(store: RuleStore, args: argparse.Namespace) -> int:
    runtime = RuleRuntime.from_text(store.get_raw_text())
    tags = parse_tags(args.tags)
    if runtime.is_squelched(args.alert, tags):
        print("squelched")
        return 0
    for chain in runtime.notification_chains(args.alert, tags, NotificationLevel(args.level)):
        print(" -> ".join(chain))
    return 0


async def _save(store: RuleStore, args: argparse.Namespace) -> int:
    candidate = Path(args.candidate).read_text()
    runtime = RuleRuntime.from_text(store.get_raw_text())
    store.set_reload(runtime.reload_from(store))

    diff = store.raw_diff(candidate)
    if not diff:
        print("no changes")
        return 0
    try:
        await store.save_raw_text(candidate, diff, args.user, args.message)
    except HookError as exc:
        # The text is already committed; still reload so the process matches it.
        logger.warning("save_hook_error", error=str(exc))
        print(f"saved, but save hook failed: {exc}", file=sys.stderr)
        await store.reload()
        return 2
    await store.reload()
    print(f"saved (hash {store.get_hash()})")
    return 0


def cmd_save(store: RuleStore, args: argparse.Namespace) -> int:
    return asyncio.run(_save(store, args))


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Validate, inspect and edit alert rule configuration.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check", help="Parse the rule file").set_defaults(func=cmd_check)
    sub.add_parser("hash", help="Print the rule text hash").set_defaults(func=cmd_hash)

    diff_parser = sub.add_parser("diff", help="Diff the rule file against a candidate")
    diff_parser.add_argument("candidate")
    diff_parser.set_defaults(func=cmd_diff)

    resolve_parser = sub.add_parser("resolve", help="Resolve squelch and chains for tags")
    resolve_parser.add_argument("alert")
    resolve_parser.add_argument("--tags", default="", help="key=value[,key=value...]")
    resolve_parser.add_argument(
        "--level",
        default=NotificationLevel.CRIT.value,
        choices=[lvl.value for lvl in NotificationLevel],
    )
    resolve_parser.set_defaults(func=cmd_resolve)

    save_parser = sub.add_parser("save", help="Replace the rule file with a candidate")
    save_parser.add_argument("candidate")
    save_parser.add_argument("--user", default="cli")
    save_parser.add_argument("--message", default="")
    save_parser.set_defaults(func=cmd_save)

    args = parser.parse_args()

    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    try:
        store = _build_store(settings)
        code = args.func(store, args)
    except RuleConfError as exc:
        logger.error("ruleconf_failed", command=args.command, error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
