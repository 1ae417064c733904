"""Command line entry point: one reconciliation pass over the workstation baseline."""
from __future__ import annotations

import argparse
import sys
from typing import Sequence

from workstation_baseline.constants import IMMUTABLE_CONFIG
from workstation_baseline.descriptors import RunOptions, build_descriptors


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workstation-baseline",
        description="Check this workstation's user settings against the baseline and fix what differs.",
    )
    for tool in IMMUTABLE_CONFIG.developer_tools:
        parser.add_argument(
            f"--install-{tool.name}",
            dest="developer_tools",
            action="append_const",
            const=tool.name,
            help=f"Also ensure {tool.package.package_id} is installed",
        )
    parser.add_argument("--check-only", action="store_true", help="Report differences without changing anything")
    parser.add_argument("--no-restart", action="store_true", help="Do not restart Explorer after shell changes")
    parser.add_argument("--list", action="store_true", help="List the settings that would be checked and exit")
    parser.add_argument("--gui", action="store_true", help="Open the status window instead of printing")
    return parser


def options_from_args(args: argparse.Namespace) -> RunOptions:
    return RunOptions(
        developer_tools=tuple(dict.fromkeys(args.developer_tools or ())),
        remediate=not args.check_only,
        restart_shell=not args.no_restart,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    options = options_from_args(args)

    if args.list:
        for descriptor in build_descriptors(IMMUTABLE_CONFIG, options):
            print(f"{descriptor.id}\t{descriptor.kind.value}\t{descriptor.expected}")
        return 0

    if args.gui:
        from ui.baseline_window import run_gui

        return run_gui(IMMUTABLE_CONFIG, options)

    from services.baseline import BaselineService
    from services.reporter import OutcomeReporter

    try:
        service = BaselineService(IMMUTABLE_CONFIG, options, log=print)
    except RuntimeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    context = service.run()
    return OutcomeReporter(print, restart_shell=options.restart_shell).report(context)


if __name__ == "__main__":
    sys.exit(main())
