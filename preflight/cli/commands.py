from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from preflight.dashboard import DashboardRenderer
from preflight.executor import RunContext, Scheduler
from preflight.manifest import ManifestError
from preflight.registry import DiscoveryError, classify, discover
from preflight.report import summarize
from preflight.terminal import OutputMode, detect_output_mode

from .args import build_parser

LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"

logger = logging.getLogger(__name__)


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.list:
            return cmd_list(args)
        return cmd_run(args)

    except (ManifestError, DiscoveryError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        print("Preflight interrupted", file=sys.stderr)
        return 130


def main() -> None:
    sys.exit(run_cli())


def cmd_list(args: argparse.Namespace) -> int:
    _configure_logging(OutputMode.VERBOSE)
    root = Path(args.root).expanduser().resolve()
    producers, consumers = classify(discover(root))

    for task in producers + consumers:
        print(f"{task.name}\t{task.role.value}\t{task.path.relative_to(root).as_posix()}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    mode = detect_output_mode(args.verbose, stream=sys.stdout)
    _configure_logging(mode)
    logger.info("🚀 Running preflight verification across all packages...")

    root = Path(args.root).expanduser().resolve()
    producers, consumers = classify(discover(root))

    with RunContext(root, mode, stream=sys.stdout) as context:
        context.stage(producers, consumers)

        if context.dashboard:
            # Log lines would tear the redrawn screen.
            logging.getLogger("preflight").setLevel(logging.ERROR)

        renderer = DashboardRenderer(context)
        context.renderer = renderer
        renderer.start()

        Scheduler(jobs=args.jobs).execute(producers, consumers, context)

        renderer.stop()
        return summarize(context, sys.stdout)


def _configure_logging(mode: OutputMode) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stderr,
    )
    level = logging.INFO if mode is OutputMode.VERBOSE else logging.WARNING
    logging.getLogger("preflight").setLevel(level)
