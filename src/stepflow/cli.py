"""CLI entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import anyio

from stepflow.orchestrator import DocumentResult, Orchestrator
from stepflow.settings import find_memory_path, initialize_user_memory_file


logger = logging.getLogger(__name__)


async def run_workflows(orch: Orchestrator, paths: list[Path], initial_input: str) -> list[DocumentResult]:
    return await orch.run_many(paths, initial_input)


def read_piped_stdin() -> str:
    if sys.stdin is None or sys.stdin.isatty():
        return ""
    return sys.stdin.read()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stepflow", description="Run declarative LLM workflows.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    process = subparsers.add_parser("process", help="Run one or more workflow files")
    process.add_argument("files", nargs="+", type=Path, help="Workflow files (.yaml, .yml or .md)")
    process.add_argument("--memory", type=Path, default=None, help="Path to the memory file")
    # SUPPRESS keeps the root parser's value unless the flag is given here.
    process.add_argument(
        "--verbose", "-v", action="store_true", default=argparse.SUPPRESS, help="Enable debug logging"
    )

    subparsers.add_parser("memory-init", help="Create the user-level memory file")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "memory-init":
        path = initialize_user_memory_file()
        print(f"Memory file ready at {path}")
        return 0

    memory_path = args.memory or find_memory_path()
    if memory_path is not None:
        logger.info("Using memory file: %s", memory_path)
    orch = Orchestrator(memory_path=memory_path)
    initial_input = read_piped_stdin()

    results = anyio.run(run_workflows, orch, args.files, initial_input)
    failed = [result for result in results if not result.ok]
    if failed:
        logger.error("%d of %d workflow files failed", len(failed), len(results))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
