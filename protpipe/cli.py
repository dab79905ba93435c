"""Command-line interface for ProtPipe."""

import shlex
import sys

from protpipe.core.config import get_config
from protpipe.core.exceptions import ConfigError, UsageError
from protpipe.core.interfaces import OptionSet
from protpipe.core.logger import setup_logger_from_config
from protpipe.core.options import OptionParser, split_at_separator
from protpipe.orchestrator.pipeline import Pipeline


PROG = "protpipe"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def preamble() -> str:
    config = get_config()
    return "\n".join([
        "\n",
        f"{config.get('app.name', 'ProtPipe')}: An all-in-one wrapper for DIA analysis in a singularity container",
        f"See GitHub for updates: {config.get('app.homepage', '')}\n",
        f"Using {config.get('tool.name', 'DIA-NN')} version: {config.get('tool.version', '')} "
        f"ran in singularity {config.get('backend.version', '')}\n",
    ])


def format_command(argv: list[str]) -> str:
    """Echo the invocation with one --flag per line"""
    parts = [PROG]
    for token in argv:
        quoted = shlex.quote(token)
        parts.append(f" \\\n    {quoted}" if token.startswith("--") else f" {quoted}")
    return "".join(parts)


def main(argv: list[str] | None = None, pipeline: Pipeline | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    code = _main(argv, pipeline)
    if code == EXIT_FAILURE:
        print("Halting execution due to errors")
    return code


def _main(argv: list[str], pipeline: Pipeline | None) -> int:
    try:
        setup_logger_from_config()
        print(preamble())
    except ConfigError as e:
        print(f"{PROG}: {e}", file=sys.stderr)
        return EXIT_FAILURE

    parser = OptionParser(prog=PROG)
    try:
        options = parser.parse(argv)
    except UsageError as e:
        # --help wins over anything else on the line
        if "--help" not in split_at_separator(argv)[0]:
            print(f"{PROG}: {e}", file=sys.stderr)
            return EXIT_USAGE
        options = OptionSet(help_requested=True, argv=tuple(argv))

    if options.help_requested:
        print(parser.format_help())
        print("\nexiting due to --help flag\n\n")
        return EXIT_OK

    print("\nStarting...\n")
    print(f"command called:\n{format_command(argv)}\n")

    try:
        pipeline = pipeline or Pipeline()
        result = pipeline.run(options)
    except ConfigError as e:
        print(f"ERROR: {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nInterrupted, exiting.")
        return EXIT_INTERRUPTED

    if result.report is not None and not result.report.ok:
        print(parser.format_help())

    return result.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
