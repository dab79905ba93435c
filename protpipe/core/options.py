"""
Option parser

Turns the raw argument vector into an OptionSet

- long flags only (--name value and --name=value)
- "--" ends option parsing, everything after it is positional
- repeated single-valued options keep the last value and are counted
"""
import argparse
import shutil
from typing import Sequence

from protpipe.core.exceptions import UsageError
from protpipe.core.interfaces import OptionSet, SpecInputKind


END_OF_OPTIONS = "--"


class CleanHelpFormatter(argparse.RawDescriptionHelpFormatter):
    def __init__(self, prog: str) -> None:
        width = shutil.get_terminal_size((100, 20)).columns
        super().__init__(prog, width=width, max_help_position=32)


class _RaisingArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting"""

    def error(self, message: str):
        raise UsageError(message)


def _record(namespace: argparse.Namespace, dest: str) -> None:
    namespace.occurrences[dest] = namespace.occurrences.get(dest, 0) + 1


class _LastValueStore(argparse.Action):
    """Store the last value given, counting every occurrence"""

    def __call__(self, parser, namespace, values, option_string=None):
        setattr(namespace, self.dest, values)
        _record(namespace, self.dest)


class _SpecInputStore(_LastValueStore):
    """Like _LastValueStore, also remembers the order spec input kinds appeared in"""

    def __call__(self, parser, namespace, values, option_string=None):
        super().__call__(parser, namespace, values, option_string)
        if self.dest not in namespace.spec_order:
            namespace.spec_order.append(self.dest)


class _CountedSwitch(argparse.Action):
    def __init__(self, option_strings, dest, **kwargs):
        super().__init__(option_strings, dest, nargs=0, default=False, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        setattr(namespace, self.dest, True)
        _record(namespace, self.dest)


class OptionParser:
    """
    Command line parser

    Usage:
        parser = OptionParser()
        options = parser.parse(["--fasta", "lib.fa", "--mzml", "run.mzML", "--config", "diann.yaml"])

        options.fasta_path       # "lib.fa"
        options.spec_input_kind  # SpecInputKind.MZML

    Raises UsageError (never SystemExit) for unknown flags and missing option values.
    """

    def __init__(self, prog: str = "protpipe"):
        self._parser = self._build(prog)

    def _build(self, prog: str) -> argparse.ArgumentParser:
        ap = _RaisingArgumentParser(
            prog=prog,
            description="Run DIA-NN library generation and sample analysis in a singularity container.",
            formatter_class=CleanHelpFormatter,
            add_help=False,
            allow_abbrev=False,
            exit_on_error=False,
        )
        ap.add_argument("--help", dest="help", action=_CountedSwitch, help="Print this message")
        ap.add_argument("--debug", dest="debug", action=_CountedSwitch,
                        help="Validate and print parameters, then stop before DIA-NN")
        ap.add_argument("--clobber", dest="clobber", action=_CountedSwitch,
                        help="Ignore existing files, regenerate and overwrite if necessary")
        ap.add_argument("--fasta", dest="fasta", metavar="PATH", action=_LastValueStore,
                        help="Peptide library fasta file (required)")
        group = ap.add_argument_group("mass spec input (exactly one required)")
        for kind in SpecInputKind:
            group.add_argument(kind.flag, dest=kind.value, metavar="PATH", action=_SpecInputStore,
                               help=f"{kind.name.capitalize()} input to analyze")
        ap.add_argument("--out", dest="out", metavar="PATH", action=_LastValueStore,
                        help="Output directory (default: current directory)")
        ap.add_argument("--config", dest="config", metavar="PATH", action=_LastValueStore,
                        help="Pass-through DIA-NN parameters (YAML, required)")
        return ap

    def format_help(self) -> str:
        return self._parser.format_help()

    def parse(self, argv: Sequence[str]) -> OptionSet:
        """
        Parse argv

        Args:
            argv: argument tokens, without the program name

        Returns:
            OptionSet

        Raises:
            UsageError: unknown option, or an option missing its argument
        """
        argv = list(argv)
        head, tail = split_at_separator(argv)

        namespace = argparse.Namespace(occurrences={}, spec_order=[])
        try:
            namespace, extras = self._parser.parse_known_args(head, namespace)
        except argparse.ArgumentError as err:
            raise _translate(err) from err

        positionals = []
        for token in extras:
            if token.startswith("-") and token != "-":
                raise UsageError(f"unknown option: '{token}'", token=token)
            positionals.append(token)
        positionals.extend(tail)

        spec_inputs = tuple(
            (SpecInputKind(dest), getattr(namespace, dest)) for dest in namespace.spec_order
        )

        return OptionSet(
            fasta_path=namespace.fasta,
            spec_inputs=spec_inputs,
            config_path=namespace.config,
            output_dir=namespace.out,
            clobber=namespace.clobber,
            debug=namespace.debug,
            help_requested=namespace.help,
            occurrences=dict(namespace.occurrences),
            positionals=tuple(positionals),
            argv=tuple(argv),
        )


def split_at_separator(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split argv at the first "--" (the separator itself is dropped)"""
    if END_OF_OPTIONS in argv:
        index = argv.index(END_OF_OPTIONS)
        return argv[:index], argv[index + 1:]
    return argv, []


def _translate(err: argparse.ArgumentError) -> UsageError:
    flag = err.argument_name
    if flag and "expected one argument" in err.message:
        return UsageError(f"{flag} requires an argument", token=flag)
    return UsageError(str(err), token=flag)


def parse_args(argv: Sequence[str]) -> OptionSet:
    """Parse argv with a default OptionParser"""
    return OptionParser().parse(argv)
