"""
Option parser tests
"""
import pytest

from protpipe.core.exceptions import UsageError
from protpipe.core.interfaces import SpecInputKind
from protpipe.core.options import OptionParser, parse_args, split_at_separator


class TestOptionParser:
    """OptionParser.parse"""

    def setup_method(self):
        self.parser = OptionParser()

    def test_full_command_line(self):
        """All path options and switches"""
        options = self.parser.parse([
            "--fasta", "lib.fa",
            "--mzml", "run.mzML",
            "--config", "diann.yaml",
            "--out", "results",
            "--clobber",
            "--debug",
        ])

        assert options.fasta_path == "lib.fa"
        assert options.spec_input_kind == SpecInputKind.MZML
        assert options.spec_input_path == "run.mzML"
        assert options.config_path == "diann.yaml"
        assert options.output_dir == "results"
        assert options.clobber is True
        assert options.debug is True
        assert options.help_requested is False

    def test_defaults(self):
        """Nothing given"""
        options = self.parser.parse([])

        assert options.fasta_path is None
        assert options.spec_inputs == ()
        assert options.output_dir is None
        assert options.clobber is False
        assert options.positionals == ()

    def test_equals_form(self):
        """--name=value is the same as --name value"""
        spaced = self.parser.parse(["--fasta", "lib.fa", "--raw", "run.raw"])
        joined = self.parser.parse(["--fasta=lib.fa", "--raw=run.raw"])

        assert joined.fasta_path == spaced.fasta_path
        assert joined.spec_inputs == spaced.spec_inputs

    @pytest.mark.parametrize("token", ["-x", "-fasta", "--bogus", "--fas", "--bogus=1"])
    def test_unknown_option(self, token):
        """Unknown dash tokens name the exact token"""
        with pytest.raises(UsageError) as exc_info:
            self.parser.parse(["--fasta", "lib.fa", token])

        assert exc_info.value.token == token
        assert "unknown option" in str(exc_info.value)
        assert token in str(exc_info.value)

    def test_missing_argument_at_end(self):
        """Option at end of input"""
        with pytest.raises(UsageError) as exc_info:
            self.parser.parse(["--mzml", "run.mzML", "--fasta"])

        assert exc_info.value.token == "--fasta"
        assert "requires an argument" in str(exc_info.value)

    def test_missing_argument_before_flag(self):
        """Option followed by another flag"""
        with pytest.raises(UsageError) as exc_info:
            self.parser.parse(["--config", "--fasta", "lib.fa"])

        assert exc_info.value.token == "--config"
        assert "requires an argument" in str(exc_info.value)

    def test_switch_with_value(self):
        """Switches do not take values"""
        with pytest.raises(UsageError):
            self.parser.parse(["--debug=yes"])

    def test_positionals_collected(self):
        """Bare tokens are kept, not rejected"""
        options = self.parser.parse(["extra", "--fasta", "lib.fa", "more", "-"])

        assert options.fasta_path == "lib.fa"
        assert options.positionals == ("extra", "more", "-")

    def test_double_dash(self):
        """Everything after -- is positional"""
        options = self.parser.parse(["--fasta", "lib.fa", "--", "-x", "--mzml", "run.mzML"])

        assert options.fasta_path == "lib.fa"
        assert options.spec_inputs == ()
        assert options.positionals == ("-x", "--mzml", "run.mzML")

    def test_repeated_option_last_wins(self):
        """Repeated --fasta keeps the last value and counts occurrences"""
        options = self.parser.parse(["--fasta", "first.fa", "--fasta=second.fa"])

        assert options.fasta_path == "second.fa"
        assert options.count("fasta") == 2
        assert options.count("config") == 0

    def test_multiple_spec_kinds(self):
        """Each kind is kept so validation can reject the combination"""
        options = self.parser.parse(["--raw", "a.raw", "--mzml", "b.mzML"])

        assert options.spec_inputs == (
            (SpecInputKind.RAW, "a.raw"),
            (SpecInputKind.MZML, "b.mzML"),
        )
        assert options.spec_input_kind is None

    def test_repeated_spec_kind(self):
        """Same kind twice collapses to the last value"""
        options = self.parser.parse(["--dia", "a.dia", "--dia", "b.dia"])

        assert options.spec_inputs == ((SpecInputKind.DIA, "b.dia"),)
        assert options.count("dia") == 2

    def test_help_switch(self):
        """--help is recorded, not acted on"""
        options = self.parser.parse(["--help", "--fasta", "lib.fa"])

        assert options.help_requested is True
        assert options.fasta_path == "lib.fa"

    def test_argv_kept(self):
        """Raw tokens are preserved"""
        argv = ["--fasta", "lib.fa", "--", "x"]
        assert self.parser.parse(argv).argv == tuple(argv)

    def test_format_help(self):
        """Help lists every option"""
        text = self.parser.format_help()

        for flag in ("--fasta", "--mzml", "--raw", "--dia", "--out", "--config", "--clobber", "--debug"):
            assert flag in text


class TestHelpers:
    """Module helpers"""

    def test_split_at_separator(self):
        """First -- splits, later ones are kept"""
        head, tail = split_at_separator(["a", "--", "b", "--", "c"])

        assert head == ["a"]
        assert tail == ["b", "--", "c"]

    def test_split_without_separator(self):
        head, tail = split_at_separator(["a", "b"])

        assert head == ["a", "b"]
        assert tail == []

    def test_parse_args(self):
        """Convenience wrapper"""
        assert parse_args(["--fasta", "x.fa"]).fasta_path == "x.fa"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
