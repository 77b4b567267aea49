"""
Unit tests for the command payload sink.
"""

import sys

from nightcrawler.fuzzing.command_runner import CommandSink


class TestCommandSink:
    """Test per-payload command execution."""

    def test_echo_without_command(self):
        """Test payloads are echoed when there is nothing to run."""
        echoed = []
        sink = CommandSink(echo=echoed.append)

        assert sink(b"abc") is True
        assert echoed == [b"abc"]
        assert sink.runs == 0

    def test_output_file_is_rewritten(self, tmp_path):
        """Test the payload file holds the current payload only."""
        path = tmp_path / "payload.txt"
        echoed = []
        sink = CommandSink(output_file=path, echo=echoed.append)

        sink(b"first payload")
        sink(b"2nd")

        assert path.read_bytes() == b"2nd"
        assert echoed == []

    def test_placeholder_substitution(self):
        """Test every placeholder occurrence is replaced."""
        sink = CommandSink(["curl", "http://x/?a=FUZZ&b=FUZZ", "-H", "X: y"], placeholder="FUZZ")

        assert sink.build_args(b"<p>") == ["curl", "http://x/?a=<p>&b=<p>", "-H", "X: y"]

    def test_no_placeholder_keeps_arguments(self):
        """Test arguments are passed unchanged without a placeholder."""
        sink = CommandSink(["cat", "FUZZ"])

        assert sink.build_args(b"x") == ["cat", "FUZZ"]

    def test_successful_command_continues(self, tmp_path):
        """Test a zero exit status keeps generation going."""
        out = tmp_path / "out.txt"
        script = "import sys; open(sys.argv[1], 'a').write(sys.argv[2] + '\\n')"
        sink = CommandSink([sys.executable, "-c", script, str(out), "P=FUZZ"], placeholder="FUZZ")

        assert sink(b"one") is True
        assert sink(b"two") is True
        assert out.read_text().splitlines() == ["P=one", "P=two"]
        assert sink.runs == 2

    def test_failing_command_stops(self):
        """Test a non-zero exit status stops generation."""
        sink = CommandSink([sys.executable, "-c", "raise SystemExit(3)"])

        assert sink(b"x") is False
        assert sink.runs == 1

    def test_missing_program_stops(self, tmp_path):
        """Test a command that cannot start stops generation."""
        sink = CommandSink([str(tmp_path / "no-such-program")])

        assert sink(b"x") is False
        assert sink.runs == 0

    def test_unwritable_output_file_stops(self, tmp_path):
        """Test a failed payload write stops generation."""
        sink = CommandSink(output_file=tmp_path / "missing-dir" / "payload.txt")

        assert sink(b"x") is False
