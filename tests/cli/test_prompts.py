"""
Tests for interactive prompts.
"""

from portenv.cli.prompts import CANCELLED, Cancelled, confirm, select_tools


def _answers(*values):
    """input() replacement returning values in order, then end of input."""
    remaining = list(values)

    def fake_input(prompt):
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return fake_input


class TestCancelled:
    """Test the CANCELLED sentinel."""

    def test_singleton(self):
        assert Cancelled() is CANCELLED

    def test_falsy(self):
        assert not CANCELLED
        assert repr(CANCELLED) == "CANCELLED"


class TestConfirm:
    """Test confirm."""

    def test_yes(self):
        assert confirm("Continue?", _answers("y")) is True

    def test_no(self):
        assert confirm("Continue?", _answers("No")) is False

    def test_empty_answer_cancels(self):
        assert confirm("Continue?", _answers("")) is CANCELLED

    def test_end_of_input_cancels(self):
        assert confirm("Continue?", _answers()) is CANCELLED

    def test_reprompts_on_garbage(self, capsys):
        assert confirm("Continue?", _answers("maybe", "yes")) is True
        assert "Please answer y or n." in capsys.readouterr().out


class TestSelectTools:
    """Test select_tools."""

    def test_numbers(self, sample_manifest, capsys):
        assert select_tools(sample_manifest, _answers("2")) == ["mingw64"]
        assert "1) node 22.12.0" in capsys.readouterr().out

    def test_comma_separated(self, sample_manifest):
        assert select_tools(sample_manifest, _answers("1, 2")) == ["node", "mingw64"]

    def test_all(self, sample_manifest):
        assert select_tools(sample_manifest, _answers("a")) == ["node", "mingw64"]

    def test_quit(self, sample_manifest):
        assert select_tools(sample_manifest, _answers("q")) is CANCELLED

    def test_out_of_range_then_valid(self, sample_manifest, capsys):
        assert select_tools(sample_manifest, _answers("7", "1")) == ["node"]
        assert "Enter numbers between 1 and 2" in capsys.readouterr().out

    def test_end_of_input(self, sample_manifest):
        assert select_tools(sample_manifest, _answers()) is CANCELLED
