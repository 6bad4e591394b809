"""Tests for the dice CLI commands."""

import json

from typer.testing import CliRunner

from src.cli.main import app


runner = CliRunner()


class TestRollCommand:
    """Tests for 'dice roll'."""

    def test_roll(self):
        """Test a seeded roll prints the breakdown and total."""
        result = runner.invoke(app, ["roll", "4d6dl1", "--seed", "1"])
        assert result.exit_code == 0
        assert "4d6dl1 =" in result.stdout

    def test_roll_is_reproducible(self):
        """Test the same seed prints the same output."""
        first = runner.invoke(app, ["roll", "2d20kh1+5", "--seed", "7"])
        second = runner.invoke(app, ["roll", "2d20kh1+5", "--seed", "7"])
        assert first.stdout == second.stdout

    def test_roll_json(self):
        """Test JSON output matches the serialization schema."""
        result = runner.invoke(app, ["roll", "1d20+5", "--seed", "3", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["notation"] == "1d20 + 5"
        assert 6 <= data["total"] <= 25
        assert data["terms"][1] == {"kind": "constant", "value": 5}

    def test_roll_invalid(self):
        """Test an invalid expression prints a pointer and exits 1."""
        result = runner.invoke(app, ["roll", "2d"])
        assert result.exit_code == 1
        assert "Missing number of sides" in result.stdout
        assert "  ^" in result.stdout

    def test_roll_division_by_zero(self):
        """Test evaluation errors exit 1."""
        result = runner.invoke(app, ["roll", "1d6/0"])
        assert result.exit_code == 1
        assert "Division by zero" in result.stdout


class TestBatchCommand:
    """Tests for 'dice batch'."""

    def test_batch(self):
        """Test a batch prints a summary."""
        result = runner.invoke(app, ["batch", "1d6", "-n", "5", "--seed", "2"])
        assert result.exit_code == 0
        assert "mean" in result.stdout

    def test_batch_json(self):
        """Test batch JSON is a list of results."""
        result = runner.invoke(app, ["batch", "2d6", "-n", "3", "--seed", "2", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert len(data) == 3
        assert all(2 <= item["total"] <= 12 for item in data)

    def test_batch_negative_count(self):
        """Test an invalid count exits 1."""
        result = runner.invoke(app, ["batch", "1d6", "-n", "-1"])
        assert result.exit_code == 1
        assert "Batch size" in result.stdout


class TestCheckCommand:
    """Tests for 'dice check'."""

    def test_valid(self):
        """Test a valid expression prints its canonical form."""
        result = runner.invoke(app, ["check", "d20+5"])
        assert result.exit_code == 0
        assert "1d20 + 5" in result.stdout

    def test_invalid(self):
        """Test an invalid expression exits 1."""
        result = runner.invoke(app, ["check", "4d6kh3kl1"])
        assert result.exit_code == 1
        assert "at most one keep" in result.stdout

    def test_invalid_pointer_matches_roll(self):
        """Test check and roll draw the same caret under the bad character."""
        checked = runner.invoke(app, ["check", "2d"])
        rolled = runner.invoke(app, ["roll", "2d"])
        assert checked.exit_code == rolled.exit_code == 1
        assert "2d\n  ^" in checked.stdout
        assert "2d\n  ^" in rolled.stdout


class TestFairnessCommand:
    """Tests for 'dice fairness'."""

    def test_fairness_seeded(self):
        """Test a fairness report for a seeded source."""
        result = runner.invoke(
            app,
            ["fairness", "--sides", "6", "--samples", "6000", "--seed", "4", "--significance", "0.0001"],
        )
        assert result.exit_code == 0
        assert "Chi-square" in result.stdout
        assert "PASSED" in result.stdout

    def test_fairness_bad_sides(self):
        """Test invalid parameters exit 1."""
        result = runner.invoke(app, ["fairness", "--sides", "1"])
        assert result.exit_code == 1


class TestAnalyzeCommand:
    """Tests for 'dice analyze'."""

    def test_analyze(self):
        """Test a distribution table is printed."""
        result = runner.invoke(app, ["analyze", "3d6", "--iterations", "200", "--seed", "5"])
        assert result.exit_code == 0
        assert "Mean" in result.stdout

    def test_analyze_invalid(self):
        """Test invalid expressions exit 1."""
        result = runner.invoke(app, ["analyze", "3x6"])
        assert result.exit_code == 1
