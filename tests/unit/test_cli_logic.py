"""Unit tests for CLI logic functions."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from embedgrid.cli import app, collect_texts, render_matrix


def test_collect_texts_prefers_arguments() -> None:
    assert collect_texts(["a", "b"], "c\nd") == ["a", "b"]


def test_collect_texts_splits_file_lines() -> None:
    assert collect_texts(None, "first\n\n  second  \n") == ["first", "second"]


def test_collect_texts_with_nothing_raises_value_error() -> None:
    with pytest.raises(ValueError, match="No text provided"):
        collect_texts(None, None)


def test_collect_texts_with_blank_file_raises_value_error() -> None:
    with pytest.raises(ValueError, match="No text provided"):
        collect_texts([], "\n   \n")


def test_render_matrix_layout() -> None:
    table = render_matrix(((1.0, 0.73), (0.73, 1.0)))
    lines = table.splitlines()

    assert len(lines) == 3
    assert lines[0].split() == ["1", "2"]
    assert lines[1].split() == ["1", "1", "0.73"]
    assert lines[2].split() == ["2", "0.73", "1"]


def test_render_matrix_marks_highlight() -> None:
    table = render_matrix(((1.0, 0.5), (0.5, 1.0)), highlight=(False, True))
    lines = table.splitlines()

    assert lines[0].split() == ["1", "2*"]
    assert lines[2].split()[0] == "2*"


def test_render_matrix_precision() -> None:
    table = render_matrix(((1.0, 0.123), (0.123, 1.0)), precision=3)
    assert "0.123" in table


def test_render_empty_matrix() -> None:
    assert render_matrix(()).strip() == ""


def test_unknown_backend_is_rejected_before_running() -> None:
    """Test that an unregistered backend fails without starting a session."""
    with patch("embedgrid.cli.compute_grid", new_callable=AsyncMock) as mock_compute:
        result = CliRunner().invoke(app, ["one", "two", "-b", "nope"])

    assert result.exit_code == 1
    assert "Backend 'nope' not found" in result.output
    mock_compute.assert_not_called()


def test_key_error_inside_pipeline_is_not_reported_as_backend() -> None:
    """Test that a KeyError from the session is not mistaken for a bad backend."""
    with patch(
        "embedgrid.cli.compute_grid",
        new_callable=AsyncMock,
        side_effect=KeyError("token"),
    ):
        result = CliRunner().invoke(app, ["one", "two", "-b", "hashing"])

    assert isinstance(result.exception, KeyError)
    assert "not found" not in result.output
