"""Tests for the command line interface."""

from unittest.mock import patch

from typer.testing import CliRunner

from cli import typer_app

runner = CliRunner()


def test_ws_events_lists_all_client_events():
    """Test ws-events shows a handler for every client event."""
    result = runner.invoke(typer_app, ["ws-events"])

    assert result.exit_code == 0
    assert "4/4 handlers registered" in result.output
    for event in ("join", "chat message", "typing", "stop typing"):
        assert event in result.output


def test_serve_passes_overrides():
    """Test serve forwards --host and --port to the server runner."""
    with patch("run_server.main") as mock_main:
        result = runner.invoke(
            typer_app, ["serve", "--host", "127.0.0.1", "--port", "4000"]
        )

    assert result.exit_code == 0
    mock_main.assert_called_once_with(host="127.0.0.1", port=4000)


def test_run_server_uses_settings():
    """Test run_server starts uvicorn with HOST and PORT."""
    from run_server import main

    with patch("run_server.uvicorn.run") as mock_run:
        main()

    _, kwargs = mock_run.call_args
    assert mock_run.call_args.args == ("halotalk:application",)
    assert kwargs["factory"] is True
    assert kwargs["port"] == 3000
    assert kwargs["host"] == "0.0.0.0"
