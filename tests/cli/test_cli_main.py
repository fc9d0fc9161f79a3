from unittest.mock import patch


def test_cli_main_invokes_uvicorn_run():
    with patch("uvicorn.run") as mock_run:
        # import inside test to ensure patch target is available
        from bona.cli import main as cli_main

        cli_main.main()

    mock_run.assert_called_once()
    assert mock_run.call_args.args[0] == "bona.main:app"


def test_cli_main_reads_host_and_port(monkeypatch):
    monkeypatch.setenv("BONA_HOST", "0.0.0.0")
    monkeypatch.setenv("BONA_PORT", "9001")

    with patch("uvicorn.run") as mock_run:
        from bona.cli import main as cli_main

        cli_main.main()

    assert mock_run.call_args.kwargs["host"] == "0.0.0.0"
    assert mock_run.call_args.kwargs["port"] == 9001
