from __future__ import annotations

from pathlib import Path

import pytest
from openpyxl import load_workbook

from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_config_option_precedes_subcommand() -> None:
    args = _parse_args(["--config", "fastsewa.yaml", "stats"])
    assert args.command == "stats"
    assert args.config == "fastsewa.yaml"


def test_export_requires_known_target() -> None:
    assert _parse_args(["export", "bookings"]).target == "bookings"
    with pytest.raises(SystemExit):
        _parse_args(["export", "services"])


@pytest.fixture()
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.delenv("FASTSEWA_CONFIG", raising=False)
    monkeypatch.setenv("FASTSEWA_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("FASTSEWA_EXPORT_DIR", str(tmp_path / "exports"))
    return tmp_path


def test_init_data_and_stats(isolated_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["init-data"])
    assert (isolated_env / "data" / "users.json").exists()
    assert (isolated_env / "data" / "services.json").exists()

    main(["stats"])
    output = capsys.readouterr().out
    assert "totalUsers: 1" in output
    assert "adminUsers: 1" in output


def test_export_users_command(isolated_env: Path) -> None:
    main(["export", "users"])

    exported = list((isolated_env / "exports").glob("users_export_*.xlsx"))
    assert len(exported) == 1
    assert load_workbook(exported[0]).sheetnames == ["Users", "Summary"]
