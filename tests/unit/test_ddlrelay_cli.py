"""Unit tests for the ddlrelay CLI."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from sqlalchemy import insert
from typer.testing import CliRunner

from ddlrelay.cli import app
from ddlrelay.cli.init_config import init_config_command
from ddlrelay.config import load_config
from ddlrelay.db import ConnectionPoolManager, LocalDDLAuditModel, ensure_schema

runner = CliRunner()
WIDE = {"COLUMNS": "250"}


def _config_file(tmp_path: Path, **audit: int) -> Path:
    audit_lines = "".join(f"  {key}: {value}\n" for key, value in audit.items())
    path = tmp_path / "ddlrelay.yaml"
    path.write_text(
        "audit:\n"
        "  polling_interval: 5\n"
        f"{audit_lines}"
        "central:\n"
        "  name: central\n"
        f"  url: sqlite+aiosqlite:///{tmp_path}/central.db\n"
        "sources:\n"
        "  - name: sales\n"
        f"    url: sqlite+aiosqlite:///{tmp_path}/sales.db\n",
        encoding="utf-8",
    )
    return path


def _seed(path: Path, rows: list[dict]) -> None:
    async def _run() -> None:
        config = load_config(path, environ={})
        async with ConnectionPoolManager() as pools:
            pool = await pools.acquire(config.sources[0])
            await ensure_schema(pool, "source")
            async with pool.engine.begin() as conn:
                for row in rows:
                    await conn.execute(insert(LocalDDLAuditModel.__table__).values(**row))

    asyncio.run(_run())


def test_check_prints_store_table(tmp_path: Path) -> None:
    path = _config_file(tmp_path)
    result = runner.invoke(app, ["check", "--config", str(path)], env=WIDE)
    assert result.exit_code == 0, result.output
    assert "central" in result.output
    assert "sales" in result.output
    assert "OK" in result.output


def test_check_reports_configuration_error(tmp_path: Path) -> None:
    path = tmp_path / "ddlrelay.yaml"
    path.write_text("audit:\n  batch_size: 5\n", encoding="utf-8")
    result = runner.invoke(app, ["check", "--config", str(path)], env=WIDE)
    assert result.exit_code == 1


def test_poll_once_relays_pending_events(tmp_path: Path, make_row) -> None:
    path = _config_file(tmp_path)
    _seed(path, [make_row("T1"), make_row("T2", offset_s=1)])

    result = runner.invoke(app, ["poll-once", "--config", str(path)], env=WIDE)

    assert result.exit_code == 0, result.output
    assert "Relayed" in result.output


def test_stuck_lists_exhausted_events(tmp_path: Path, make_row) -> None:
    path = _config_file(tmp_path, max_retries=2)
    _seed(path, [make_row("orders", retry_count=2, error_message="timeout"), make_row("fine", offset_s=1)])

    result = runner.invoke(app, ["stuck", "--config", str(path)], env=WIDE)

    assert result.exit_code == 0, result.output
    assert "orders" in result.output
    assert "timeout" in result.output
    assert "fine" not in result.output


def test_stuck_rejects_unknown_store(tmp_path: Path) -> None:
    path = _config_file(tmp_path)
    result = runner.invoke(app, ["stuck", "--config", str(path), "--store", "nope"], env=WIDE)
    assert result.exit_code == 1


def test_log_level_option_is_validated(tmp_path: Path) -> None:
    path = _config_file(tmp_path)
    result = runner.invoke(app, ["--log-level", "LOUD", "check", "--config", str(path)])
    assert result.exit_code != 0


def test_init_config_command_generates_yaml(tmp_path: Path) -> None:
    out = init_config_command(path=str(tmp_path))
    assert out.name == "ddlrelay.yaml"
    text = out.read_text(encoding="utf-8")
    assert "audit:" in text
    assert "sources:" in text


def test_init_config_command_refuses_overwrite_without_force(tmp_path: Path) -> None:
    (tmp_path / "ddlrelay.yaml").write_text("existing", encoding="utf-8")
    with pytest.raises(FileExistsError):
        init_config_command(path=str(tmp_path))
    result = runner.invoke(app, ["init-config", "--path", str(tmp_path)])
    assert result.exit_code == 1


def test_init_config_command_overwrites_with_force(tmp_path: Path) -> None:
    target = tmp_path / "ddlrelay.yaml"
    target.write_text("existing", encoding="utf-8")
    result = runner.invoke(app, ["init-config", "--path", str(tmp_path), "--force"])
    assert result.exit_code == 0, result.output
    assert "central:" in target.read_text(encoding="utf-8")
