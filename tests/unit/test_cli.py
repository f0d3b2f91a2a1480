from __future__ import annotations

import logging
from pathlib import Path

from gamemachine import cli
from gamemachine.logging_utils import logger, set_debug


def test_cli_passes_explicit_config(tmp_path: Path, monkeypatch) -> None:
    cfg_path = tmp_path / "asm.cfg"
    cfg_path.write_text("address_high=0x01\n", encoding="utf-8")
    called = {}

    def fake_main(config_path):
        called["path"] = config_path
        return 0

    monkeypatch.setattr(cli, "_main", fake_main)

    assert cli.main(["--config", str(cfg_path)]) == 0
    assert called["path"] == str(cfg_path)


def test_cli_default_config_under_work_dir(tmp_path: Path, monkeypatch) -> None:
    seen = {}

    def fake_main(config_path):
        from os import getcwd

        seen["path"] = config_path
        seen["cwd"] = Path(getcwd())
        return 1

    monkeypatch.setattr(cli, "_main", fake_main)
    before = Path.cwd()

    assert cli.main(["-d", str(tmp_path)]) == 1
    assert seen["path"] == str(tmp_path / "airsoft" / "asm-config.cfg")
    assert seen["cwd"] == tmp_path.resolve()
    # the wrapper restores the caller's directory
    assert Path.cwd() == before


def test_cli_log_dir(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "_main", lambda config_path: 0)
    logdir = tmp_path / "logs"

    try:
        assert cli.main(["--log-dir", str(logdir), "--debug", "-d", str(tmp_path)]) == 0
        assert (logdir / "asm.log").exists()
        assert logger.level == logging.DEBUG
    finally:
        for handler in [h for h in logger.handlers if isinstance(h, logging.FileHandler)]:
            logger.removeHandler(handler)
            handler.close()
        set_debug(False)
