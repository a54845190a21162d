"""Environment config and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from config import settings, setup_logging, thresholds


def test_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("BACKEND_URL", raising=False)
    monkeypatch.delenv("API_TOKEN", raising=False)

    conf = settings.load_env_config()

    assert conf["BACKEND_URL"] == "http://localhost:5000/api"
    assert conf["API_TOKEN"] == ""
    assert set(conf) == {"BACKEND_URL", "API_TOKEN"}
    assert thresholds.MATCH_THRESHOLD == 0.6
    assert thresholds.DESCRIPTOR_SIZE == 128


def test_env_file_then_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env.local").write_text(
        "# kiosk\nBACKEND_URL='http://file.test/api'\nAPI_TOKEN=\"from-file\"\n\n", encoding="utf-8"
    )
    monkeypatch.setenv("API_TOKEN", "from-env")
    monkeypatch.delenv("BACKEND_URL", raising=False)

    conf = settings.load_env_config()

    assert conf["BACKEND_URL"] == "http://file.test/api"
    assert conf["API_TOKEN"] == "from-env"


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    try:
        setup_logging("DEBUG", log_dir=str(tmp_path / "logs"))
        logging.getLogger("core.test").info("hello kiosk")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.DEBUG
        assert "hello kiosk" in (tmp_path / "logs" / "kiosk.log").read_text(encoding="utf-8")
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        root.setLevel(saved[0])
        for handler in saved[1]:
            root.addHandler(handler)
