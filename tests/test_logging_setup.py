from __future__ import annotations

import logging

import pytest

from ledger_recon.logging_setup import _level, get_logger


def test_level_accepts_names_numbers_and_env(monkeypatch: pytest.MonkeyPatch):
    assert _level("debug") == logging.DEBUG
    assert _level(" Warning ") == logging.WARNING
    assert _level("15") == 15
    assert _level(logging.ERROR) == logging.ERROR
    assert _level("chatty") == logging.INFO

    monkeypatch.setenv("LEDGER_RECON_LOG_LEVEL", "ERROR")
    assert _level(None) == logging.ERROR
    monkeypatch.delenv("LEDGER_RECON_LOG_LEVEL")
    assert _level(None) == logging.INFO


def test_get_logger_returns_children_of_the_package_logger():
    logger = get_logger("ledger_recon.session")
    assert logger.name == "ledger_recon.session"
    assert logging.getLogger("ledger_recon").handlers
