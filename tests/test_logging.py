from __future__ import annotations

import logging

from gallicagram.logging import configure_logging


def test_configure_logging_quiets_http_client_loggers(monkeypatch) -> None:
    monkeypatch.setenv("GALLICAGRAM_LOG_LEVEL", "debug")

    configure_logging()

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING
