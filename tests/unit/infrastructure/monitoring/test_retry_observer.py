import logging
from unittest.mock import MagicMock

from d365cli.domain.interfaces.user_interface import UserInterface
from d365cli.infrastructure.monitoring.retry_observer import LoggingRetryObserver


def test_each_retry_is_logged_and_shown(caplog):
    mock_ui = MagicMock(spec=UserInterface)
    observer = LoggingRetryObserver(ui=mock_ui)

    with caplog.at_level(logging.INFO, logger="d365cli.infrastructure.monitoring.retry_observer"):
        observer.on_retry(1, 2.0)
        observer.on_retry(2, 4.0)

    assert [r.getMessage() for r in caplog.records] == [
        "Retry Attempt No: 1 (next attempt in 2.00s)",
        "Retry Attempt No: 2 (next attempt in 4.00s)",
    ]
    assert mock_ui.display_warning.call_count == 2
    mock_ui.display_warning.assert_called_with("Retry Attempt No: 2, waiting 4s")


def test_observer_without_ui_only_logs(caplog):
    with caplog.at_level(logging.INFO):
        LoggingRetryObserver().on_retry(3, 8.0)

    assert "Retry Attempt No: 3" in caplog.text
