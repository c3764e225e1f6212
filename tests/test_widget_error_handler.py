"""
Tests for the widget failure ledger, severity escalation and fallbacks.

The default thresholds (escalate at the 2nd retry, stop offering retry
after 3, auto-remove on the 5th failure) are product decisions; the
configurable-threshold tests below pin that they are not hardcoded.
"""

from __future__ import annotations

import threading
from unittest.mock import Mock

import pytest

from dashboard_resilience.config import WidgetRecoveryConfig
from dashboard_resilience.exceptions import ConfigurationError
from dashboard_resilience.models import ErrorSeverity, LogLevel
from dashboard_resilience.structured_log import LoggingService
from dashboard_resilience.widgets import CONTAINER_MARKER, WidgetErrorHandler


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def handler():
    return WidgetErrorHandler()


@pytest.fixture
def auto_remove():
    return Mock()


def fail(handler: WidgetErrorHandler, times: int, widget_id: str = "w1", plugin_id: str = "p1"):
    """Report ``times`` consecutive failures and return every record."""
    return [
        handler.handle_widget_error(widget_id, plugin_id, RuntimeError(f"failure {n}"))
        for n in range(1, times + 1)
    ]


# ============================================================================
# Failure Ledger Tests
# ============================================================================


def test_first_failure_creates_low_record(handler):
    record = handler.handle_widget_error("w1", "p1", RuntimeError("boom"))

    assert record.widget_id == "w1"
    assert record.plugin_id == "p1"
    assert record.retry_count == 0
    assert record.severity == ErrorSeverity.LOW
    assert record.error_message == "boom"
    assert record.failure_count == 1


def test_nth_failure_has_retry_count_n_minus_one(handler):
    records = fail(handler, 7)
    assert [r.retry_count for r in records] == list(range(7))


def test_last_error_is_replaced(handler):
    fail(handler, 3)
    assert handler.get_widget_error("w1").error_message == "failure 3"


def test_severity_escalation(handler):
    records = fail(handler, 5)
    assert [r.severity for r in records] == [
        ErrorSeverity.LOW,
        ErrorSeverity.MEDIUM,
        ErrorSeverity.HIGH,
        ErrorSeverity.HIGH,
        ErrorSeverity.HIGH,
    ]


def test_severity_is_monotonic_after_threshold_change(handler):
    """Test raising the threshold mid-stream never lowers a widget's severity."""
    fail(handler, 3)
    handler.update_config(escalation_threshold=10)

    record = handler.handle_widget_error("w1", "p1", RuntimeError("again"))

    assert record.severity == ErrorSeverity.HIGH


def test_can_retry(handler):
    assert handler.can_retry("never-failed") is True

    observed = []
    for record in fail(handler, 5):
        observed.append(handler.can_retry(record.widget_id))

    assert observed == [True, True, True, False, False]


def test_can_retry_false_after_four_failures(handler):
    fail(handler, 4)
    assert handler.can_retry("w1") is False


def test_clear_widget_error_starts_over(handler):
    fail(handler, 4)
    handler.clear_widget_error("w1")

    assert handler.get_widget_error("w1") is None
    assert handler.can_retry("w1") is True
    record = handler.handle_widget_error("w1", "p1", RuntimeError("fresh"))
    assert record.retry_count == 0
    assert record.severity == ErrorSeverity.LOW


def test_clear_unknown_widget_is_noop(handler):
    handler.clear_widget_error("ghost")
    assert handler.has_errors() is False


def test_returned_record_is_a_copy(handler):
    record = handler.handle_widget_error("w1", "p1", RuntimeError("boom"))
    record.retry_count = 99
    assert handler.get_widget_error("w1").retry_count == 0


def test_widgets_are_tracked_independently(handler):
    fail(handler, 3, widget_id="w1")
    record = handler.handle_widget_error("w2", "p1", RuntimeError("other"))
    assert record.retry_count == 0
    assert handler.get_widget_error("w1").retry_count == 2


# ============================================================================
# Auto-remove Tests
# ============================================================================


def test_auto_remove_fires_once_on_fifth_failure(handler, auto_remove):
    handler.set_auto_remove_callback(auto_remove)

    for n in range(1, 5):
        handler.handle_widget_error("w1", "p1", RuntimeError(f"failure {n}"))
        auto_remove.assert_not_called()

    handler.handle_widget_error("w1", "p1", RuntimeError("failure 5"))
    auto_remove.assert_called_once_with("w1", "p1")

    fail(handler, 3)
    auto_remove.assert_called_once()
    assert handler.get_widget_error("w1").auto_removed is True


def test_auto_remove_rearms_after_clear(handler, auto_remove):
    handler.set_auto_remove_callback(auto_remove)
    fail(handler, 5)
    handler.clear_widget_error("w1")
    fail(handler, 5)
    assert auto_remove.call_count == 2


def test_auto_remove_callback_errors_are_swallowed(handler):
    handler.set_auto_remove_callback(Mock(side_effect=RuntimeError("host gone")))
    records = fail(handler, 5)
    assert records[-1] is not None
    assert records[-1].auto_removed is True


def test_auto_remove_without_callback_still_marks_record(handler):
    fail(handler, 5)
    assert handler.get_widget_error("w1").auto_removed is True


def test_concurrent_failures_fire_auto_remove_once(auto_remove):
    """Test concurrent reports for one widget are applied one at a time."""
    handler = WidgetErrorHandler()
    handler.set_auto_remove_callback(auto_remove)
    barrier = threading.Barrier(8)

    def report():
        barrier.wait()
        for _ in range(5):
            handler.handle_widget_error("w1", "p1", RuntimeError("race"))

    threads = [threading.Thread(target=report) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert handler.get_widget_error("w1").retry_count == 39
    assert handler.get_error_statistics().total_errors == 40
    auto_remove.assert_called_once_with("w1", "p1")


# ============================================================================
# Configuration Tests
# ============================================================================


def test_custom_thresholds():
    config = WidgetRecoveryConfig(max_retries=1, escalation_threshold=1, auto_remove_after_failures=2)
    handler = WidgetErrorHandler(config=config)
    auto_remove = Mock()
    handler.set_auto_remove_callback(auto_remove)

    first, second = fail(handler, 2)

    assert first.severity == ErrorSeverity.LOW
    assert second.severity == ErrorSeverity.HIGH
    assert handler.can_retry("w1") is False
    auto_remove.assert_called_once()


def test_update_config_validates(handler):
    with pytest.raises(ConfigurationError):
        handler.update_config(max_retries=-1)
    assert handler.get_config().max_retries == 3


def test_get_config_returns_copy(handler):
    config = handler.get_config()
    config.max_retries = 100
    assert handler.get_config().max_retries == 3


# ============================================================================
# Listener and Logging Tests
# ============================================================================


def test_failure_listener_receives_records(handler):
    listener = Mock()
    handler.add_failure_listener(listener)
    fail(handler, 2)
    assert [call.args[0].retry_count for call in listener.call_args_list] == [0, 1]


def test_failing_listener_does_not_break_ledger(handler):
    handler.add_failure_listener(Mock(side_effect=RuntimeError("listener bug")))
    assert handler.handle_widget_error("w1", "p1", RuntimeError("boom")) is not None


def test_failures_are_reported_to_logging_service():
    service = LoggingService(max_entries=20)
    handler = WidgetErrorHandler(logging_service=service)

    fail(handler, 2)

    entries = service.search_logs({"component": "widget:w1"})
    assert len(entries) == 2
    assert entries[0].level == LogLevel.ERROR
    assert entries[0].context.plugin_id == "p1"
    assert entries[1].metadata == {"retry_count": 1, "severity": "medium"}


def test_unprintable_error_is_recorded_and_logged(unprintable_error):
    """Test a fault whose str() raises still reaches the ledger and the log."""
    service = LoggingService(max_entries=20)
    handler = WidgetErrorHandler(logging_service=service)

    record = handler.handle_widget_error("w1", "p1", unprintable_error)

    assert record is not None
    assert record.error_message == "<unprintable UnprintableError>"
    [entry] = service.search_logs({"component": "widget:w1"})
    assert entry.message == "<unprintable UnprintableError>"
    rendered = handler.render_fallback(handler.create_fallback(record).id)
    assert "&lt;unprintable UnprintableError&gt;" in rendered



# ============================================================================
# Statistics Tests
# ============================================================================


def test_error_statistics(handler):
    fail(handler, 3, widget_id="w1", plugin_id="p1")
    fail(handler, 1, widget_id="w2", plugin_id="p1")
    fail(handler, 2, widget_id="w3", plugin_id="p2")

    stats = handler.get_error_statistics()

    assert stats.total_errors == 6
    assert stats.widget_count == 3
    assert stats.plugin_errors == {"p1": 2, "p2": 1}
    assert stats.severity_breakdown[ErrorSeverity.HIGH] == 1
    assert stats.severity_breakdown[ErrorSeverity.MEDIUM] == 1
    assert stats.severity_breakdown[ErrorSeverity.LOW] == 1
    assert stats.severity_breakdown[ErrorSeverity.CRITICAL] == 0


def test_total_errors_counts_cleared_widgets(handler):
    fail(handler, 2)
    handler.clear_widget_error("w1")

    stats = handler.get_error_statistics()

    assert stats.total_errors == 2
    assert stats.widget_count == 0


def test_lookup_helpers(handler):
    fail(handler, 1, widget_id="w1", plugin_id="p1")
    fail(handler, 1, widget_id="w2", plugin_id="p2")

    assert handler.has_errors() is True
    assert handler.get_error_count() == 2
    assert handler.is_widget_failed("w1") is True
    assert handler.is_widget_failed("w9") is False
    assert handler.get_failed_widgets_by_plugin("p2") == ["w2"]
    assert sorted(handler.get_all_failed_widgets()) == ["w1", "w2"]


def test_cleanup_resets_everything(handler, auto_remove):
    handler.set_auto_remove_callback(auto_remove)
    record = fail(handler, 1)[0]
    fallback = handler.create_fallback(record)

    handler.cleanup()

    assert handler.has_errors() is False
    assert handler.get_fallback(fallback.id) is None
    assert handler.get_error_statistics().total_errors == 0
    fail(handler, 5)
    auto_remove.assert_not_called()


# ============================================================================
# Fallback Tests
# ============================================================================


def test_create_fallback_for_low_severity(handler):
    record = handler.handle_widget_error("w1", "p1", RuntimeError("timeout"))

    fallback = handler.create_fallback(record)

    assert fallback.id.startswith("fallback-w1-")
    assert fallback.widget_id == "w1"
    assert fallback.show_retry is True
    assert fallback.show_remove is True
    assert fallback.error_message == "timeout"
    assert [a.id for a in fallback.actions] == ["retry", "remove"]
    assert "retry" in fallback.content.lower()


def test_create_fallback_high_severity_disables_retry(handler):
    record = fail(handler, 3)[-1]

    fallback = handler.create_fallback(record)

    assert record.severity == ErrorSeverity.HIGH
    assert fallback.show_retry is False
    assert "critical error" in fallback.content
    assert [a.id for a in fallback.visible_actions()] == ["remove"]


def test_create_fallback_with_report_action(handler):
    record = fail(handler, 1)[0]
    fallback = handler.create_fallback(record, on_report=Mock())
    assert [a.id for a in fallback.actions] == ["retry", "remove", "report"]


def test_fallback_ids_are_unique(handler):
    record = fail(handler, 1)[0]
    ids = {handler.create_fallback(record).id for _ in range(10)}
    assert len(ids) == 10


def test_execute_fallback_actions(handler):
    record = fail(handler, 1)[0]
    on_retry, on_remove, on_report = Mock(), Mock(), Mock()
    fallback = handler.create_fallback(record, on_retry=on_retry, on_remove=on_remove, on_report=on_report)

    assert handler.execute_fallback_action(fallback.id, "retry") is True
    assert handler.execute_fallback_action(fallback.id, "remove") is True
    assert handler.execute_fallback_action(fallback.id, "report") is True

    on_retry.assert_called_once_with("w1")
    on_remove.assert_called_once_with("w1")
    reported = on_report.call_args[0][0]
    assert reported.widget_id == "w1"
    assert reported.retry_count == 0


def test_execute_unknown_fallback_or_action_is_ignored(handler):
    record = fail(handler, 1)[0]
    on_retry = Mock()
    fallback = handler.create_fallback(record, on_retry=on_retry)

    assert handler.execute_fallback_action("missing", "retry") is False
    assert handler.execute_fallback_action(fallback.id, "explode") is False
    assert handler.execute_fallback_action(fallback.id, "remove") is False
    on_retry.assert_not_called()


def test_execute_fallback_action_callback_error(handler):
    record = fail(handler, 1)[0]
    fallback = handler.create_fallback(record, on_retry=Mock(side_effect=RuntimeError("x")))
    assert handler.execute_fallback_action(fallback.id, "retry") is False


def test_clear_widget_error_drops_its_fallbacks(handler):
    record = fail(handler, 1)[0]
    fallback = handler.create_fallback(record)
    handler.clear_widget_error("w1")
    assert handler.get_fallback(fallback.id) is None


# ============================================================================
# Rendering Tests
# ============================================================================


def test_render_fallback_contains_marker_and_message(handler):
    record = handler.handle_widget_error("w1", "p1", RuntimeError("Data source unavailable"))
    fallback = handler.create_fallback(record)

    rendered = handler.render_fallback(fallback.id)

    assert CONTAINER_MARKER in rendered
    assert "Data source unavailable" in rendered
    assert 'data-action="retry"' in rendered
    assert 'data-action="remove"' in rendered


def test_render_fallback_keeps_quotes_in_message(handler):
    record = handler.handle_widget_error("w1", "p1", RuntimeError("can't load 'prices'"))
    rendered = handler.render_fallback(handler.create_fallback(record).id)
    assert "can't load 'prices'" in rendered


def test_render_fallback_escapes_markup(handler):
    record = handler.handle_widget_error("w1", "p1", RuntimeError("<script>alert(1)</script>"))
    rendered = handler.render_fallback(handler.create_fallback(record).id)
    assert "<script>" not in rendered
    assert "&lt;script&gt;" in rendered


def test_render_fallback_shows_message_in_escaped_form(handler):
    record = handler.handle_widget_error("w1", "p1", RuntimeError("rates & fees < 0"))
    rendered = handler.render_fallback(handler.create_fallback(record).id)
    assert "<pre>rates &amp; fees &lt; 0</pre>" in rendered
    assert "rates & fees" not in rendered



def test_render_high_severity_hides_retry(handler):
    record = fail(handler, 3)[-1]
    rendered = handler.render_fallback(handler.create_fallback(record).id)
    assert 'data-action="retry"' not in rendered
    assert 'data-action="remove"' in rendered


def test_render_unknown_fallback_is_minimal(handler):
    rendered = handler.render_fallback("does-not-exist")
    assert CONTAINER_MARKER in rendered
    assert "data-action" not in rendered


def test_render_without_message_has_no_details(handler):
    record = handler.handle_widget_error("w1", "p1", RuntimeError())
    rendered = handler.render_fallback(handler.create_fallback(record).id)
    assert "error-details" not in rendered


# ============================================================================
# End-to-end Scenario
# ============================================================================


def test_widget_fails_five_times(auto_remove):
    """Test widget w1 of plugin p1 failing five times in a row."""
    handler = WidgetErrorHandler()
    handler.set_auto_remove_callback(auto_remove)

    severities, retryable, removed_on = [], [], []
    for n in range(1, 6):
        record = handler.handle_widget_error("w1", "p1", RuntimeError(f"failure {n}"))
        severities.append(record.severity)
        retryable.append(handler.can_retry("w1"))
        if auto_remove.called and not removed_on:
            removed_on.append(n)

    assert severities == [
        ErrorSeverity.LOW,
        ErrorSeverity.MEDIUM,
        ErrorSeverity.HIGH,
        ErrorSeverity.HIGH,
        ErrorSeverity.HIGH,
    ]
    assert retryable == [True, True, True, False, False]
    assert removed_on == [5]
    auto_remove.assert_called_once_with("w1", "p1")
