"""
User-friendly error translation for the dashboard.

Converts raw exceptions into short, actionable messages. The text shown to
the user is always one of the fixed messages below; nothing from the
exception (type name, stack frames, line numbers) is copied into it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from ..models import ErrorAction, ErrorContext, ErrorSeverity, UserFriendlyError, error_text

logger = logging.getLogger("dashboard-resilience")


class ErrorCategory(str, Enum):
    """Buckets a raw fault is sorted into before translation."""

    NETWORK = "network"
    PERMISSION = "permission"
    VALIDATION = "validation"
    PLUGIN = "plugin"
    UI_RENDERING = "ui_rendering"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CategoryRule:
    """Matching rule and canned response for one category."""

    category: ErrorCategory
    message_pattern: re.Pattern[str] | None
    exception_types: tuple[type[BaseException], ...] = ()
    component_pattern: re.Pattern[str] | None = None
    message: str = ""
    actions: tuple[tuple[str, str], ...] = field(default_factory=tuple)


_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        category=ErrorCategory.NETWORK,
        message_pattern=re.compile(
            r"network|connection|timed? ?out|fetch|ECONNREFUSED|ENOTFOUND|unreachable",
            re.IGNORECASE,
        ),
        exception_types=(ConnectionError, TimeoutError),
        message="Connection problem detected. Please check your internet connection.",
        actions=(("Retry", "retry_connection"), ("Check Settings", "open_network_settings")),
    ),
    CategoryRule(
        category=ErrorCategory.PERMISSION,
        message_pattern=re.compile(
            r"permission|unauthori[sz]ed|forbidden|access denied|not authenticated"
            r"|(?<![a-z])auth(entication|orization)?(?![a-z])",
            re.IGNORECASE,
        ),
        exception_types=(PermissionError,),
        message="Permission denied. Please check your account permissions.",
        actions=(("Login Again", "reauth"), ("Contact Support", "contact_support")),
    ),
    CategoryRule(
        category=ErrorCategory.VALIDATION,
        message_pattern=re.compile(r"validation|invalid|required field", re.IGNORECASE),
        message="Please check your input and try again.",
        actions=(("Review Input", "review_input"), ("Clear Form", "clear_form")),
    ),
    CategoryRule(
        category=ErrorCategory.PLUGIN,
        message_pattern=re.compile(r"plugin.*(fail|error|load)", re.IGNORECASE),
        message="A plugin encountered an issue. You can try disabling it temporarily.",
        actions=(("Disable Plugin", "disable_plugin"),),
    ),
    CategoryRule(
        category=ErrorCategory.UI_RENDERING,
        message_pattern=re.compile(r"render|template|layout", re.IGNORECASE),
        component_pattern=re.compile(r"widget|render|view|(?<![a-z])ui(?![a-z])|component", re.IGNORECASE),
        message="A part of the page failed to display. Refreshing the page may help.",
        actions=(("Refresh Page", "refresh_page"), ("Report Issue", "report_issue")),
    ),
)

_DEFAULT_MESSAGE = "An unexpected error occurred. Our team has been notified."
_DEFAULT_ACTIONS = (("Try Again", "retry_operation"), ("Report Issue", "report_issue"))

# Text that must never reach the user verbatim
_TECHNICAL_PATTERN = re.compile(
    r"Traceback \(most recent call last\)|File \"[^\"]+\", line \d+|\bline \d+\b|\b\w+(Error|Exception):",
)


class UserErrorTranslator:
    """Maps raw faults to sanitized user messages plus recovery actions."""

    def __init__(self, rules: tuple[CategoryRule, ...] = _RULES):
        self.rules = rules

    def categorize(self, error: BaseException, context: ErrorContext | None = None) -> ErrorCategory:
        """Pick the first category whose rule matches the fault.

        Args:
            error: The raw exception
            context: Optional error context (component is used for UI faults)

        Returns:
            The matching ErrorCategory, UNKNOWN when nothing matches
        """
        text = error_text(error)
        type_name = type(error).__name__
        component = context.component if context and context.component else ""

        for rule in self.rules:
            if rule.exception_types and isinstance(error, rule.exception_types):
                return rule.category
            if rule.message_pattern is not None and (
                rule.message_pattern.search(text) or rule.message_pattern.search(type_name)
            ):
                if rule.category is ErrorCategory.PLUGIN and not (context and context.plugin_id):
                    continue
                return rule.category
            if rule.component_pattern is not None and component and rule.component_pattern.search(component):
                return rule.category
        return ErrorCategory.UNKNOWN

    def translate(self, error: BaseException, context: ErrorContext | None = None) -> UserFriendlyError:
        """Build the sanitized payload for the user display callback.

        Args:
            error: The raw exception
            context: Optional error context

        Returns:
            UserFriendlyError with a fixed message and recovery actions
        """
        category = self.categorize(error, context)
        severity = context.severity if context else ErrorSeverity.MEDIUM

        rule = next((r for r in self.rules if r.category is category), None)
        if rule is None:
            message, action_pairs = _DEFAULT_MESSAGE, _DEFAULT_ACTIONS
        else:
            message, action_pairs = rule.message, rule.actions

        actions = []
        for label, action in action_pairs:
            data = None
            if action == "disable_plugin" and context and context.plugin_id:
                data = {"plugin_id": context.plugin_id}
            actions.append(ErrorAction(label=label, action=action, data=data))

        logger.debug(f"Translated {type(error).__name__} as {category.value} error")
        return UserFriendlyError(message=message, actions=actions, severity=severity)

    def sanitize(self, message: str) -> str:
        """Replace host-supplied text that leaks technical internals."""
        if not message or _TECHNICAL_PATTERN.search(message):
            return _DEFAULT_MESSAGE
        return message


__all__ = [
    "ErrorCategory",
    "CategoryRule",
    "UserErrorTranslator",
]
