"""
HTML fragments for widget fallbacks.

Output is deterministic for a given fallback so UI tests can assert on it.
Every fragment carries the ``widget-error-fallback`` container class; each
rendered action carries ``data-action="<id>"``. All dynamic text is
escaped with html.escape(), so an error message appears in the details
block in escaped form: ``a & b`` renders as ``a &amp; b`` and markup in
the message is never interpreted.
"""

from __future__ import annotations

import html

from .models import WidgetFallback

CONTAINER_MARKER = "widget-error-fallback"

_ICONS = {
    "refresh": "&#x21bb;",
    "close": "&#x2715;",
    "bug": "&#x1f41e;",
}


def render_minimal_fallback() -> str:
    """Generic fragment used when the fallback id is unknown."""
    return (
        f'<div class="{CONTAINER_MARKER} minimal">\n'
        '    <div class="error-content">\n'
        '        <h4>Widget Error</h4>\n'
        '        <p>An error occurred while loading this widget.</p>\n'
        '    </div>\n'
        '</div>'
    )


def render_fallback_html(fallback: WidgetFallback) -> str:
    """Render a fallback with its message, details and action buttons."""
    safe_widget_id = html.escape(fallback.widget_id)
    safe_fallback_id = html.escape(fallback.id)
    safe_content = html.escape(fallback.content)

    details_html = ""
    if fallback.error_message:
        # text content only; quotes stay literal, & < > are escaped
        safe_message = html.escape(fallback.error_message, quote=False)
        details_html = (
            '\n        <details class="error-details">\n'
            '            <summary>Error Details</summary>\n'
            f'            <pre>{safe_message}</pre>\n'
            '        </details>'
        )

    buttons = []
    for action in fallback.visible_actions():
        icon_html = ""
        if action.icon:
            icon_html = f'<span class="icon">{_ICONS.get(action.icon, html.escape(action.icon))}</span>'
        buttons.append(
            f'        <button class="error-action {html.escape(action.variant)}" '
            f'data-action="{html.escape(action.id)}" data-fallback-id="{safe_fallback_id}">'
            f'{icon_html}{html.escape(action.label)}</button>'
        )
    buttons_html = "\n".join(buttons)

    return (
        f'<div class="{CONTAINER_MARKER}" data-widget-id="{safe_widget_id}">\n'
        '    <div class="error-content">\n'
        '        <div class="error-icon">&#x26a0;</div>\n'
        '        <h4>Widget Error</h4>\n'
        f'        <p>{safe_content}</p>'
        f'{details_html}\n'
        '    </div>\n'
        '    <div class="error-actions">\n'
        f'{buttons_html}\n'
        '    </div>\n'
        '</div>'
    )


__all__ = [
    "CONTAINER_MARKER",
    "render_minimal_fallback",
    "render_fallback_html",
]
