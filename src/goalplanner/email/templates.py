"""
Email templates for Goal Planner.

All templates use inline CSS for email client compatibility.
User-supplied values are HTML-escaped before they reach the markup.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from collections.abc import Mapping
from html import escape

# Color constants
BG_PAGE = "#F6F7F9"
BG_CARD = "#FFFFFF"
ACCENT = "#111827"
GREEN = "#22C55E"
AMBER = "#F59E0B"
GREY = "#6B7280"
TEXT_PRIMARY = "#111827"
TEXT_SECONDARY = "#4B5563"
BORDER = "#E5E7EB"


def _base_layout(content: str, app_name: str = "Goal Planner") -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 22px; font-weight: 700; color: {TEXT_PRIMARY};">&#x1F3AF; {app_name}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 40px 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {GREY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                You are receiving this because you have an account on {app_name}.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _button(url: str, label: str, color: str = ACCENT) -> str:
    """Render an inline CTA button."""
    return (
        f'<a href="{escape(url)}" target="_blank" style="display: inline-block; background: {color}; '
        f"color: #FFFFFF; padding: 12px 20px; font-size: 15px; font-weight: 600; text-decoration: none; "
        f'border-radius: 6px; margin: 4px;">{label}</a>'
    )


def welcome_email(first_name: str | None, app_url: str) -> tuple[str, str, str]:
    """
    Welcome email sent when an account is created.

    Returns:
        (subject, html_body, text_body)
    """
    name = escape(first_name or "there")
    dashboard_url = f"{app_url.rstrip('/')}/dashboard"
    subject = "Welcome to Goal Planner! 🎯"
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 24px; font-weight: 700; margin: 0 0 16px 0;">Welcome to Goal Planner!</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 8px 0;">Hi {name},</p>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 16px 0;">
    We're excited to help you turn your goals into achievements. Here's what you can do next:
</p>
<ul style="color: {TEXT_SECONDARY}; font-size: 15px; line-height: 1.8; margin: 0 0 24px 0;">
    <li>Create your first goal</li>
    <li>Set up your profile</li>
    <li>Explore community goals for inspiration</li>
</ul>
{_button(dashboard_url, "Get Started")}"""
    html_body = _base_layout(content)
    text_body = (
        f"Hi {first_name or 'there'},\n\n"
        "Welcome to Goal Planner! We're excited to help you turn your goals into achievements.\n\n"
        "Next steps:\n"
        "- Create your first goal\n"
        "- Set up your profile\n"
        "- Explore community goals for inspiration\n\n"
        f"Get started: {dashboard_url}\n\n"
        "-- The Goal Planner Team"
    )
    return subject, html_body, text_body


def daily_check_in_email(first_name: str | None, goal_title: str, app_url: str) -> tuple[str, str, str]:
    """
    Daily reminder for users who have not checked in today.

    Returns:
        (subject, html_body, text_body)
    """
    name = escape(first_name or "there")
    title = escape(goal_title)
    check_in_url = f"{app_url.rstrip('/')}/check-in"
    subject = "How's your goal going? 💪"
    content = f"""\
<h2 style="color: {TEXT_PRIMARY}; font-size: 22px; font-weight: 700; margin: 0 0 16px 0;">Hey {name}, how's it going?</h2>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 8px 0;">
    Just checking in on your goal: <strong style="color: {TEXT_PRIMARY};">{title}</strong>
</p>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 24px 0;">
    How are you feeling about your progress today?
</p>
<div style="margin: 24px 0;">
    {_button(f"{check_in_url}?mood=great", "✅ On Track", GREEN)}
    {_button(f"{check_in_url}?mood=struggling", "😕 Struggling", AMBER)}
    {_button(f"{check_in_url}?mood=stuck", "⏸️ Stuck", GREY)}
</div>"""
    html_body = _base_layout(content)
    text_body = (
        f"Hey {first_name or 'there'}, how's it going?\n\n"
        f"Just checking in on your goal: {goal_title}\n\n"
        f"Log today's check-in: {check_in_url}\n\n"
        "-- The Goal Planner Team"
    )
    return subject, html_body, text_body


def render_template(name: str, context: Mapping[str, str | None], app_url: str) -> tuple[str, str, str]:
    """
    Render a registered template by name.

    Raises:
        ValueError: If ``name`` is not a known template.
    """
    if name == "welcome":
        return welcome_email(context.get("first_name"), app_url)
    if name == "daily_check_in":
        return daily_check_in_email(context.get("first_name"), context.get("goal_title") or "", app_url)
    msg = f"Unknown template: {name}"
    raise ValueError(msg)
