"""
Email bodies for the committee notifications (text + HTML).

Every builder returns a NotificationContent ready for enqueue. Links go through
/open?to=<path> on APP_BASE_URL so the app can route to the right screen after login.
"""
from html import escape
from urllib.parse import quote, urljoin, urlparse

from grant_notify.config import settings
from grant_notify.services.notifications.types import NotificationContent, sanitize_link_path
from grant_notify.services.outstanding import OutstandingAction, OwnProposalUpdate

_P = '<p style="margin:0 0 16px 0;font-size:15px;line-height:1.5;color:#111827;">'
_MUTED = "color:#4b5563;font-size:14px;"
_CARD_OPEN = (
    '<table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" style="margin:0 0 10px 0;">'
    '<tr><td style="padding:12px 16px;border:1px solid #e5e7eb;border-radius:6px;">'
)
_CARD_CLOSE = "</td></tr></table>"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _app_base_url() -> str | None:
    parsed = urlparse(settings.app_base_url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}/"


def build_open_path(path: str) -> str:
    return f"/open?to={quote(sanitize_link_path(path), safe='')}"


def build_open_url(path: str) -> str:
    """Absolute /open link when APP_BASE_URL is set, else the relative path."""
    open_path = build_open_path(path)
    base = _app_base_url()
    return urljoin(base, open_path) if base else open_path


def wrap_email_html(preheader: str, content_html: str) -> str:
    org = escape(settings.organization_name)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width, initial-scale=1.0" />
<title>{org}</title>
</head>
<body style="margin:0;padding:0;background-color:#f4f5f7;font-family:Arial,Helvetica,sans-serif;">
<div style="display:none;max-height:0;overflow:hidden;">{escape(preheader)}</div>
<table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" style="background-color:#f4f5f7;">
<tr><td align="center" style="padding:24px 16px;">
<table role="presentation" width="600" cellpadding="0" cellspacing="0" border="0" style="max-width:600px;width:100%;">
<tr><td style="padding:20px 32px;border-bottom:3px solid #249660;">
<span style="font-size:18px;font-weight:700;color:#111827;">{org}</span>
</td></tr>
<tr><td style="background-color:#ffffff;border:1px solid #e5e7eb;border-radius:8px;padding:32px;">
{content_html}
</td></tr>
<tr><td style="padding:20px 32px;text-align:center;">
<p style="margin:0 0 6px 0;font-size:12px;color:#9ca3af;">You received this email because you are a member of {org}.</p>
<p style="margin:0;font-size:12px;color:#9ca3af;">Sent automatically. Please do not reply to this email.</p>
</td></tr>
</table>
</td></tr>
</table>
</body>
</html>"""


def email_button(label: str, href: str) -> str:
    return (
        '<table role="presentation" cellpadding="0" cellspacing="0" border="0" style="margin:20px 0;">'
        '<tr><td align="center" style="background-color:#2563eb;border-radius:8px;">'
        f'<a href="{escape(href)}" style="display:inline-block;background-color:#2563eb;color:#ffffff;'
        'padding:14px 28px;border-radius:8px;text-decoration:none;font-weight:600;font-size:14px;">'
        f"{escape(label)}</a></td></tr></table>"
    )


def section_heading(text: str) -> str:
    return (
        '<h3 style="margin:28px 0 12px 0;padding-bottom:8px;border-bottom:1px solid #e5e7eb;'
        f'font-size:16px;font-weight:700;color:#111827;">{escape(text)}</h3>'
    )


def render_actions_text(actions: list[OutstandingAction]) -> str:
    if not actions:
        return "No outstanding actions remain."
    return "\n".join(
        f"{i}. {a.title}\n   {a.description}\n   {build_open_url(a.link_path)}"
        for i, a in enumerate(actions, start=1)
    )


def render_actions_html(actions: list[OutstandingAction]) -> str:
    if not actions:
        return f'<p style="margin:0;{_MUTED}">No outstanding actions remain.</p>'
    return "".join(
        f"{_CARD_OPEN}"
        f'<a href="{escape(build_open_url(a.link_path))}" style="color:#1d4ed8;font-weight:600;">{escape(a.title)}</a><br />'
        f'<span style="{_MUTED}">{escape(a.description)}</span>'
        f"{_CARD_CLOSE}"
        for a in actions
    )


def _chase_line(update: OwnProposalUpdate) -> str:
    return ", ".join(update.chase_names) if update.chase_names else "No follow-up owner identified yet."


def render_own_updates_text(updates: list[OwnProposalUpdate]) -> str:
    if not updates:
        return "No pending proposals submitted by you."
    return "\n".join(
        f"{i}. {u.title} ({u.status_label})\n   {u.summary}\n   Who to chase: {_chase_line(u)}\n   {build_open_url(u.link_path)}"
        for i, u in enumerate(updates, start=1)
    )


def render_own_updates_html(updates: list[OwnProposalUpdate]) -> str:
    if not updates:
        return f'<p style="margin:0;{_MUTED}">No pending proposals submitted by you.</p>'
    rows = []
    for u in updates:
        bg, fg = ("#dcfce7", "#166534") if u.status_label == "Approved" else ("#fef3c7", "#92400e")
        rows.append(
            f"{_CARD_OPEN}"
            f'<a href="{escape(build_open_url(u.link_path))}" style="color:#1d4ed8;font-weight:600;">{escape(u.title)}</a>'
            f'<span style="margin-left:8px;padding:2px 8px;border-radius:4px;font-size:12px;font-weight:600;'
            f'background-color:{bg};color:{fg};">{escape(u.status_label)}</span><br />'
            f'<span style="{_MUTED}">{escape(u.summary)}</span><br />'
            f'<span style="color:#374151;font-size:14px;">Who to chase: {escape(_chase_line(u))}</span>'
            f"{_CARD_CLOSE}"
        )
    return "".join(rows)


def build_action_required_content(
    recipient_name: str,
    action_title: str,
    action_description: str,
    action_link_path: str,
    outstanding_actions: list[OutstandingAction],
) -> NotificationContent:
    title = action_title.strip() or "New required action"
    description = action_description.strip() or "A new action is required in your workspace."
    url = build_open_url(action_link_path)
    subject = f"Action required: {title}"
    text_body = "\n".join(
        [
            f"Hi {recipient_name},",
            "",
            "A new required action is waiting for you:",
            title,
            description,
            url,
            "",
            "Existing outstanding required actions:",
            render_actions_text(outstanding_actions),
            "",
            settings.organization_name,
        ]
    )
    content_html = (
        f"{_P}Hi {escape(recipient_name)},</p>"
        f"{_P}A new required action is waiting for you:</p>"
        '<table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" style="margin:0 0 20px 0;">'
        '<tr><td style="padding:16px 20px;background-color:#eff6ff;border-left:4px solid #2563eb;border-radius:4px;">'
        f'<p style="margin:0 0 4px 0;font-weight:700;font-size:15px;color:#111827;">{escape(title)}</p>'
        f'<p style="margin:0;{_MUTED}">{escape(description)}</p>'
        "</td></tr></table>"
        f"{email_button('Open Required Action', url)}"
        f"{section_heading('Your outstanding actions')}"
        f"{render_actions_html(outstanding_actions)}"
    )
    return NotificationContent.email(subject, wrap_email_html(subject, content_html), text_body, "Open Required Action")


def weekly_reminder_link_path(
    outstanding_actions: list[OutstandingAction], own_updates: list[OwnProposalUpdate]
) -> str:
    if own_updates:
        return own_updates[0].link_path
    if outstanding_actions:
        return outstanding_actions[0].link_path
    return "/workspace"


def build_weekly_reminder_content(
    recipient_name: str,
    outstanding_actions: list[OutstandingAction],
    own_updates: list[OwnProposalUpdate],
) -> NotificationContent:
    subject = (
        f"Tuesday update: {_plural(len(own_updates), 'pending proposal')}, "
        f"{_plural(len(outstanding_actions), 'action')} for you"
    )
    url = build_open_url(weekly_reminder_link_path(outstanding_actions, own_updates))
    text_body = "\n".join(
        [
            f"Hi {recipient_name},",
            "",
            "Here is your Tuesday update.",
            url,
            "",
            "Your pending proposals and who to chase:",
            render_own_updates_text(own_updates),
            "",
            "Outstanding required actions:",
            render_actions_text(outstanding_actions),
            "",
            settings.organization_name,
        ]
    )
    content_html = (
        f"{_P}Hi {escape(recipient_name)},</p>"
        f"{_P}Here is your Tuesday update.</p>"
        f"{email_button('Open Actions', url)}"
        f"{section_heading('Your pending proposals and who to chase')}"
        f"{render_own_updates_html(own_updates)}"
        f"{section_heading('Outstanding required actions')}"
        f"{render_actions_html(outstanding_actions)}"
    )
    return NotificationContent.email(subject, wrap_email_html(subject, content_html), text_body, "Open Actions")


def build_sent_digest_content(
    day_key: str,
    sent: list[dict],
    outstanding: list[dict],
    time_zone: str,
) -> NotificationContent:
    """
    Daily digest shared by every recipient. *sent* items carry id/title/sent_on (local date),
    *outstanding* items (approved, not yet sent) carry id/title.
    """
    subject = f"Daily sent digest: {_plural(len(sent), 'proposal')} marked Sent"
    url = build_open_url("/dashboard")
    sent_text = "\n".join(
        f"{i}. {p['title']}\n   Sent date: {p.get('sent_on') or day_key}" for i, p in enumerate(sent, start=1)
    ) or "No proposals were marked Sent today."
    outstanding_text = "\n".join(
        f"{i}. {p['title']}\n   Approved, waiting to be sent" for i, p in enumerate(outstanding, start=1)
    ) or "No approved proposals are waiting to be sent."
    text_body = "\n".join(
        [
            "Hello,",
            "",
            f"The following proposals were marked Sent on {day_key} ({time_zone}):",
            sent_text,
            "",
            "Still approved and waiting to be sent:",
            outstanding_text,
            "",
            url,
            "",
            "This daily digest is sent to all users.",
            "",
            settings.organization_name,
        ]
    )
    sent_html = "".join(
        f'{_CARD_OPEN}<span style="font-weight:700;color:#111827;">{escape(p["title"])}</span><br />'
        f'<span style="{_MUTED}">Sent date: {escape(p.get("sent_on") or day_key)}</span>{_CARD_CLOSE}'
        for p in sent
    ) or f'<p style="margin:0;{_MUTED}">No proposals were marked Sent today.</p>'
    outstanding_html = "".join(
        f'{_CARD_OPEN}<span style="font-weight:700;color:#111827;">{escape(p["title"])}</span><br />'
        f'<span style="{_MUTED}">Approved, waiting to be sent</span>{_CARD_CLOSE}'
        for p in outstanding
    ) or f'<p style="margin:0;{_MUTED}">No approved proposals are waiting to be sent.</p>'
    content_html = (
        f"{_P}Hello,</p>"
        f"{_P}The following proposals were marked <strong>Sent</strong> on "
        f"<strong>{escape(day_key)}</strong> ({escape(time_zone)}):</p>"
        f"{sent_html}"
        f"{section_heading('Still approved and waiting to be sent')}"
        f"{outstanding_html}"
        f"{email_button('Open Dashboard', url)}"
        f'<p style="margin:16px 0 0 0;color:#6b7280;font-size:13px;">This daily digest is sent to all users.</p>'
    )
    return NotificationContent.email(subject, wrap_email_html(subject, content_html), text_body, "Open Dashboard")
