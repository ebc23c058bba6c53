import html
import smtplib
from datetime import timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from zoneinfo import ZoneInfo

from wog_notifier.config import DEFAULT_LOCALE_FORMAT, DEFAULT_TIMEZONE, NotificationsConfig
from wog_notifier.errors import ConfigurationError
from wog_notifier.pipeline.filter import parse_published

NO_LINK = "(brak linku)"
HEADER = "Nowe ogłoszenia:"
FOOTER = "Automat – wog-notifier"


def _esc(value) -> str:
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def _zone(tz_name: str):
    try:
        return ZoneInfo(tz_name)
    except Exception:
        return timezone.utc


def format_timestamp(
    raw,
    tz_name: str = DEFAULT_TIMEZONE,
    locale_format: str = DEFAULT_LOCALE_FORMAT,
) -> str:
    dt = parse_published(raw)
    if dt is None:
        return str(raw or "")
    return dt.astimezone(_zone(tz_name)).strftime(locale_format)


def _render_item(record, tz_name: str, locale_format: str) -> str:
    title = _esc(record.title)
    if record.link:
        heading = '<a href="{url}">{title}</a>'.format(url=_esc(record.link), title=title)
    else:
        heading = "{title} <em>{no_link}</em>".format(title=title, no_link=_esc(NO_LINK))
    ts = format_timestamp(record.published_at, tz_name, locale_format)
    return "<li>{heading}<br/><small>{ts} – {source}</small></li>".format(
        heading=heading,
        ts=_esc(ts),
        source=_esc(record.source_id),
    )


def render_notification_html(
    records,
    tz_name: str = DEFAULT_TIMEZONE,
    locale_format: str = DEFAULT_LOCALE_FORMAT,
) -> str:
    items = "".join(_render_item(r, tz_name, locale_format) for r in records)
    return (
        f"<p>{_esc(HEADER)}</p>"
        f"<ul>{items}</ul>"
        f'<p style="font-size:12px;color:#666">{_esc(FOOTER)}</p>'
    )


def build_subject(count: int, prefix: str = "[WOG]") -> str:
    return f"{prefix} {count} nowych ogłoszeń".strip()


def send_notification_email(
    subject: str,
    html_body: str,
    notifications: NotificationsConfig | None = None,
):
    if notifications is None:
        raise ConfigurationError("notifications config is required to send email")
    notifications.require_complete()

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = notifications.mail_from
    msg["To"] = ", ".join(notifications.mail_to)
    msg.attach(MIMEText(html_body, "html", "utf-8"))

    if notifications.smtp_port == 465:
        with smtplib.SMTP_SSL(notifications.smtp_host, notifications.smtp_port) as server:
            server.login(notifications.smtp_user, notifications.smtp_pass)
            server.sendmail(notifications.mail_from, notifications.mail_to, msg.as_string())
        return

    with smtplib.SMTP(notifications.smtp_host, notifications.smtp_port) as server:
        server.starttls()
        server.login(notifications.smtp_user, notifications.smtp_pass)
        server.sendmail(notifications.mail_from, notifications.mail_to, msg.as_string())
