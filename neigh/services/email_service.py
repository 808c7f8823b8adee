# neigh/services/email_service.py
import logging
import mimetypes

from flask import current_app, render_template
from flask_mail import Message
from jinja2 import TemplateNotFound

from ..extensions import mail

log = logging.getLogger(__name__)


def send_email(*, to, subject, template, attachments=None, **ctx) -> bool:
    """Render ``email/<template>`` (plus a ``.txt`` twin when present) and send it.

    Returns False instead of raising; callers treat mail as fire-and-forget.
    ``attachments`` is a list of ``(filename, bytes, mimetype)``.
    """
    try:
        if not to:
            log.warning("send_email: missing recipient")
            return False
        recipients = [to] if isinstance(to, str) else list(to)
        ctx.setdefault("app_name", current_app.config.get("APP_NAME", "Neigh"))
        html = render_template(f"email/{template}", **ctx)
        txt = None
        try:
            base = template.rsplit(".", 1)[0]
            txt = render_template(f"email/{base}.txt", **ctx)
        except TemplateNotFound:
            pass

        sender = current_app.config.get("MAIL_DEFAULT_SENDER") or current_app.config.get("MAIL_USERNAME")
        if not sender:
            log.error("send_email: no sender configured")
            return False

        msg = Message(subject=subject, recipients=recipients, sender=sender)
        if txt:
            msg.body = txt
        msg.html = html

        if attachments:
            for filename, data, mimetype in attachments:
                mt = mimetype or (mimetypes.guess_type(filename)[0] or "application/octet-stream")
                msg.attach(filename, mt, data)

        if current_app.config.get("MAIL_SUPPRESS_SEND"):
            log.info("[MAIL_SUPPRESS_SEND=1] would send: %s | %s", recipients, subject)
            return True

        mail.send(msg)
        log.info("Email sent to %s | subject=%s", recipients, subject)
        return True
    except Exception as e:
        log.exception("send_email failed: %s", e)
        return False
