import logging
import smtplib
from datetime import date, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Dict, Any, List, Optional

from allevapp.config import settings
from allevapp.errors import AppError
from allevapp.services.microsoft_graph import GraphClient

logger = logging.getLogger(__name__)

BRAND_RED = "#E31E24"
BRAND_BLUE = "#1E3A8A"


def _format_date(value) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return value.strftime("%d/%m/%Y")


def _wrap(title: str, content: str) -> str:
    return f"""
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
      <div style="background: linear-gradient(135deg, {BRAND_RED}, #FF6B70); color: white; padding: 20px; border-radius: 10px 10px 0 0;">
        <h1 style="margin: 0; font-size: 24px;">{escape(title)}</h1>
      </div>
      <div style="background: #f8f9fa; padding: 20px; border: 1px solid #e9ecef;">
        {content}
      </div>
      <div style="background: {BRAND_BLUE}; color: white; padding: 12px 20px; border-radius: 0 0 10px 10px; font-size: 12px;">
        AllevApp - Sistema di Gestione Allevamenti
      </div>
    </div>
  </body>
</html>
"""


class EmailService:
    """
    Outgoing mail. Uses Microsoft 365 (Graph sendMail) when configured and
    falls back to SMTP with STARTTLS otherwise.
    """

    def __init__(self, graph_client: Optional[GraphClient] = None):
        self.smtp_server = settings.smtp_server
        self.smtp_port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.support_email = settings.company_support_email
        self.graph = graph_client or GraphClient()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_quote_request(
        self,
        to: str,
        supplier_name: str,
        quote_title: str,
        quote_description: str,
        farm_name: str,
        due_date=None,
        contact_info: Optional[Dict[str, str]] = None,
        subject: Optional[str] = None
    ) -> bool:
        """Ask a supplier for a quote"""
        contact_info = contact_info or {}
        subject = subject or f"Richiesta Preventivo - {quote_title}"

        due_html = ""
        if due_date:
            due_html = f"<p><strong>Scadenza richiesta:</strong> {_format_date(due_date)}</p>"
        phone_html = ""
        if contact_info.get("phone"):
            phone_html = f"<p><strong>Telefono:</strong> {escape(contact_info['phone'])}</p>"

        content = f"""
        <h2 style="color: {BRAND_BLUE}; margin-top: 0;">Gentile {escape(supplier_name)},</h2>
        <p>Vi contattiamo per richiedere un preventivo per i seguenti servizi/prodotti:</p>
        <div style="background: white; padding: 15px; border-radius: 8px; border-left: 4px solid {BRAND_RED}; margin: 20px 0;">
          <h3 style="color: {BRAND_RED}; margin-top: 0;">{escape(quote_title)}</h3>
          <p><strong>Descrizione:</strong></p>
          <p>{escape(quote_description or '')}</p>
          <p><strong>Allevamento:</strong> {escape(farm_name or '')}</p>
          {due_html}
        </div>
        <div style="background: #e3f2fd; padding: 15px; border-radius: 8px;">
          <h4 style="margin-top: 0;">Informazioni di Contatto</h4>
          <p><strong>Azienda:</strong> {escape(contact_info.get('company_name', 'AllevApp'))}</p>
          <p><strong>Email:</strong> {escape(contact_info.get('email', self.support_email))}</p>
          {phone_html}
        </div>
        <p>Cordiali saluti</p>
        """
        text = (
            f"Gentile {supplier_name},\n\n"
            f"richiediamo un preventivo per: {quote_title}\n\n{quote_description or ''}\n\n"
            f"Allevamento: {farm_name or ''}\n"
        )
        if due_date:
            text += f"Scadenza richiesta: {_format_date(due_date)}\n"
        return self.send(to, subject, _wrap("AllevApp - Richiesta Preventivo", content), text)

    def send_password_email(self, to: str, user_name: str, username: str, password: str, role: str) -> bool:
        """Send login credentials to a newly created user"""
        content = f"""
        <h2 style="color: {BRAND_BLUE}; margin-top: 0;">Ciao {escape(user_name)}!</h2>
        <p>È stato creato un account per te su AllevApp con ruolo <strong>{escape(role)}</strong>.</p>
        <div style="background: white; padding: 15px; border-radius: 8px; border-left: 4px solid {BRAND_RED};">
          <h3 style="color: {BRAND_RED}; margin-top: 0;">Le tue Credenziali</h3>
          <p><strong>Username:</strong> {escape(username)}</p>
          <p><strong>Password:</strong> {escape(password)}</p>
        </div>
        <p>Ti consigliamo di cambiare la password al primo accesso.</p>
        """
        text = (
            f"Ciao {user_name},\n\nUsername: {username}\nPassword: {password}\nRuolo: {role}\n\n"
            "Ti consigliamo di cambiare la password al primo accesso.\n"
        )
        return self.send(to, "AllevApp - Le tue credenziali di accesso", _wrap("AllevApp", content), text)

    def send_daily_summary(self, to: str, recipient_name: str, summary: Dict[str, List[Dict[str, Any]]]) -> bool:
        today = datetime.now().strftime("%d/%m/%Y")
        sections = []

        if summary["urgent_reports"]:
            rows = "".join(
                f"<li><strong>{escape(r['title'])}</strong> ({escape(r['urgency'])}) - "
                f"{escape(r.get('farm_name') or 'N/A')}"
                f"{' - ' + escape(r['equipment_name']) if r.get('equipment_name') else ''}</li>"
                for r in summary["urgent_reports"]
            )
            sections.append(f"<h2 style='color: {BRAND_RED};'>Segnalazioni Urgenti</h2><ul>{rows}</ul>")

        for key, title, color in (
            ("overdue_maintenance", "Manutenzioni Scadute", "#dc2626"),
            ("due_soon_maintenance", "Manutenzioni in Scadenza", "#f59e0b"),
        ):
            if summary[key]:
                rows = "".join(
                    f"<li><strong>{escape(m['name'])}</strong> ({'Attrezzatura' if m['type'] == 'equipment' else 'Impianto'}) - "
                    f"{escape(m.get('farm_name') or 'N/A')} - {_format_date(m['next_maintenance_due'])}</li>"
                    for m in summary[key]
                )
                sections.append(f"<h2 style='color: {color};'>{title}</h2><ul>{rows}</ul>")

        content = f"<p>Buongiorno {escape(recipient_name)},</p>" + "".join(sections)
        text = (
            f"Report giornaliero {today}\n"
            f"Segnalazioni urgenti: {len(summary['urgent_reports'])}\n"
            f"Manutenzioni scadute: {len(summary['overdue_maintenance'])}\n"
            f"Manutenzioni in scadenza: {len(summary['due_soon_maintenance'])}\n"
        )
        return self.send(to, f"AllevApp - Report Giornaliero {today}", _wrap("Report Giornaliero", content), text)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def send(self, to: str, subject: str, html_content: str, text_content: str = "") -> bool:
        """Send one message; returns False (and logs) when delivery failed"""
        if self.graph.configured:
            try:
                self.graph.send_mail([to], subject, html_content)
                return True
            except AppError as e:
                logger.error(f"Graph mail to {to} failed: {e}")
                return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.support_email
        msg['To'] = to
        msg.attach(MIMEText(text_content or subject, 'plain'))
        msg.attach(MIMEText(html_content, 'html'))
        return self._send_email(msg, to)

    def _send_email(self, msg: MIMEMultipart, recipient_email: str) -> bool:
        if not self.username or not self.password:
            logger.warning("Email configuration incomplete: missing SMTP username or password")
            return False

        try:
            server = smtplib.SMTP(self.smtp_server, self.smtp_port)
            server.starttls()
            server.login(self.username, self.password)
            server.sendmail(self.support_email, recipient_email, msg.as_string())
            server.quit()
            logger.info(f"Email sent successfully to {recipient_email}")
            return True
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error sending to {recipient_email}: {e}")
            return False
