import io
import re
import unicodedata
from datetime import date, datetime
from html import escape
from typing import Dict, Any, Optional
from urllib.parse import quote

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, HRFlowable

from allevapp.services.companies import get_template

DOC_MIME_TYPE = "application/msword"

STATUS_LABELS = {
    "pending": "In Attesa di Conferma",
    "confirmed": "Confermato",
    "delivered": "Consegnato",
    "cancelled": "Annullato",
}


def format_eur(amount: Optional[float]) -> str:
    """Italian currency format: 1234.5 -> 1.234,50"""
    value = f"{(amount or 0):,.2f}"
    return value.replace(",", "X").replace(".", ",").replace("X", ".")


def format_date_it(value) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return value.strftime("%d/%m/%Y")


def document_filename(order_number: str, title: str, extension: str = "doc") -> str:
    """``Conferma_Ordine_{order_number}_{title with whitespace runs as _}.{ext}``"""
    safe_title = re.sub(r"\s+", "_", title or "")
    return f"Conferma_Ordine_{order_number}_{safe_title}.{extension}"


def content_disposition(filename: str) -> str:
    """
    Attachment header safe for any title: an ASCII ``filename`` for old
    clients plus the UTF-8 ``filename*`` form (RFC 5987).
    """
    ascii_name = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    ascii_name = re.sub(r'["\\]', "_", ascii_name)
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename, safe='')}"


class OrderDocumentService:
    """Printable order confirmation with the letterhead of the ordering company"""

    def __init__(self, order: Dict[str, Any]):
        # order: order_number, company, order_date, delivery_date, total_amount, notes, status,
        #        quote_id, quote_title, quote_description, supplier_name, supplier_email, farm_name
        self.order = order
        self.template = get_template(order.get("company"))

    @property
    def filename(self) -> str:
        return document_filename(self.order["order_number"], self.order.get("quote_title") or "")

    def render_html(self, generated_on: Optional[date] = None) -> str:
        o = self.order
        t = self.template
        color = t["color"]
        generated_on = generated_on or datetime.now().date()

        delivery_row = ""
        if o.get("delivery_date"):
            delivery_row = (
                f'<tr><td class="label-col">Consegna Richiesta:</td>'
                f'<td class="value-col">{format_date_it(o["delivery_date"])}</td></tr>'
            )
        notes_block = ""
        if o.get("notes"):
            notes_block = (
                f'<div class="notes-section"><div class="notes-title">Note Aggiuntive</div>'
                f'<div>{escape(o["notes"])}</div></div>'
            )
        quote_ref = f"N° {o['quote_id']}" if o.get("quote_id") else "-"

        return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>Conferma Ordine {escape(o['order_number'])}</title>
    <style>
      @page {{ size: 21cm 29.7cm; margin: 2cm 2.5cm; }}
      body {{ font-family: 'Times New Roman', Times, serif; line-height: 1.4; color: #333; font-size: 11pt; }}
      .header {{ border-bottom: 3px solid {color}; padding-bottom: 20px; margin-bottom: 30px; }}
      .company-name {{ font-size: 20pt; font-weight: bold; color: {color}; }}
      .company-info {{ font-size: 9pt; color: #555; }}
      .document-title {{ font-size: 18pt; color: {color}; text-align: center; margin: 0; }}
      .order-number-box {{ text-align: center; font-weight: bold; border: 2px solid {color}; padding: 6px; margin: 10px auto; width: 50%; }}
      .order-date, .status-badge {{ text-align: center; }}
      .section-title {{ font-weight: bold; color: {color}; border-bottom: 1px solid {color}; margin-bottom: 8px; }}
      .info-table {{ width: 100%; border-collapse: collapse; }}
      .label-col {{ width: 40%; color: #666; }}
      .two-column {{ display: table; width: 100%; }}
      .column {{ display: table-cell; width: 50%; padding-right: 10px; vertical-align: top; }}
      .order-details-box {{ border: 1px solid #ddd; margin: 20px 0; }}
      .order-details-header {{ background: {color}; color: #fff; padding: 6px 10px; font-weight: bold; }}
      .order-details-content {{ padding: 10px; }}
      .payment-terms {{ background: #f8f9fa; border-left: 4px solid {color}; padding: 10px; margin: 20px 0; }}
      .payment-terms-title {{ font-weight: bold; }}
      .amount-section {{ text-align: right; margin: 20px 0; }}
      .amount-label {{ font-size: 10pt; color: #666; }}
      .amount-value {{ font-size: 18pt; font-weight: bold; color: {color}; }}
      .amount-note {{ font-size: 8pt; color: #888; }}
      .signature-section {{ display: table; width: 100%; margin-top: 40px; }}
      .signature-box {{ display: table-cell; width: 50%; text-align: center; }}
      .signature-line {{ border-top: 1px solid #333; margin: 40px 20px 5px 20px; }}
      .footer {{ border-top: 1px solid #ddd; margin-top: 40px; padding-top: 10px; font-size: 8pt; color: #777; text-align: center; }}
    </style>
  </head>
  <body>
    <header class="header">
      <div class="company-name">{escape(t['letterhead'])}</div>
      <div class="company-info">
        {escape(t['address'])}<br>
        Tel: {escape(t['phone'])}<br>
        Email: {escape(t['email'])}<br>
        P.IVA: {escape(t['vat'])}
      </div>
    </header>

    <div class="document-title-section">
      <h1 class="document-title">Conferma d'Ordine</h1>
      <div class="order-number-box">N. {escape(o['order_number'])}</div>
      <div class="order-date">Data: {format_date_it(o.get('order_date'))}</div>
      <div class="status-badge">{STATUS_LABELS.get(o.get('status'), 'In Attesa di Conferma')}</div>
    </div>

    <div class="two-column">
      <div class="column">
        <div class="section-title">Dati Fornitore</div>
        <table class="info-table">
          <tr><td class="label-col">Ragione Sociale:</td><td class="value-col">{escape(o.get('supplier_name') or '')}</td></tr>
          <tr><td class="label-col">Email:</td><td class="value-col">{escape(o.get('supplier_email') or '')}</td></tr>
          <tr><td class="label-col">Rif. Preventivo:</td><td class="value-col">{quote_ref}</td></tr>
        </table>
      </div>
      <div class="column">
        <div class="section-title">Dati Ordine</div>
        <table class="info-table">
          <tr><td class="label-col">Data Ordine:</td><td class="value-col">{format_date_it(o.get('order_date'))}</td></tr>
          {delivery_row}
          <tr><td class="label-col">Allevamento:</td><td class="value-col">{escape(o.get('farm_name') or '')}</td></tr>
        </table>
      </div>
    </div>

    <div class="order-details-box">
      <div class="order-details-header">Dettaglio Ordine</div>
      <div class="order-details-content">
        <table class="info-table">
          <tr><td class="label-col">Oggetto:</td><td class="value-col"><strong>{escape(o.get('quote_title') or '')}</strong></td></tr>
        </table>
        <div class="order-description">{escape(o.get('quote_description') or '')}</div>
      </div>
    </div>

    <div class="payment-terms">
      <div class="payment-terms-title">Condizioni di Pagamento</div>
      {escape(t['payment_terms'])}
    </div>

    <div class="amount-section">
      <div class="amount-label">IMPORTO TOTALE ORDINE</div>
      <div class="amount-value">€ {format_eur(o.get('total_amount'))}</div>
      <div class="amount-note">I prezzi si intendono IVA esclusa</div>
    </div>

    {notes_block}

    <div class="signature-section">
      <div class="signature-box">
        <div class="signature-line"></div>
        <div class="signature-label">Firma e Timbro</div>
        <div class="signature-label">{escape(t['letterhead'])}</div>
        <div class="signature-date">Data: _________________</div>
      </div>
      <div class="signature-box">
        <div class="signature-line"></div>
        <div class="signature-label">Firma e Timbro</div>
        <div class="signature-label">FORNITORE</div>
        <div class="signature-date">Data: _________________</div>
      </div>
    </div>

    <div class="footer">
      <div class="footer-info">
        <strong>{escape(t['letterhead'])}</strong> - {escape(t['address'])}<br>
        Tel: {escape(t['phone'])} - Email: {escape(t['email'])} - P.IVA: {escape(t['vat'])}
      </div>
      <div class="footer-info">{escape(t['footer'])}</div>
      <div class="footer-info">Documento generato automaticamente il {format_date_it(generated_on)} - Sistema AllevApp</div>
    </div>
  </body>
</html>
"""

    def generate_pdf(self) -> bytes:
        """Same content as the HTML document, rendered as an A4 PDF"""
        o = self.order
        t = self.template
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=2.5 * cm,
            leftMargin=2.5 * cm,
            topMargin=2 * cm,
            bottomMargin=2 * cm,
            title=f"Conferma Ordine {o['order_number']}"
        )

        primary = colors.HexColor(t['color'])
        gray = colors.HexColor('#64748b')
        border = colors.HexColor('#e2e8f0')

        company_style = ParagraphStyle('Company', fontSize=16, fontName='Helvetica-Bold', textColor=primary, leading=20)
        info_style = ParagraphStyle('Info', fontSize=8, textColor=gray, leading=10)
        title_style = ParagraphStyle('DocTitle', fontSize=16, fontName='Helvetica-Bold', textColor=primary, alignment=TA_CENTER, spaceAfter=6)
        center_style = ParagraphStyle('Center', fontSize=10, alignment=TA_CENTER)
        section_style = ParagraphStyle('Section', fontSize=10, fontName='Helvetica-Bold', textColor=primary, spaceBefore=10, spaceAfter=4)
        label_style = ParagraphStyle('Label', fontSize=9, textColor=gray)
        value_style = ParagraphStyle('Value', fontSize=9)
        amount_style = ParagraphStyle('Amount', fontSize=16, fontName='Helvetica-Bold', textColor=primary, alignment=TA_RIGHT)
        small_style = ParagraphStyle('Small', fontSize=7, textColor=gray, alignment=TA_CENTER)

        elements = [
            Paragraph(escape(t['letterhead']), company_style),
            Paragraph(
                f"{escape(t['address'])}<br/>Tel: {escape(t['phone'])}<br/>"
                f"Email: {escape(t['email'])}<br/>P.IVA: {escape(t['vat'])}",
                info_style
            ),
            Spacer(1, 6),
            HRFlowable(width="100%", thickness=2, color=primary),
            Spacer(1, 14),
            Paragraph("Conferma d'Ordine", title_style),
            Paragraph(f"<b>N. {escape(o['order_number'])}</b>", center_style),
            Paragraph(f"Data: {format_date_it(o.get('order_date'))}", center_style),
            Spacer(1, 10),
        ]

        rows = [
            ("Ragione Sociale", o.get('supplier_name') or ''),
            ("Email Fornitore", o.get('supplier_email') or ''),
            ("Rif. Preventivo", f"N° {o['quote_id']}" if o.get('quote_id') else '-'),
            ("Allevamento", o.get('farm_name') or ''),
        ]
        if o.get('delivery_date'):
            rows.append(("Consegna Richiesta", format_date_it(o['delivery_date'])))
        rows.append(("Oggetto", o.get('quote_title') or ''))

        info_table = Table(
            [[Paragraph(label, label_style), Paragraph(escape(str(value)), value_style)] for label, value in rows],
            colWidths=[4.5 * cm, 11.5 * cm]
        )
        info_table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LINEBELOW', (0, 0), (-1, -1), 0.5, border),
            ('TOPPADDING', (0, 0), (-1, -1), 3),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ]))
        elements.append(info_table)

        if o.get('quote_description'):
            elements.append(Paragraph("Dettaglio Ordine", section_style))
            elements.append(Paragraph(escape(o['quote_description']), value_style))

        elements.append(Paragraph("Condizioni di Pagamento", section_style))
        elements.append(Paragraph(escape(t['payment_terms']), value_style))
        elements.append(Spacer(1, 12))
        elements.append(Paragraph("IMPORTO TOTALE ORDINE", ParagraphStyle('AmountLabel', fontSize=9, textColor=gray, alignment=TA_RIGHT)))
        elements.append(Paragraph(f"€ {format_eur(o.get('total_amount'))}", amount_style))
        elements.append(Paragraph("I prezzi si intendono IVA esclusa", ParagraphStyle('AmountNote', fontSize=7, textColor=gray, alignment=TA_RIGHT)))

        if o.get('notes'):
            elements.append(Paragraph("Note Aggiuntive", section_style))
            elements.append(Paragraph(escape(o['notes']), value_style))

        elements.append(Spacer(1, 30))
        signature_table = Table(
            [
                ["_________________________", "_________________________"],
                ["Firma e Timbro", "Firma e Timbro"],
                [t['letterhead'], "FORNITORE"],
            ],
            colWidths=[8 * cm, 8 * cm]
        )
        signature_table.setStyle(TableStyle([
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
        ]))
        elements.append(signature_table)

        elements.append(Spacer(1, 20))
        elements.append(HRFlowable(width="100%", thickness=0.5, color=border))
        elements.append(Paragraph(escape(t['footer']), small_style))
        elements.append(Paragraph(
            f"Documento generato automaticamente il {format_date_it(datetime.now().date())} - Sistema AllevApp",
            small_style
        ))

        doc.build(elements)
        return buffer.getvalue()
