import io
import os
import logging

from datetime import datetime
from functools import lru_cache, partial
from typing import Any, Dict, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, Image
from reportlab.platypus.flowables import HRFlowable

from config import AUTHORITY_VOICES, CONFIG
from utils import format_date, format_number

logger = logging.getLogger(__name__)

PRIMARY_COLOR = colors.HexColor('#3B4A6B')


class ReportFooterCanvas(canvas.Canvas):
    """Canvas that defers page output until the page count is known, then
    stamps every page with the church name and "Page X of Y"."""

    def __init__(self, *args, footer_text: str = "", **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self.footer_text = footer_text
        self._pending_pages = []

    def showPage(self):
        self._pending_pages.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._pending_pages)
        for page_state in self._pending_pages:
            self.__dict__.update(page_state)
            self.draw_footer(total)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)

    def draw_footer(self, total_pages: int) -> None:
        width = A4[0]
        self.saveState()
        self.setStrokeColor(colors.HexColor('#BDBDBD'))
        self.setLineWidth(0.5)
        self.line(0.75*inch, 0.7*inch, width - 0.75*inch, 0.7*inch)
        self.setFont("Helvetica", 8)
        self.setFillColor(colors.gray)
        self.drawString(0.75*inch, 0.5*inch, self.footer_text)
        self.drawRightString(width - 0.75*inch, 0.5*inch, f"Page {self._pageNumber} of {total_pages}")
        self.restoreState()


@lru_cache(maxsize=1)
def get_pdf_styles() -> Dict[str, ParagraphStyle]:
    """Cache PDF styles to improve performance"""
    styles = getSampleStyleSheet()
    return {
        'title': ParagraphStyle(
            'ReportTitle',
            parent=styles['Title'],
            fontSize=20,
            textColor=PRIMARY_COLOR,
            spaceAfter=8,
            alignment=TA_CENTER,
            fontName='Helvetica-Bold'
        ),
        'subtitle': ParagraphStyle(
            'ReportSubtitle',
            parent=styles['Normal'],
            fontSize=12,
            textColor=PRIMARY_COLOR,
            spaceAfter=12,
            alignment=TA_CENTER
        ),
        'heading': ParagraphStyle(
            'ReportHeading',
            parent=styles['Heading2'],
            fontSize=14,
            textColor=PRIMARY_COLOR,
            spaceAfter=8,
            spaceBefore=12,
            fontName='Helvetica-Bold'
        ),
        'normal': ParagraphStyle(
            'ReportNormal',
            parent=styles['Normal'],
            fontSize=11,
            leading=15,
            spaceAfter=6,
            textColor=colors.HexColor('#212121')
        ),
        'voice': ParagraphStyle(
            'ReportVoice',
            parent=styles['Normal'],
            fontSize=9,
            textColor=colors.HexColor('#616161'),
            alignment=TA_CENTER,
            fontName='Helvetica-Oblique'
        ),
        'cell': ParagraphStyle(
            'ReportCell',
            parent=styles['Normal'],
            fontSize=10,
            leading=12,
        ),
        'metadata': ParagraphStyle(
            'ReportMetadata',
            parent=styles['Normal'],
            fontSize=8,
            textColor=colors.gray,
            alignment=TA_CENTER
        ),
    }


def _bullets(items: List[str], style: ParagraphStyle) -> List[Paragraph]:
    return [Paragraph(f"• {escape(item)}", style) for item in items]


def _stats_table(rows: List[Dict[str, Any]], field: str, label: str) -> Table:
    """Outreaches/saved/healed per row of a breakdown, with a header"""
    data = [[label, 'Outreaches', 'Saved', 'Healed']]
    for row in rows:
        data.append([
            Paragraph(escape(row[field]), get_pdf_styles()['cell']),
            str(row['outreaches']),
            format_number(row['saved']),
            format_number(row['healed']),
        ])
    table = Table(data, colWidths=[3*inch, 1.1*inch, 1*inch, 1*inch], repeatRows=1)
    table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('BACKGROUND', (0, 0), (-1, 0), PRIMARY_COLOR),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#EEF1F6')]),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDBDBD')),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
    ]))
    table.hAlign = 'LEFT'
    return table


def render_report_pdf(summary: Dict[str, Any], narrative: Dict[str, Any], voice: str = "first_person") -> io.BytesIO:
    """Render an aggregated summary and its narrative as a paginated PDF.

    Sections: title, group, period, narrative, fruit, per-assembly and
    per-activity tables when present, labourers, fields entered, message
    emphasis, conclusion.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=1*inch,
        bottomMargin=1*inch,
        title=f"Evangelism Report - {summary.get('period', '')}",
    )
    styles = get_pdf_styles()
    story = []

    if CONFIG.get("PDF_LOGO_PATH") and os.path.exists(CONFIG["PDF_LOGO_PATH"]):
        try:
            logo = Image(CONFIG["PDF_LOGO_PATH"], width=CONFIG["PDF_LOGO_WIDTH"]*inch, height=CONFIG["PDF_LOGO_WIDTH"]*inch)
            logo.hAlign = 'CENTER'
            story.append(logo)
            story.append(Spacer(1, 12))
        except OSError as e:
            logger.error({"event": "pdf_logo_error", "error": str(e)})

    story.append(Paragraph(escape(CONFIG["CHURCH_NAME"]), styles['subtitle']))
    story.append(Paragraph("Evangelism Report", styles['title']))
    story.append(Paragraph(escape(summary.get("group_name") or "All Assemblies"), styles['subtitle']))

    metadata_rows = [
        ['Period:', summary.get('period', '')],
        ['From:', format_date(summary.get('start_date'))],
        ['To:', format_date(summary.get('end_date'))],
        ['Outreaches:', str(summary['total_outreaches'])],
    ]
    metadata_table = Table(metadata_rows, colWidths=[1.5*inch, 4*inch])
    metadata_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (0, -1), colors.HexColor('#616161')),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    story.append(metadata_table)
    story.append(Spacer(1, 6))
    story.append(Paragraph(escape(AUTHORITY_VOICES.get(voice, AUTHORITY_VOICES["first_person"])["name"]), styles['voice']))
    story.append(Spacer(1, 6))
    story.append(HRFlowable(width="100%", thickness=2, color=PRIMARY_COLOR))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Report", styles['heading']))
    for paragraph in narrative.get("narrative", "").split("\n\n"):
        if paragraph.strip():
            story.append(Paragraph(escape(paragraph.strip()), styles['normal']))

    story.append(Paragraph("Fruit", styles['heading']))
    fruit_table = Table(
        [
            ['Saved', format_number(summary['total_saved'])],
            ['Healed', format_number(summary['total_healed'])],
        ],
        colWidths=[2*inch, 1.5*inch],
    )
    fruit_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 11),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDBDBD')),
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#EEF1F6')),
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    fruit_table.hAlign = 'LEFT'
    story.append(fruit_table)

    if summary.get('assemblies'):
        story.append(Paragraph("Assemblies", styles['heading']))
        story.append(_stats_table(summary['assemblies'], 'assembly_name', 'Assembly'))

    if summary.get('activity_breakdown'):
        story.append(Paragraph("Activity Breakdown", styles['heading']))
        story.append(_stats_table(summary['activity_breakdown'], 'activity_type', 'Activity'))

    story.append(Paragraph("Labourers", styles['heading']))
    story.extend(_bullets(summary['labourers'], styles['normal']) or [Paragraph("None recorded", styles['normal'])])

    story.append(Paragraph("Fields Entered", styles['heading']))
    story.extend(_bullets(summary['locations'], styles['normal']) or [Paragraph("None recorded", styles['normal'])])

    if narrative.get("themes"):
        story.append(Paragraph("Message Emphasis", styles['heading']))
        story.extend(_bullets(narrative["themes"], styles['normal']))

    if narrative.get("conclusion"):
        story.append(Paragraph("Conclusion", styles['heading']))
        story.append(Paragraph(escape(narrative["conclusion"]), styles['normal']))

    story.append(Spacer(1, 18))
    story.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#BDBDBD')))
    story.append(Paragraph(f"Generated {datetime.now().strftime('%d-%m-%Y %H:%M')}", styles['metadata']))

    doc.build(story, canvasmaker=partial(ReportFooterCanvas, footer_text=f"{CONFIG['CHURCH_NAME']} | {summary.get('period', '')}"))
    buffer.seek(0)
    logger.info({
        "event": "pdf_generated",
        "size_bytes": buffer.getbuffer().nbytes,
        "group": summary.get("group_name"),
        "period": summary.get("period"),
    })
    return buffer
