"""
Reporting service for the Campus Portal
PDF transcripts and payment receipts
"""

from io import BytesIO
from xml.sax.saxutils import escape as xml_escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

PDF_MIMETYPE = 'application/pdf'

MARGIN = 18 * mm
PAGE_WIDTH = A4[0] - 2 * MARGIN

class ReportingService:
    """Printable documents built with ReportLab"""

    @staticmethod
    def _format_number(value):
        """Whole numbers without decimals, fractional numbers with 2 decimal places"""
        if value is None:
            return ''
        num = float(value)
        if num == int(num):
            return str(int(num))
        return f'{num:.2f}'

    @staticmethod
    def _cell_style():
        styles = getSampleStyleSheet()
        return ParagraphStyle('Cell', parent=styles['Normal'], fontSize=9, leading=11, spaceAfter=0, spaceBefore=0)

    @staticmethod
    def _to_paragraph(value):
        """Wrap a value in a Paragraph so long text wraps inside its cell"""
        text = '' if value is None else xml_escape(str(value)).replace('\n', '<br/>')
        return Paragraph(text, ReportingService._cell_style())

    @staticmethod
    def _header(elements, university, title):
        styles = getSampleStyleSheet()
        header_title = ParagraphStyle('HeaderTitle', parent=styles['Title'], alignment=0, fontSize=16, leading=19)
        title_center = ParagraphStyle('TitleCenter', parent=styles['Title'], alignment=1, fontSize=14)

        header = Table([[Paragraph(xml_escape(university or ''), header_title)]], colWidths=[PAGE_WIDTH])
        header.setStyle(TableStyle([
            ('LINEBELOW', (0, 0), (-1, 0), 0.75, colors.lightgrey),
            ('LEFTPADDING', (0, 0), (-1, -1), 0),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ]))
        elements.append(header)
        elements.append(Spacer(1, 6))
        elements.append(Paragraph(title, title_center))
        elements.append(Spacer(1, 8))

    @staticmethod
    def _details_table(rows):
        table = Table([[label, ReportingService._to_paragraph(value)] for label, value in rows],
                      colWidths=[45 * mm, PAGE_WIDTH - 45 * mm])
        table.setStyle(TableStyle([
            ('BOX', (0, 0), (-1, -1), 0.5, colors.grey),
            ('INNERGRID', (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ]))
        return table

    @staticmethod
    def _data_table(headers, rows, col_fracs):
        data = [headers] + [[ReportingService._to_paragraph(cell) for cell in row] for row in rows]
        if not rows:
            data.append(['No records'] + [''] * (len(headers) - 1))
        table = Table(data, colWidths=[PAGE_WIDTH * frac for frac in col_fracs], repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#366092')),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('BOX', (0, 0), (-1, -1), 0.5, colors.grey),
            ('INNERGRID', (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ]))
        return table

    @staticmethod
    def _build(elements):
        buffer = BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=MARGIN, rightMargin=MARGIN,
                                topMargin=MARGIN, bottomMargin=MARGIN)
        doc.build(elements)
        return buffer.getvalue()

    @staticmethod
    def generate_transcript_pdf(student, transcript, university):
        """Transcript with one row per academic record and the GPA summary"""
        elements = []
        ReportingService._header(elements, university, 'Academic Transcript')

        profile = student.student_profile
        elements.append(ReportingService._details_table([
            ('Name', student.name),
            ('Student Number', profile.student_number if profile else ''),
            ('Programme', profile.programme if profile else ''),
            ('Email', student.email),
        ]))
        elements.append(Spacer(1, 12))

        rows = [
            [
                record['course_code'], record['course_title'],
                f"{record['semester']} {record['academic_year']}", record['credits'],
                ReportingService._format_number(record['score']), record['letter_grade'] or '',
                record['status'],
            ]
            for record in transcript['records']
        ]
        elements.append(ReportingService._data_table(
            ['Code', 'Course', 'Term', 'Credits', 'Score', 'Grade', 'Status'],
            rows,
            [0.12, 0.30, 0.18, 0.09, 0.09, 0.08, 0.14],
        ))
        elements.append(Spacer(1, 12))
        elements.append(ReportingService._details_table([
            ('GPA', f"{transcript['gpa']:.2f}"),
            ('Credits Attempted', transcript['credits_attempted']),
            ('Credits Earned', transcript['credits_earned']),
        ]))
        return ReportingService._build(elements)

    @staticmethod
    def generate_receipt_pdf(receipt):
        """Payment receipt from the dict built by PaymentService.receipt"""
        elements = []
        ReportingService._header(elements, receipt['university'], 'Payment Receipt')

        payment = receipt['payment']
        fee = receipt['fee']
        student = receipt['student']
        elements.append(ReportingService._details_table([
            ('Receipt Number', receipt['receipt_number']),
            ('Issued', receipt['issued_at']),
            ('Student', student['name']),
            ('Student Number', student['student_number']),
            ('Fee', fee['description'] or fee['fee_type']),
            ('Amount Paid', ReportingService._format_number(payment['amount'])),
            ('Payment Method', payment['payment_method'].replace('_', ' ').title()),
            ('Reference', payment['reference'] or '-'),
            ('Balance Remaining', ReportingService._format_number(fee['balance_after'])),
            ('Status', payment['status']),
        ]))
        return ReportingService._build(elements)
