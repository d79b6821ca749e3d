"""
Excel export service for the Campus Portal
Builds .xlsx downloads for fees, activity logs, course rosters, attendance and users
"""

import logging
from io import BytesIO
from datetime import datetime

import openpyxl
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

class ExcelExportService:
    """Service for exporting portal data to Excel"""

    @staticmethod
    def create_workbook():
        """Create a new workbook with default styling"""
        wb = openpyxl.Workbook()
        return wb

    @staticmethod
    def style_header_row(ws, row_num, columns):
        """Apply styling to header row"""
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="000000", end_color="000000", fill_type="solid")
        header_alignment = Alignment(horizontal="center", vertical="center")

        for col_num, header in enumerate(columns, 1):
            cell = ws.cell(row=row_num, column=col_num, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment

    @staticmethod
    def auto_adjust_columns(ws):
        """Auto-adjust column widths"""
        for column in ws.columns:
            column_letter = get_column_letter(column[0].column)
            max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
            ws.column_dimensions[column_letter].width = min(max_length + 2, 50)

    @staticmethod
    def format_number(value):
        """Whole numbers without decimals, fractional numbers with 2 decimal places"""
        if value is None:
            return None
        try:
            num = float(value)
        except (ValueError, TypeError):
            return value
        if num == int(num):
            return int(num)
        return round(num, 2)

    @staticmethod
    def format_datetime(value):
        return value.strftime('%Y-%m-%d %H:%M') if value else None

    @staticmethod
    def write_title(ws, title, width):
        """Title and generation timestamp above the table"""
        ws.cell(row=1, column=1, value=title).font = Font(bold=True, size=14)
        ws.cell(row=2, column=1, value=f"Generated {datetime.utcnow():%Y-%m-%d %H:%M} UTC").font = Font(italic=True)
        if width > 1:
            ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=width)

    @staticmethod
    def write_table(ws, start_row, headers, rows):
        """Header row followed by data rows; returns the next free row"""
        ExcelExportService.style_header_row(ws, start_row, headers)
        row_num = start_row + 1
        for values in rows:
            for col_num, value in enumerate(values, 1):
                ws.cell(row=row_num, column=col_num, value=value)
            row_num += 1
        if row_num == start_row + 1:
            ws.cell(row=row_num, column=1, value="No data")
            row_num += 1
        return row_num

    @staticmethod
    def export_fee_ledger(fees):
        """Fee ledger with a totals row"""
        wb = ExcelExportService.create_workbook()
        ws = wb.active
        ws.title = "Fee Ledger"

        headers = ['Student Number', 'Student', 'Fee Type', 'Description', 'Academic Year', 'Semester',
                   'Amount', 'Paid', 'Balance', 'Status', 'Due Date', 'Overdue']
        ExcelExportService.write_title(ws, "Fee Ledger", len(headers))

        rows = []
        total = paid = 0.0
        for fee in fees:
            profile = fee.student.student_profile if fee.student else None
            total += float(fee.amount)
            paid += float(fee.amount_paid or 0)
            rows.append([
                profile.student_number if profile else None,
                fee.student.name if fee.student else None,
                fee.fee_type,
                fee.description,
                fee.academic_year,
                fee.semester,
                ExcelExportService.format_number(fee.amount),
                ExcelExportService.format_number(fee.amount_paid),
                ExcelExportService.format_number(fee.balance),
                fee.status,
                ExcelExportService.format_datetime(fee.due_date),
                'Yes' if fee.is_overdue else 'No',
            ])
        next_row = ExcelExportService.write_table(ws, 4, headers, rows)

        if rows:
            ws.cell(row=next_row, column=6, value="Totals").font = Font(bold=True)
            ws.cell(row=next_row, column=7, value=ExcelExportService.format_number(total)).font = Font(bold=True)
            ws.cell(row=next_row, column=8, value=ExcelExportService.format_number(paid)).font = Font(bold=True)
            ws.cell(row=next_row, column=9, value=ExcelExportService.format_number(total - paid)).font = Font(bold=True)

        ExcelExportService.auto_adjust_columns(ws)
        return wb

    @staticmethod
    def export_activity_logs(logs):
        wb = ExcelExportService.create_workbook()
        ws = wb.active
        ws.title = "Activity Log"

        headers = ['Timestamp', 'User', 'Email', 'Action', 'Entity', 'Entity ID', 'IP Address', 'Details']
        ExcelExportService.write_title(ws, "Activity Log", len(headers))
        rows = [[
            ExcelExportService.format_datetime(entry.created_at),
            entry.user.name if entry.user else 'System',
            entry.user.email if entry.user else None,
            entry.action,
            entry.entity,
            entry.entity_id,
            entry.ip_address,
            ', '.join(f'{key}={value}' for key, value in (entry.details or {}).items()),
        ] for entry in logs]
        ExcelExportService.write_table(ws, 4, headers, rows)

        ExcelExportService.auto_adjust_columns(ws)
        return wb

    @staticmethod
    def export_course_roster(course, roster):
        """Enrolled students of one course with their current grades"""
        wb = ExcelExportService.create_workbook()
        ws = wb.active
        ws.title = "Roster"

        headers = ['Student Number', 'Name', 'Email', 'Programme', 'Enrolled On', 'Score', 'Grade', 'Status']
        ExcelExportService.write_title(ws, f"{course.code} - {course.title}", len(headers))
        rows = [[
            entry['student_number'],
            entry['name'],
            entry['email'],
            entry['programme'],
            (entry['enrollment_date'] or '')[:10] or None,
            ExcelExportService.format_number(entry['score']),
            entry['letter_grade'],
            entry['grade_status'],
        ] for entry in roster]
        next_row = ExcelExportService.write_table(ws, 4, headers, rows)

        ws.cell(row=next_row + 1, column=1, value="Lecturer").font = Font(bold=True)
        ws.cell(row=next_row + 1, column=2, value=course.lecturer.name if course.lecturer else None)
        ws.cell(row=next_row + 2, column=1, value="Credits").font = Font(bold=True)
        ws.cell(row=next_row + 2, column=2, value=course.credits)

        ExcelExportService.auto_adjust_columns(ws)
        return wb

    @staticmethod
    def export_attendance_report(report):
        """Per-student attendance of one course with the course totals underneath"""
        wb = ExcelExportService.create_workbook()
        ws = wb.active
        ws.title = "Attendance"

        course = report['course']
        headers = ['Student Number', 'Name', 'Sessions', 'Present', 'Late', 'Excused', 'Absent', 'Attendance %']
        ExcelExportService.write_title(ws, f"{course['code']} - {course['title']} Attendance", len(headers))
        rows = [[
            entry['student_number'],
            entry['student_name'],
            entry['total_records'],
            entry['present'],
            entry['late'],
            entry['excused'],
            entry['absent'],
            ExcelExportService.format_number(entry['attendance_percentage']),
        ] for entry in report['students']]
        next_row = ExcelExportService.write_table(ws, 4, headers, rows)

        overall = report['overall']
        ws.cell(row=next_row + 1, column=1, value="Sessions held").font = Font(bold=True)
        ws.cell(row=next_row + 1, column=2, value=report['sessions'])
        ws.cell(row=next_row + 2, column=1, value="Overall attendance %").font = Font(bold=True)
        ws.cell(row=next_row + 2, column=2, value=ExcelExportService.format_number(overall['attendance_percentage']))

        ExcelExportService.auto_adjust_columns(ws)
        return wb

    @staticmethod
    def export_users(users):
        wb = ExcelExportService.create_workbook()
        ws = wb.active
        ws.title = "Users"

        headers = ['Name', 'Email', 'Role', 'Number', 'Programme / Department', 'Active', 'Created', 'Last Login']
        ExcelExportService.write_title(ws, "User Accounts", len(headers))
        rows = []
        for user in users:
            if user.student_profile:
                number, unit = user.student_profile.student_number, user.student_profile.programme
            elif user.lecturer_profile:
                number, unit = user.lecturer_profile.staff_number, user.lecturer_profile.department
            else:
                number, unit = None, None
            rows.append([
                user.name,
                user.email,
                user.role,
                number,
                unit,
                'Yes' if user.is_active else 'No',
                ExcelExportService.format_datetime(user.created_at),
                ExcelExportService.format_datetime(user.last_login),
            ])
        ExcelExportService.write_table(ws, 4, headers, rows)

        ExcelExportService.auto_adjust_columns(ws)
        return wb

    @staticmethod
    def workbook_to_bytes(workbook):
        """Convert workbook to bytes for download"""
        output = BytesIO()
        workbook.save(output)
        output.seek(0)
        return output.getvalue()
