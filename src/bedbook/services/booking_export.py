"""Booking request report (.xlsx).

Layout:
    row 1   title (merged A1:G1)
    row 2   period (merged A2:G2)
    row 4   14-column header
    row 5+  one row per occupant; a booking without occupants gets one
            row of dashes. "No" counts bookings and is only written on a
            booking's first row.

Labels are Indonesian, matching the portal's users.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, tzinfo
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from bedbook.domain.models import BookingRequest, BookingStatus, Occupant, OccupantType

TITLE = "LAPORAN PERMINTAAN BOOKING"
SHEET_TITLE = "Booking Requests"
HEADER_ROW = 4
FIRST_DATA_ROW = 5
UNASSIGNED_LOCATION = "Belum ditentukan"

HEADERS = [
    "No",
    "Kode Booking",
    "Tgl Request",
    "Pemohon",
    "Instansi Pemohon",
    "Tujuan",
    "Status Booking",
    "Nama Tamu",
    "Tipe",
    "NIK/ID",
    "Lokasi (Gedung - Kamar - Bed)",
    "Check In",
    "Check Out",
    "Status Item",
]

COLUMN_WIDTHS = [5, 18, 15, 25, 25, 30, 15, 25, 12, 15, 35, 15, 15, 15]

_MONTHS_ID = ["Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des"]

_TYPE_LABELS = {
    OccupantType.EMPLOYEE: "Karyawan",
    OccupantType.GUEST: "Tamu",
}

_THIN = Side(style="thin")
_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)


def _long_date(day: date) -> str:
    return f"{day.day:02d} {_MONTHS_ID[day.month - 1]} {day.year}"


def period_label(date_from: date | None, date_to: date | None) -> str:
    if date_from is None:
        return "Semua Tanggal"
    until = _long_date(date_to) if date_to else "Seterusnya"
    return f"{_long_date(date_from)} - {until}"


def export_filename(now: datetime) -> str:
    return f"Booking_Requests_{now.strftime('%Y%m%d_%H%M')}.xlsx"


def item_status(booking: BookingRequest, occupant: Occupant) -> str:
    """Per-occupant status: the occupant's own once placed, else the booking's."""
    if occupant.status is not None:
        return occupant.status.value.upper()
    if booking.status == BookingStatus.REQUEST:
        return "PENDING"
    return booking.status.value.upper()


def _occupant_bed(occupant: Occupant) -> str | None:
    if occupant.placement is not None:
        return occupant.placement.bed_id
    return occupant.requested_bed_id


def build_booking_workbook(
    bookings: Iterable[BookingRequest],
    *,
    locations: dict[str, str],
    date_from: date | None = None,
    date_to: date | None = None,
    tz: tzinfo | None = None,
) -> bytes:
    """Render bookings as an .xlsx report.

    Args:
        bookings: Bookings with occupants, in report order.
        locations: "Building - Room - Bed" label per bed ID.
        date_from: Start of the filtered period, for the period row.
        date_to: End of the filtered period.
        tz: Timezone for the request timestamp column.

    Returns:
        Workbook file content.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    ws.merge_cells("A1:G1")
    ws["A1"] = TITLE
    ws["A1"].font = Font(size=16, bold=True)
    ws.merge_cells("A2:G2")
    ws["A2"] = f"Periode: {period_label(date_from, date_to)}"

    header_fill = PatternFill(start_color="FF2B3442", end_color="FF2B3442", fill_type="solid")
    for col, header in enumerate(HEADERS, 1):
        cell = ws.cell(row=HEADER_ROW, column=col, value=header)
        cell.font = Font(bold=True, color="FFFFFFFF")
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for col, width in enumerate(COLUMN_WIDTHS, 1):
        ws.column_dimensions[ws.cell(row=HEADER_ROW, column=col).column_letter].width = width

    row = FIRST_DATA_ROW
    number = 1
    for booking in bookings:
        requested_at = booking.requested_at.astimezone(tz) if tz else booking.requested_at
        head = [
            booking.code,
            requested_at.strftime("%d/%m/%Y %H:%M"),
            booking.requester.name,
            booking.requester.company or booking.requester.department or "-",
            booking.purpose or "-",
            booking.status.value.upper(),
        ]

        if not booking.occupants:
            _write_row(ws, row, [number, *head, "-", "-", "-", "-", "-", "-", "-"])
            number += 1
            row += 1
            continue

        for index, occupant in enumerate(booking.occupants):
            bed_id = _occupant_bed(occupant)
            _write_row(
                ws,
                row,
                [
                    number if index == 0 else "",
                    *head,
                    occupant.name,
                    _TYPE_LABELS[occupant.type],
                    occupant.identifier or "-",
                    locations.get(bed_id, UNASSIGNED_LOCATION) if bed_id else UNASSIGNED_LOCATION,
                    occupant.in_date.strftime("%d/%m/%Y"),
                    occupant.out_date.strftime("%d/%m/%Y") if occupant.out_date else "-",
                    item_status(booking, occupant),
                ],
            )
            row += 1
        number += 1

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _write_row(ws, row: int, values: list) -> None:
    for col, value in enumerate(values, 1):
        cell = ws.cell(row=row, column=col, value=value)
        cell.border = _BORDER
