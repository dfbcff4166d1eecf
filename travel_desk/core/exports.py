"""
Printable PDF exports of an approved report.

Two documents: the expense breakdown attached to the travel order
("Rincian Biaya Perjalanan Dinas") and the narrative travel report
("Laporan Perjalanan Dinas").
"""
from decimal import Decimal
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from travel_desk.models.enums import TravelType
from travel_desk.models.report import Report

_UNITS = ("", "Satu", "Dua", "Tiga", "Empat", "Lima", "Enam", "Tujuh", "Delapan", "Sembilan")
_SCALES = ("", "Ribu", "Juta", "Miliar", "Triliun")

ZERO = Decimal("0")


def _hundreds_in_words(n: int) -> str:
    words = []
    hundreds, rest = divmod(n, 100)
    if hundreds == 1:
        words.append("Seratus")
    elif hundreds:
        words.append(f"{_UNITS[hundreds]} Ratus")

    if rest == 10:
        words.append("Sepuluh")
    elif rest == 11:
        words.append("Sebelas")
    elif 12 <= rest <= 19:
        words.append(f"{_UNITS[rest - 10]} Belas")
    else:
        tens, ones = divmod(rest, 10)
        if tens:
            words.append(f"{_UNITS[tens]} Puluh")
        if ones:
            words.append(_UNITS[ones])
    return " ".join(words)


def amount_in_words(amount) -> str:
    """Indonesian spelling of a whole rupiah amount, e.g. 1000 -> "seribu rupiah"."""
    n = int(amount)
    if n < 0:
        raise ValueError("Amount must not be negative")
    if n == 0:
        return "nol rupiah"

    groups = []
    scale = 0
    while n:
        if scale >= len(_SCALES):
            raise ValueError("Amount too large to spell out")
        n, group = divmod(n, 1000)
        if group == 1 and scale == 1:
            groups.append("Seribu")
        elif group:
            groups.append(f"{_hundreds_in_words(group)} {_SCALES[scale]}")
        scale += 1

    words = " ".join(reversed(groups))
    return " ".join(words.lower().split()) + " rupiah"


def format_rupiah(amount) -> str:
    """1234567 -> "Rp.1.234.567,-"."""
    return "Rp." + f"{int(amount or 0):,}".replace(",", ".") + ",-"


def trip_days(report: Report) -> int:
    if report.actual_duration and report.actual_duration > 0:
        return report.actual_duration
    return (report.return_date - report.departure_date).days + 1


def _money(value) -> Decimal:
    return value if value is not None else ZERO


def expense_lines(report: Report) -> list[tuple[str, Decimal, str]]:
    """(description, amount, note) rows of the expense breakdown; empty until expenses are filled in."""
    detail = report.expense_detail
    if detail is None:
        return []

    days = max(trip_days(report), 1)
    nights = f"{max(days - 1, 0)} malam"

    if report.travel_type == TravelType.IN_CITY.value:
        return [
            ("Uang Harian", _money(detail.daily_allowance), ""),
            ("Transportasi", _money(detail.transportation_cost), ""),
            ("Sewa Kendaraan", _money(detail.vehicle_rental_cost), ""),
        ]

    if report.travel_type == TravelType.OUT_CITY.value:
        if detail.fullboard_price is not None:
            rate = detail.fullboard_price.price
            note = f"{days} hari x {format_rupiah(rate)} ({detail.fullboard_price.province_name})"
        else:
            rate = _money(detail.custom_daily_allowance)
            note = f"{days} hari x {format_rupiah(rate)}"
        transport = sum(
            _money(v)
            for v in (
                detail.origin_transport_cost,
                detail.local_transport_cost,
                detail.destination_transport_cost,
                detail.round_trip_ticket_cost,
            )
        )
        return [
            ("Uang Harian", rate * days, note),
            ("Transportasi", transport, ""),
            ("Penginapan", _money(detail.lodging_cost), nights),
        ]

    transport = sum(
        _money(v)
        for v in (detail.origin_transport_cost, detail.international_ticket_cost, detail.local_transport_cost)
    )
    return [
        ("Uang Harian", _money(detail.daily_allowance_cost), ""),
        ("Transportasi", transport, ""),
        ("Penginapan", _money(detail.lodging_cost), nights),
        ("Biaya Visa", _money(detail.visa_fee_cost), ""),
        ("Asuransi Perjalanan", _money(detail.travel_insurance_cost), ""),
    ]


def _text(value) -> str:
    return escape(str(value or "-")).replace("\n", "<br/>")


def _document(buffer: BytesIO) -> SimpleDocTemplate:
    return SimpleDocTemplate(buffer, pagesize=A4, rightMargin=40, leftMargin=40, topMargin=50, bottomMargin=40)


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="Header", fontSize=14, leading=18, alignment=1, spaceAfter=20))
    return styles


def _grid(data, col_widths, header=True) -> Table:
    commands = [
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]
    if header:
        commands.append(("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey))
    return Table(data, colWidths=col_widths, style=TableStyle(commands))


def render_expense_pdf(report: Report) -> bytes:
    lines = expense_lines(report)
    total = sum((amount for _, amount, _ in lines), ZERO)

    buffer = BytesIO()
    doc = _document(buffer)
    styles = _styles()

    elements = [Paragraph("RINCIAN BIAYA PERJALANAN DINAS", styles["Header"])]
    elements.append(Paragraph(f"<b>Lampiran SPPD Nomor:</b> {_text(report.travel_order_number)}", styles["Normal"]))
    elements.append(Paragraph(f"<b>Tanggal:</b> {report.departure_date.strftime('%d-%m-%Y')}", styles["Normal"]))
    elements.append(Paragraph(f"<b>Nama:</b> {_text(report.user.full_name if report.user else None)}", styles["Normal"]))
    elements.append(Paragraph(f"<b>Tujuan:</b> {_text(report.destination_city)}", styles["Normal"]))
    elements.append(Spacer(1, 20))

    rows = [["No", "Rincian Biaya", "Jumlah", "Keterangan"]]
    for i, (description, amount, note) in enumerate(lines, start=1):
        rows.append([i, description, format_rupiah(amount), Paragraph(_text(note or ""), styles["Normal"])])
    rows.append(["", "JUMLAH", format_rupiah(total), ""])
    elements.append(_grid(rows, [30, 150, 110, 225]))

    elements.append(Spacer(1, 12))
    elements.append(Paragraph(f"<b>Terbilang:</b> <i>{amount_in_words(total)}</i>", styles["Normal"]))

    doc.build(elements)
    buffer.seek(0)
    return buffer.getvalue()


def render_travel_report_pdf(report: Report) -> bytes:
    narrative = report.travel_report

    buffer = BytesIO()
    doc = _document(buffer)
    styles = _styles()

    elements = [
        Paragraph("LAPORAN PERJALANAN DINAS", styles["Header"]),
        Paragraph(f"<b>{_text(narrative.title)}</b>", styles["Normal"]),
        Spacer(1, 16),
        Paragraph("A. PENDAHULUAN", styles["Heading2"]),
        Paragraph("1. Latar Belakang", styles["Heading3"]),
        Paragraph(_text(narrative.background), styles["Normal"]),
        Paragraph("2. Maksud dan Tujuan", styles["Heading3"]),
        Paragraph(_text(narrative.purpose_and_objectives), styles["Normal"]),
    ]
    for heading, body in (
        ("B. RUANG LINGKUP", narrative.scope),
        ("C. DASAR PELAKSANAAN", narrative.legal_basis),
        ("D. KEGIATAN YANG DILAKSANAKAN", narrative.activities_conducted),
        ("E. HASIL YANG DICAPAI", narrative.achievements),
        ("F. KESIMPULAN DAN SARAN", narrative.conclusions),
    ):
        elements.append(Paragraph(heading, styles["Heading2"]))
        elements.append(Paragraph(_text(body), styles["Normal"]))

    elements.append(Spacer(1, 30))
    signature = [
        ["Dibuat di", f": {report.destination_city}"],
        ["Tanggal", f": {report.return_date.strftime('%d-%m-%Y')}"],
        ["Pelaksana", f": {report.user.full_name if report.user else '-'}"],
    ]
    elements.append(Table(signature, colWidths=[80, 200], hAlign="RIGHT"))

    doc.build(elements)
    buffer.seek(0)
    return buffer.getvalue()
