# FILE: clinic/services/pdf_prescription.py
from __future__ import annotations

from datetime import date, datetime
from io import BytesIO
from typing import Any, List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from clinic.core.config import settings
from clinic.models.prescription import Prescription


# -------------------------------
# Helpers
# -------------------------------
def _safe(v: Any) -> str:
    return "" if v is None else str(v)


def _fmt_date(v: Any) -> str:
    if isinstance(v, datetime):
        v = v.date()
    if isinstance(v, date):
        return v.strftime("%d-%m-%Y")
    return "-" if not v else str(v)


def _money(v: Any) -> str:
    return f"{int(v or 0):,}"


def _wrap(text: str, font: str, size: float, max_w: float) -> List[str]:
    s = (text or "").replace("\n", " ").strip()
    if not s:
        return [""]
    lines: List[str] = []
    cur = ""
    for w in s.split():
        cand = (cur + " " + w).strip()
        if pdfmetrics.stringWidth(cand, font, size) <= max_w:
            cur = cand
        else:
            if cur:
                lines.append(cur)
            cur = w
    if cur:
        lines.append(cur)
    return lines


def build_prescription_pdf(rx: Prescription) -> bytes:
    """
    A4 printable prescription: clinic header, patient block, medication
    table, totals and doctor signature line.
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    W, H = A4

    INK = colors.HexColor("#0f172a")
    MUTED = colors.HexColor("#475569")
    LINE = colors.HexColor("#e5e7eb")

    M = 14 * mm
    content_w = W - 2 * M
    y = H - M

    def new_page_if_needed(need: float) -> None:
        nonlocal y
        if y - need < M + 30 * mm:
            c.showPage()
            y = H - M

    # header
    c.setFillColor(INK)
    c.setFont("Helvetica-Bold", 15)
    c.drawString(M, y - 6 * mm, settings.CLINIC_NAME)
    c.setFont("Helvetica", 8.5)
    c.setFillColor(MUTED)
    sub = " | ".join(x for x in (settings.CLINIC_ADDRESS, settings.CLINIC_PHONE) if x)
    if sub:
        c.drawString(M, y - 11 * mm, sub)
    c.setFont("Helvetica-Bold", 12)
    c.setFillColor(INK)
    c.drawRightString(W - M, y - 6 * mm, "PRESCRIPTION")
    c.setFont("Helvetica", 8.5)
    c.drawRightString(W - M, y - 11 * mm, f"No: {_safe(rx.prescription_code)}")
    c.drawRightString(W - M, y - 15 * mm, f"Date: {_fmt_date(rx.prescription_date)}")
    y -= 19 * mm
    c.setStrokeColor(LINE)
    c.line(M, y, W - M, y)
    y -= 6 * mm

    # patient block
    p = rx.patient
    c.setFont("Helvetica", 9.5)
    c.setFillColor(INK)
    c.drawString(M, y, f"Patient: {_safe(p.full_name if p else '')}")
    c.drawString(M + content_w / 2, y, f"Code: {_safe(p.patient_code if p else '')}")
    y -= 5 * mm
    age = p.age if p else None
    c.drawString(M, y, f"Age / Gender: {age if age is not None else '-'} / {_safe(p.gender if p else '')}")
    c.drawString(M + content_w / 2, y, f"Phone: {_safe(p.phone if p else '')}")
    y -= 5 * mm
    for ln in _wrap(f"Diagnosis: {rx.diagnosis}", "Helvetica", 9.5, content_w):
        c.drawString(M, y, ln)
        y -= 5 * mm
    y -= 2 * mm

    # medication table
    cols = [
        ("#", 8 * mm),
        ("Medicine", 62 * mm),
        ("Dosage", 24 * mm),
        ("Frequency", 28 * mm),
        ("Duration", 22 * mm),
        ("Qty", 12 * mm),
        ("Amount", content_w - 156 * mm),
    ]
    c.setFont("Helvetica-Bold", 9)
    x = M
    for title, w in cols:
        c.drawString(x + 1 * mm, y, title)
        x += w
    y -= 2 * mm
    c.line(M, y, W - M, y)
    y -= 4.5 * mm

    c.setFont("Helvetica", 9)
    for i, line in enumerate(rx.lines, start=1):
        name_lines = _wrap(line.medicine_name, "Helvetica", 9, cols[1][1] - 2 * mm)
        extra = []
        if line.instructions:
            extra = _wrap(line.instructions, "Helvetica-Oblique", 8, cols[1][1] - 2 * mm)
        need = (len(name_lines) + len(extra)) * 4.5 * mm + 2 * mm
        new_page_if_needed(need)

        vals = [str(i), None, line.dosage, line.frequency, line.duration,
                str(line.quantity), _money(line.total_price)]
        x = M
        for (title, w), v in zip(cols, vals):
            if v is not None:
                c.drawString(x + 1 * mm, y, _safe(v))
            x += w
        yy = y
        for nl in name_lines:
            c.drawString(M + cols[0][1] + 1 * mm, yy, nl)
            yy -= 4.5 * mm
        c.setFont("Helvetica-Oblique", 8)
        c.setFillColor(MUTED)
        for el in extra:
            c.drawString(M + cols[0][1] + 1 * mm, yy, el)
            yy -= 4.5 * mm
        c.setFont("Helvetica", 9)
        c.setFillColor(INK)
        y = yy - 1 * mm

    c.line(M, y, W - M, y)
    y -= 5 * mm
    c.setFont("Helvetica-Bold", 10)
    c.drawRightString(W - M, y, f"Total: {_money(rx.total_amount)}")
    y -= 8 * mm

    c.setFont("Helvetica", 9)
    if rx.general_instructions:
        for ln in _wrap(f"Instructions: {rx.general_instructions}", "Helvetica", 9, content_w):
            new_page_if_needed(5 * mm)
            c.drawString(M, y, ln)
            y -= 4.5 * mm
    if rx.follow_up_date:
        c.drawString(M, y, f"Follow-up: {_fmt_date(rx.follow_up_date)} {_safe(rx.follow_up_instructions)}")
        y -= 4.5 * mm
    if rx.valid_until:
        c.setFillColor(MUTED)
        c.drawString(M, y, f"Valid until {_fmt_date(rx.valid_until)}")
        c.setFillColor(INK)

    # signature
    doc = rx.doctor
    c.line(W - M - 60 * mm, M + 18 * mm, W - M, M + 18 * mm)
    c.drawCentredString(W - M - 30 * mm, M + 13 * mm, _safe(doc.full_name if doc else ""))
    if doc and doc.specialization:
        c.setFont("Helvetica", 8)
        c.drawCentredString(W - M - 30 * mm, M + 9 * mm, doc.specialization)

    c.showPage()
    c.save()
    return buf.getvalue()
