# FILE: clinic/services/id_gen.py
from __future__ import annotations

from datetime import date


def make_code(prefix: str, id_num: int, width: int = 6) -> str:
    return f"{prefix}{id_num:0{width}d}"


def patient_code(id_num: int) -> str:
    return make_code("PT", id_num)


def record_code(id_num: int) -> str:
    return make_code("MR", id_num)


def prescription_code(id_num: int) -> str:
    return make_code("RX", id_num)


def appointment_code(day: date, id_num: int) -> str:
    return f"AP{day:%Y%m%d}{id_num:05d}"
