"""
Kalender: Masehi, Hijriah (Umm al-Qura) and Javanese pasaran.

Hijri conversion is delegated to the hijridate library, which only covers
the Umm al-Qura table range (roughly 1924-2077 CE); dates outside it raise
OverflowError.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Dict, List, Literal, Optional, Union

from hijridate import Gregorian
from pydantic import BaseModel

PASARAN = ['Legi', 'Pahing', 'Pon', 'Wage', 'Kliwon']
DAYS_ID = ['Minggu', 'Senin', 'Selasa', 'Rabu', 'Kamis', 'Jumat', 'Sabtu']
MONTHS_ID = [
    'Januari', 'Februari', 'Maret', 'April', 'Mei', 'Juni',
    'Juli', 'Agustus', 'September', 'Oktober', 'November', 'Desember',
]
HIJRI_MONTHS_ID = [
    'Muharram', 'Safar', 'Rabiulawal', 'Rabiulakhir', 'Jumadilawal', 'Jumadilakhir',
    'Rajab', 'Syaban', 'Ramadan', 'Syawal', 'Zulkaidah', 'Zulhijah',
]

# 1 Januari 2024 jatuh pada Senin Pahing
REF_DATE = date(2024, 1, 1)
REF_PASARAN_IDX = 1

HolidayType = Literal['NASIONAL', 'PHBI', 'PHBN']
DateLike = Union[date, datetime, str]


class Holiday(BaseModel):
    name: str
    type: HolidayType


class HijriDate(BaseModel):
    day: int
    month: str
    year: int
    full: str


class CalendarDay(BaseModel):
    tanggal: str
    hari: str
    pasaran: str
    hijri: str
    holiday: Optional[Holiday] = None
    is_red: bool = False


def _holiday(name: str, type_: str) -> Holiday:
    return Holiday(name=name, type=type_)


HOLIDAYS: Dict[str, Holiday] = {
    '2024-01-01': _holiday('Tahun Baru 2024 Masehi', 'NASIONAL'),
    '2024-02-08': _holiday('Isra Mikraj Nabi Muhammad SAW', 'PHBI'),
    '2024-02-10': _holiday('Tahun Baru Imlek 2575 Kongzili', 'NASIONAL'),
    '2024-03-11': _holiday('Hari Suci Nyepi Tahun Baru Saka 1946', 'PHBN'),
    '2024-03-29': _holiday('Wafat Isa Al Masih', 'PHBN'),
    '2024-03-31': _holiday('Hari Paskah', 'PHBN'),
    '2024-04-10': _holiday('Hari Raya Idul Fitri 1445 Hijriah', 'PHBI'),
    '2024-04-11': _holiday('Hari Raya Idul Fitri 1445 Hijriah', 'PHBI'),
    '2024-05-01': _holiday('Hari Buruh Internasional', 'NASIONAL'),
    '2024-05-09': _holiday('Kenaikan Isa Al Masih', 'PHBN'),
    '2024-05-23': _holiday('Hari Raya Waisak 2568 BE', 'PHBN'),
    '2024-06-01': _holiday('Hari Lahir Pancasila', 'NASIONAL'),
    '2024-06-17': _holiday('Hari Raya Idul Adha 1445 Hijriah', 'PHBI'),
    '2024-07-07': _holiday('Tahun Baru Islam 1446 Hijriah', 'PHBI'),
    '2024-08-17': _holiday('Hari Kemerdekaan RI', 'NASIONAL'),
    '2024-09-16': _holiday('Maulid Nabi Muhammad SAW', 'PHBI'),
    '2024-12-25': _holiday('Hari Raya Natal', 'PHBN'),
    '2025-01-01': _holiday('Tahun Baru 2025 Masehi', 'NASIONAL'),
    '2025-01-27': _holiday('Isra Mikraj Nabi Muhammad SAW', 'PHBI'),
    '2025-01-29': _holiday('Tahun Baru Imlek 2576 Kongzili', 'NASIONAL'),
    '2025-03-29': _holiday('Hari Suci Nyepi Tahun Baru Saka 1947', 'PHBN'),
    '2025-03-31': _holiday('Idul Fitri 1446 Hijriah', 'PHBI'),
}


def to_date(value: DateLike) -> date:
    """Accept date, datetime (time of day dropped) or 'YYYY-MM-DD'."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def javanese_pasaran(value: DateLike) -> str:
    diff_days = (to_date(value) - REF_DATE).days
    return PASARAN[(REF_PASARAN_IDX + diff_days) % 5]


def hijri_date(value: DateLike) -> HijriDate:
    d = to_date(value)
    h = Gregorian(d.year, d.month, d.day).to_hijri()
    month = HIJRI_MONTHS_ID[h.month - 1]
    return HijriDate(day=h.day, month=month, year=h.year, full=f"{h.day} {month} {h.year} H")


def holiday_lookup(value: DateLike) -> Optional[Holiday]:
    return HOLIDAYS.get(to_date(value).isoformat())


def rukyat_info(hijri_month: str) -> Optional[str]:
    month = hijri_month.lower()
    if 'syaban' in month:
        return ("Info Falakiyah: Persiapan Rukyatul Hilal Awal Ramadhan. "
                "Potensi perbedaan awal puasa sangat kecil tahun ini.")
    if 'ramadan' in month or 'ramadhan' in month:
        return ("Info Falakiyah: Persiapan Rukyatul Hilal Awal Syawal. "
                "Sidang Isbat biasanya digelar pada tanggal 29 Ramadhan.")
    return None


def day_name(value: DateLike) -> str:
    # date.weekday(): Monday=0; DAYS_ID starts on Sunday
    return DAYS_ID[(to_date(value).weekday() + 1) % 7]


def format_tanggal(value: DateLike) -> str:
    """'17 Agustus 2024'"""
    d = to_date(value)
    return f"{d.day} {MONTHS_ID[d.month - 1]} {d.year}"


def month_calendar(year: int, month: int) -> List[CalendarDay]:
    days_in_month = calendar.monthrange(year, month)[1]
    first = date(year, month, 1)
    cells = []
    for offset in range(days_in_month):
        d = first + timedelta(days=offset)
        holiday = holiday_lookup(d)
        hari = day_name(d)
        cells.append(CalendarDay(
            tanggal=d.isoformat(),
            hari=hari,
            pasaran=javanese_pasaran(d),
            hijri=hijri_date(d).full,
            holiday=holiday,
            is_red=hari == 'Minggu' or holiday is not None,
        ))
    return cells
