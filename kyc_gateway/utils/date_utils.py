"""Date parsing utilities for OCR-extracted document fields"""

from datetime import date, datetime
from typing import Optional

# OCR output is usually DD-MM-YYYY / DD/MM/YYYY; producers that normalize send ISO
DOCUMENT_DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d")


def parse_document_date(value: Optional[str]) -> Optional[date]:
    """Parse a document date string, returning None for anything unparseable"""
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    for fmt in DOCUMENT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def days_between(start: date, end: date) -> int:
    """Signed whole days from start to end"""
    return (end - start).days


def age_in_years(date_of_birth: date, today: date) -> float:
    """Approximate age, matching the 365-day year used by fraud heuristics"""
    return days_between(date_of_birth, today) / 365
