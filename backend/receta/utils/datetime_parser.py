from typing import Optional
from datetime import datetime
import dateparser


#------This Function parses a reference date from text---------
def parse_datetime_from_text(
    text: Optional[str], reference_datetime: Optional[datetime] = None
) -> Optional[datetime]:
    if not text:
        return None

    settings = {
        "PREFER_DATES_FROM": "past",
        "RELATIVE_BASE": reference_datetime or datetime.now(),
        "RETURN_AS_TIMEZONE_AWARE": False,
        "DATE_ORDER": "YMD",
    }

    try:
        return dateparser.parse(text, languages=["en", "es"], settings=settings)
    except Exception:
        return None


#------This Function resolves an optional reference date query---------
def resolve_reference_datetime(text: Optional[str]) -> datetime:
    if not text:
        return datetime.now()
    parsed = parse_datetime_from_text(text)
    if parsed is None:
        raise ValueError(f"Could not understand date {text!r}. Use YYYY-MM-DD, 'today' or 'yesterday'.")
    return parsed
