"""
util/dates.py

Date helpers for the intent's free-text `date` field.
- target_date: map a phrase like 'tomorrow' or 'this weekend' to a calendar date
- pick_forecast_day: select the provider forecast day matching that date
"""

from datetime import date, datetime, timedelta

from dateutil import parser


ISO_DATE_FMT = "%Y-%m-%d"

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

RELATIVE_DAYS = {
    "today": 0,
    "tonight": 0,
    "this morning": 0,
    "this afternoon": 0,
    "this evening": 0,
    "now": 0,
    "day after tomorrow": 2,
    "tomorrow": 1,
    "今日": 0,
    "今夜": 0,
    "明後日": 2,
    "あさって": 2,
    "明日": 1,
    "あした": 1,
}


def target_date(phrase, today=None):
    """Return the calendar date a phrase refers to, or None if it can't be placed.

    Relative phrases are checked longest-first so 'day after tomorrow' wins over 'tomorrow'.
    Weekday names resolve to the next occurrence (today counts). 'weekend' resolves to Saturday.
    """
    if not phrase or not isinstance(phrase, str):
        return None
    today = today or date.today()
    low = phrase.strip().lower()

    for key in sorted(RELATIVE_DAYS, key=len, reverse=True):
        if key in low:
            return today + timedelta(days=RELATIVE_DAYS[key])

    if "weekend" in low:
        return _next_weekday(today, 5)
    for idx, name in enumerate(WEEKDAYS):
        if name in low:
            return _next_weekday(today, idx)

    try:
        default = datetime(today.year, today.month, today.day)
        return parser.parse(phrase, fuzzy=True, default=default).date()
    except Exception:
        return None


def _next_weekday(today, weekday):
    return today + timedelta(days=(weekday - today.weekday()) % 7)


def pick_forecast_day(raw_weather, phrase, today=None):
    """Return the `forecastday` entry whose date matches `phrase`, or None."""
    if not raw_weather:
        return None
    wanted = target_date(phrase, today)
    if wanted is None:
        return None
    days = ((raw_weather.get("forecast") or {}).get("forecastday")) or []
    iso = wanted.strftime(ISO_DATE_FMT)
    for day in days:
        if day.get("date") == iso:
            return day
    return None
