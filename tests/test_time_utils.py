from datetime import UTC

from backend.app.core.time import utc_now, utc_today


def test_utc_now_is_timezone_aware_utc():
    value = utc_now()
    assert value.tzinfo is UTC


def test_utc_today_is_the_utc_calendar_date():
    before = utc_now().date()
    today = utc_today()
    after = utc_now().date()
    assert before <= today <= after
