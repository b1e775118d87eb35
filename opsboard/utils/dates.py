from datetime import datetime, timedelta, timezone
from opsboard.errors import InputError


def iso(value):
    """ISO-8601 text for a stored datetime, None passes through"""
    return value.isoformat() if value else None


def parse_datetime(value, field='date'):
    """Parse ISO date/datetime text into a naive UTC datetime"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InputError(f'Invalid {field}: {value}')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date_range(args, default_days, now=None):
    """
    Read startDate/endDate from query args.
    Missing start defaults to ``default_days`` before now, missing end to now.
    A date-only end covers that whole day.
    """
    now = now or datetime.utcnow()
    start = parse_datetime(args.get('startDate'), 'startDate') or now - timedelta(days=default_days)

    end_text = args.get('endDate')
    end = parse_datetime(end_text, 'endDate') or now
    if end_text and len(str(end_text).strip()) == 10:
        end = end + timedelta(days=1) - timedelta(microseconds=1)

    if start > end:
        raise InputError('startDate must be before endDate')
    return start, end
