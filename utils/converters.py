import re
from datetime import datetime, timedelta, timezone

import dateparser
from discord.ext import commands

from utils import customerrors

__all__ = (
    "parse_delay",
    "Delay",
)


_UNITS = {
    "w": "weeks",
    "d": "days",
    "h": "hours",
    "m": "minutes",
    "s": "seconds",
}
compact_rx = re.compile(r'^(?:\d+\s*[wdhms]\s*)+$', re.IGNORECASE)
unit_rx = re.compile(r'(\d+)\s*([wdhms])', re.IGNORECASE)
clock_rx = re.compile(r'^(?:(\d+)\.)?(\d{1,2}):(\d{2})(?::(\d{2}))?$')


def _parse_compact(argument: str) -> timedelta:
    kwargs = {}
    for amount, unit in unit_rx.findall(argument):
        key = _UNITS[unit.lower()]
        kwargs[key] = kwargs.get(key, 0) + int(amount)
    return timedelta(**kwargs)


def _parse_clock(match) -> timedelta:
    days, hours, minutes, seconds = match.groups()
    if int(minutes) >= 60 or (seconds and int(seconds) >= 60):
        return None
    try:
        return timedelta(days=int(days or 0), hours=int(hours), minutes=int(minutes), seconds=int(seconds or 0))
    except OverflowError:
        return None


def parse_delay(argument: str, now: datetime = None) -> timedelta:
    """Turn ``10m``, ``1h30m``, ``1.02:00:00`` or ``in 2 hours`` into a delay.

    Raises :class:`InvalidDelay` for anything that is not a non-negative delay.
    """
    text = (argument or "").strip()
    if not text:
        raise customerrors.InvalidDelay(argument)

    if compact_rx.match(text):
        try:
            return _parse_compact(text)
        except OverflowError:
            raise customerrors.InvalidDelay(argument)

    match = clock_rx.match(text)
    if match:
        delay = _parse_clock(match)
        if delay is None:
            raise customerrors.InvalidDelay(argument)
        return delay

    base = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).replace(tzinfo=None)
    parsed = dateparser.parse(text, settings={
        'PREFER_DATES_FROM': "future",
        'RELATIVE_BASE': base,
        'TIMEZONE': "UTC",
        'TO_TIMEZONE': "UTC",
        'RETURN_AS_TIMEZONE_AWARE': False,
    })
    if parsed is None or parsed < base:
        raise customerrors.InvalidDelay(argument)
    return parsed - base


class Delay(commands.Converter):
    async def convert(self, ctx: commands.Context, argument: str) -> timedelta:
        return parse_delay(argument)
