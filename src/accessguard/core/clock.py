"""Clock used for every timestamp written to the store."""

from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo


class Clock:
    """Produces ISO-8601 timestamps in the deployment's timezone.

    Example:
        clock = Clock(ZoneInfo("Asia/Riyadh"))
        clock.now_iso()  # '2024-05-01T09:30:00.123456+03:00'
    """

    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz = tz or ZoneInfo("UTC")

    def now(self) -> datetime:
        """Return the current time as an aware datetime."""
        return datetime.now(self.tz)

    def now_iso(self) -> str:
        """Return the current time formatted as ISO-8601."""
        return self.now().isoformat()

    def parse(self, value: str | None) -> datetime | None:
        """Parse a stored ISO-8601 timestamp; naive values use this clock's zone."""
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=self.tz)
        return parsed
