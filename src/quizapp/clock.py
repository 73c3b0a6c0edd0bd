"""Clock injected into the attempt and review engines."""
from datetime import datetime


class SystemClock:
    def now(self) -> datetime:
        return datetime.now()
