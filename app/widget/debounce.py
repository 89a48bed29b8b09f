import time
from typing import Callable


class TypingDebouncer:
    """
    typing-start on the first keystroke, typing-stop after ``idle_seconds``
    without keystrokes (checked by ``expired``) or right away via ``stop``.
    The clock is injectable so timelines can be simulated.
    """

    def __init__(self, idle_seconds: float = 2.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.idle_seconds = idle_seconds
        self.clock = clock
        self.active = False
        self.last_keystroke: float | None = None

    def keystroke(self) -> bool:
        """Returns True when typing-start must be emitted."""
        started = not self.active
        self.active = True
        self.last_keystroke = self.clock()
        return started

    def expired(self) -> bool:
        """Returns True (once) when typing-stop is due."""
        if self.active and self.clock() - self.last_keystroke >= self.idle_seconds:
            self.active = False
            return True
        return False

    def stop(self) -> bool:
        was_active = self.active
        self.active = False
        return was_active

    def remaining(self) -> float:
        """Seconds until typing-stop is due (0 when inactive or overdue)."""
        if not self.active:
            return 0.0
        return max(0.0, self.last_keystroke + self.idle_seconds - self.clock())
