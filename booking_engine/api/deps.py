from booking_engine.core.clock import Clock, SystemClock
from booking_engine.core.db import get_session

__all__ = ["get_clock", "get_session"]

_system_clock = SystemClock()


def get_clock() -> Clock:
    """Current-time source for routes; tests override this dependency with a FixedClock."""
    return _system_clock
