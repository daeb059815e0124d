# app/deps.py

from app.clock import SystemClock
from app.scheduling.assignment import AssignmentResolver

_clock = SystemClock()
_resolver = AssignmentResolver()


# Dependencies: overridden in tests with a fixed clock / seeded resolver
def get_clock():
    return _clock


def get_resolver():
    return _resolver
