# app/scheduling/slots.py

from app.core import MINUTES_PER_DAY
from app.errors import InvalidRequestError


class SlotGenerator:
    """Candidate start minutes for one date.

    Starts are spaced by the full occupied duration (consultation plus both
    buffers) from the window start, so two generated slots never need the
    same consultant minutes. The sequence stops at the first start whose
    interval would run past ``window_end``; a trailing partial period is
    dropped. Iterating again restarts from the window start.
    """

    def __init__(self, total_duration: int, window_start: int, window_end: int):
        if total_duration <= 0:
            raise InvalidRequestError(f"total duration must be positive, got {total_duration}")
        if not 0 <= window_start < window_end <= MINUTES_PER_DAY:
            raise InvalidRequestError(
                f"invalid business window {window_start}-{window_end} (minutes since midnight)"
            )
        self.total_duration = total_duration
        self.window_start = window_start
        self.window_end = window_end

    def __iter__(self):
        start = self.window_start
        while start + self.total_duration <= self.window_end:
            yield start
            start += self.total_duration

    def __len__(self) -> int:
        return (self.window_end - self.window_start) // self.total_duration

    def __contains__(self, minute: int) -> bool:
        offset = minute - self.window_start
        return (
            offset >= 0
            and offset % self.total_duration == 0
            and minute + self.total_duration <= self.window_end
        )
