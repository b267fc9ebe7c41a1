"""Capped exponential reconnect backoff with full reset on success."""

from dataclasses import dataclass, field

INITIAL_RECONNECT_DELAY = 2.0  # seconds
MAX_RECONNECT_DELAY = 10.0  # seconds


@dataclass
class ReconnectBackoff:
    """Reconnect delay state, kept explicit so the policy is testable without timers

    The k-th consecutive failed attempt waits min(initial * 2**(k-1), ceiling);
    reset() after a successful connect starts the sequence over.
    """

    initial: float = INITIAL_RECONNECT_DELAY
    ceiling: float = MAX_RECONNECT_DELAY
    current: float = field(init=False)
    attempts: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.initial <= 0 or self.ceiling < self.initial:
            msg = f"Invalid backoff bounds: initial={self.initial}, ceiling={self.ceiling}"
            raise ValueError(msg)
        self.current = self.initial

    def next_delay(self) -> float:
        """Delay to wait before the next attempt; doubles the delay for the one after"""
        delay = self.current
        self.attempts += 1
        self.current = min(self.current * 2, self.ceiling)
        return delay

    def reset(self) -> None:
        self.current = self.initial
        self.attempts = 0
