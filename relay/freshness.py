import time

from relay.errors import StaleRequestError, ValidationError


def now_millis():
    return int(time.time() * 1000)


class FreshnessValidator:
    """
    Bounds the replay window of captured payloads by rejecting client
    timestamps too far from the server wall clock, in either direction.
    A mitigation only; the payload itself is not authenticated.
    """

    def __init__(self, window_ms=300000, require_timestamp=False, clock=now_millis):
        self.window_ms = window_ms
        self.require_timestamp = require_timestamp
        self._clock = clock

    def validate(self, timestamp_millis):
        if timestamp_millis is None:
            if self.require_timestamp:
                raise ValidationError("ts is required")
            return
        # bool is an int subclass; reject it explicitly
        if isinstance(timestamp_millis, bool) or not isinstance(timestamp_millis, int):
            raise ValidationError("ts must be an integer (epoch milliseconds)")

        skew = abs(self._clock() - timestamp_millis)
        if skew > self.window_ms:
            raise StaleRequestError(f"request timestamp is {skew} ms away from server time")
