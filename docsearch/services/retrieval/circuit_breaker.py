import logging

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Failure counter for a processing tier. Once `threshold` failures have
    been recorded the tier stays disabled until reset() is called.
    Successes do not lower the count.
    """

    def __init__(self, threshold: int, name: str = "workers"):
        self.threshold = threshold
        self.name = name
        self.failures = 0
        self.last_error: str | None = None

    @property
    def is_open(self) -> bool:
        return self.failures >= self.threshold

    def record_failure(self, reason: str) -> bool:
        """Returns True when this failure opened the circuit."""
        was_open = self.is_open
        self.failures += 1
        self.last_error = reason

        logger.warning(
            "%s failure %d/%d: %s", self.name, self.failures, self.threshold, reason
        )
        if self.is_open and not was_open:
            logger.warning("%s disabled until reset", self.name)
            return True

        return False

    def reset(self) -> None:
        if self.failures:
            logger.info("%s circuit reset after %d failures", self.name, self.failures)
        self.failures = 0
        self.last_error = None

    def status(self) -> dict[str, object]:
        return {
            "open": self.is_open,
            "failures": self.failures,
            "threshold": self.threshold,
            "lastError": self.last_error,
        }
