"""Error taxonomy shared by the price and alert components."""


class PriceWatchError(Exception):
    """Base class for all pricewatch errors."""
    pass


class UpstreamError(PriceWatchError):
    """Price feed unreachable, timed out, returned non-2xx or a malformed body."""
    pass


class BrokerUnavailable(PriceWatchError):
    """Event broker could not be reached within the retry budget."""
    pass


class ValidationError(PriceWatchError):
    """Alert bounds or patch rejected."""
    pass


class NotFound(PriceWatchError):
    """Alert id unknown or soft-deleted."""

    def __init__(self, alert_id: int):
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} not found")
