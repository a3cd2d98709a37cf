"""
Exceptions raised by the record store and the analytics engine.

Routes catch AnalyticsError and answer a generic 500, so nothing here
should carry storage details into a response body.
"""


class AnalyticsError(Exception):
    """Base class for failures inside the analytics engine."""


class InvalidPeriod(AnalyticsError, ValueError):
    def __init__(self, period):
        super().__init__(f"Unknown period: {period!r}")
        self.period = period


class InvalidGranularity(AnalyticsError, ValueError):
    def __init__(self, granularity):
        super().__init__(f"Unknown granularity: {granularity!r}")
        self.granularity = granularity


class QueryFailure(AnalyticsError):
    """The record store could not be queried."""
