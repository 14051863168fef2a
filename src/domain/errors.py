"""Domain Exceptions

Raised at the collaborator and persistence seams; use cases translate
them into Result errors at their boundary.
"""


class ConfigurationError(Exception):
    """Required configuration is missing or invalid (fatal at startup)"""


class FetchError(Exception):
    """Upstream flight source is unreachable or returned no record"""

    def __init__(self, flight_id: str, message: str):
        super().__init__(f"Failed to fetch flight {flight_id}: {message}")
        self.flight_id = flight_id


class ComputeEngineError(Exception):
    """Compute engine call failed without a structured result"""


class InvoiceWriteError(Exception):
    """Persisting an invoice or invoice error row failed"""


class InvalidStatusTransitionError(Exception):
    """Requested invoice status change is not an edge of the status graph"""

    def __init__(self, current, target):
        super().__init__(
            f"Invalid invoice status transition: {current.value} -> {target.value}"
        )
        self.current = current
        self.target = target


class ConsolidatedInvoiceNotFoundError(Exception):
    """Referenced consolidated invoice does not exist"""
