class LLMUpstreamError(RuntimeError):
    """Raised when LLM provider fails (timeouts, network errors, service unavailable)."""
    pass


class LLMContractError(RuntimeError):
    """Raised when LLM adapter violates contract (bad format or missing data)."""
    pass


class CalendarError(RuntimeError):
    """Raised when the calendar provider rejects a request or returns an unusable payload."""
    pass


class StoreError(RuntimeError):
    """Raised when the row store rejects a read or write."""
    pass


class LeadNotFoundError(StoreError):
    pass
