"""Error taxonomy for the payment relay.

Only the request-aborting errors are exceptions that reach the client.
Delivery exhaustion is reported through ``DeliveryResult.success`` and a
failed ledger write is logged as a ``PersistenceWarning``.
"""

class RelayError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class ValidationError(RelayError):
    status_code = 400

class UpstreamLookupError(RelayError):
    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status

class ConfigError(RelayError):
    status_code = 500

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []

class PersistenceWarning(RuntimeWarning):
    pass
