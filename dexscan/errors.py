"""Error taxonomy shared by providers, ledger, executor and API.

Every error carries a ``kind`` string that the routing layer reports verbatim
together with the human readable message.
"""


class DexScanError(Exception):
    kind = "Error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self):
        return {"error": self.kind, "message": self.message}


class TransientError(DexScanError):
    """Network level failure; retried by the fetch client, otherwise surfaced."""
    kind = "Transient"


class RateLimited(TransientError):
    kind = "RateLimited"


class NetworkError(TransientError):
    kind = "Network"


class FetchTimeout(TransientError):
    kind = "Timeout"


class UpstreamError(TransientError):
    kind = "Upstream"

    def __init__(self, message: str = "", status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class InsufficientData(DexScanError):
    kind = "InsufficientData"


class NoCredentials(DexScanError):
    kind = "NoCredentials"


class NotFound(DexScanError):
    kind = "NotFound"


class NotOpen(DexScanError):
    kind = "NotOpen"


class PriceUnavailable(DexScanError):
    kind = "PriceUnavailable"


class InsufficientBalance(DexScanError):
    kind = "InsufficientBalance"


class CapacityReached(DexScanError):
    kind = "CapacityReached"


class OrderFailed(DexScanError):
    kind = "OrderFailed"


class InvalidSettings(DexScanError):
    kind = "InvalidSettings"


class ServiceUnavailable(DexScanError):
    kind = "ServiceUnavailable"
