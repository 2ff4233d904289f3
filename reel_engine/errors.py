"""
Error taxonomy for the Reel Engine.

Every error carries a stable machine-readable ``code`` and the HTTP status the
API layer should answer with.
"""

from typing import Optional


class ReelEngineError(Exception):
    """Base exception for all engine errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ValidationError(ReelEngineError):
    """Raised when request parameters are malformed or out of range."""

    code = "VALIDATION_ERROR"
    status_code = 400


class FetchError(ReelEngineError):
    """Raised when a source image, video or audio file cannot be retrieved."""

    code = "FETCH_FAILED"

    def __init__(self, reference: str, message: str, not_found: bool = False):
        self.reference = reference
        self.not_found = not_found
        self.status_code = 404 if not_found else 400
        super().__init__(message)


class RasterizationError(ReelEngineError):
    """Raised when caption markup cannot be turned into a bitmap."""

    code = "RASTERIZATION_FAILED"


class GraphConstructionError(ReelEngineError):
    """Raised when a synthesized pipeline graph would violate its invariants."""

    code = "GRAPH_CONSTRUCTION_FAILED"


class ExecutionError(ReelEngineError):
    """Raised when the encoder process fails or times out."""

    code = "ENCODING_FAILED"

    def __init__(
        self,
        message: str,
        diagnostics: str = "",
        returncode: Optional[int] = None,
        timed_out: bool = False,
    ):
        self.diagnostics = diagnostics
        self.returncode = returncode
        self.timed_out = timed_out
        super().__init__(message, code="ENCODING_TIMEOUT" if timed_out else None)
