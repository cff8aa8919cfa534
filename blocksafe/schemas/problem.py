"""Problem-details response body (RFC 9457) returned by the API on failure."""

from __future__ import annotations

from pydantic import BaseModel, Field

PROBLEM_MEDIA_TYPE = "application/problem+json"


class ProblemDetail(BaseModel):
    """Error body for every non-2xx response of the sanitize endpoint.

    Attributes:
        type: URI reference identifying the problem type.
        title: Short summary of the problem.
        status: HTTP status code.
        detail: Explanation specific to this occurrence.
        code: Processing error code when the input was rejected by an
            engine (e.g. ``"TruncatedFile"``).
    """

    type: str = "about:blank"
    title: str
    status: int = Field(ge=400, le=599)
    detail: str
    code: str | None = None
