"""
Domain exceptions raised by the service layer.

Routes never translate these by hand; `main.py` registers one handler per
class so every endpoint reports the same status code and body shape.
"""
from __future__ import annotations


class ApolloServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoCursorError(ApolloServiceError):
    """fetch-next was called for a campaign with no cursor and no filters."""

    status_code = 400

    def __init__(self, campaign_id: str) -> None:
        super().__init__(
            "No search cursor found for this campaign; "
            "supply searchParams to start a new search"
        )
        self.campaign_id = campaign_id


class CursorConflictError(ApolloServiceError):
    """Another writer advanced the cursor between our read and our write."""

    status_code = 409


class KeyNotConfiguredError(ApolloServiceError):
    status_code = 400

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} key not configured for this organization")
        self.provider = provider


class KeyServiceError(ApolloServiceError):
    status_code = 500


class RunsServiceError(ApolloServiceError):
    """Any failure talking to the runs-service. Cost tracking is mandatory."""

    status_code = 500


class ApolloAPIError(ApolloServiceError):
    """Failed Apollo call: error status, transport failure or unreadable body."""

    status_code = 502

    def __init__(self, operation: str, upstream_status: int | None, body: str) -> None:
        # No upstream status when the request never got a response
        detail = body[:500] if upstream_status is None else f"{upstream_status} - {body[:500]}"
        super().__init__(f"Apollo {operation} failed: {detail}")
        self.operation = operation
        self.upstream_status = upstream_status
