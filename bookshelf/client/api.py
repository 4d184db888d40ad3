"""
Bookshelf HTTP Client

Async client for the Bookshelf API built on httpx.

Usage:
    async with BookshelfClient("https://bookshelf.example.com/api/v1") as client:
        await client.login("reader@example.com", "SecurePass123")

        book = await client.get_book(book_id)
        state = RatingDisplayState.from_book(book)

        try:
            await client.rate_book(state, 4)
        except ClientError as e:
            show_alert(e.message)   # state already rolled back

Errors
======
Every failed request raises ClientError with a message fit for showing to
a user, mapped from the HTTP status. Network failures map to a generic
"could not reach the server" message.
"""

import logging
from typing import Any

import httpx

from bookshelf.client.reconciler import RatingDisplayState

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    400: "The request could not be processed.",
    401: "Please sign in to continue.",
    403: "You don't have permission to perform this action.",
    404: "The requested item was not found.",
    409: "This item was changed at the same time. Please try again.",
    422: "Please check your input and try again.",
    429: "Too many requests. Please wait a moment and try again.",
}
SERVER_ERROR_MESSAGE = "The service is temporarily unavailable. Please try again later."
NETWORK_ERROR_MESSAGE = "Could not reach the server. Check your connection and try again."
UNKNOWN_ERROR_MESSAGE = "An unexpected error occurred."


class ClientError(Exception):
    """
    A failed API call.

    Attributes:
        message: User-readable message
        status_code: HTTP status, None for network failures
        detail: The server's "detail" field, when it sent one
    """

    def __init__(self, message: str, status_code: int | None = None, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


def message_for_status(status_code: int) -> str:
    if status_code in STATUS_MESSAGES:
        return STATUS_MESSAGES[status_code]
    if status_code >= 500:
        return SERVER_ERROR_MESSAGE
    return UNKNOWN_ERROR_MESSAGE


def error_from_response(response: httpx.Response) -> ClientError:
    """Build a ClientError from an error response."""
    detail = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")

    return ClientError(
        message_for_status(response.status_code),
        status_code=response.status_code,
        detail=detail,
    )


class BookshelfClient:
    """
    Client for the Bookshelf API.

    Args:
        base_url: API root including the version prefix, e.g. ".../api/v1"
        token: Optional access token
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )
        self.token = token

    async def __aenter__(self) -> "BookshelfClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ClientError(NETWORK_ERROR_MESSAGE) from e

        if response.is_error:
            error = error_from_response(response)
            logger.warning(f"{method} {path} returned {response.status_code}: {error.detail}")
            raise error
        return response

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Log in and keep the access token for later requests."""
        response = await self._request(
            "POST",
            "/auth/login",
            data={"username": email, "password": password},
        )
        tokens = response.json()
        self.token = tokens["access_token"]
        return tokens

    # -------------------------------------------------------------------------
    # Books and Ratings
    # -------------------------------------------------------------------------

    async def get_book(self, book_id: str) -> dict[str, Any]:
        response = await self._request("GET", f"/books/{book_id}")
        return response.json()

    async def get_rating_state(self, book_id: str) -> RatingDisplayState:
        return RatingDisplayState.from_book(await self.get_book(book_id))

    async def rate_book(self, state: RatingDisplayState, value: int) -> RatingDisplayState:
        """
        Rate a book, showing the expected summary right away.

        On success the state is COMMITTED with provisional values. On
        failure the authoritative book is re-fetched, the state is ROLLED_BACK
        to it (or to the pre-rating values if the re-fetch fails too) and
        the original ClientError is raised.
        """
        state.begin(value)
        try:
            await self._request(
                "PUT",
                f"/books/{state.book_id}/rating",
                json={"value": value},
            )
        except ClientError as error:
            try:
                authoritative = await self.get_book(state.book_id)
            except ClientError:
                authoritative = None
            state.rollback(authoritative)
            raise error

        state.commit()
        return state

    # -------------------------------------------------------------------------
    # Saved Books
    # -------------------------------------------------------------------------

    async def save_book(self, book_id: str) -> dict[str, Any]:
        response = await self._request("PUT", f"/users/me/saved-books/{book_id}")
        return response.json()

    async def unsave_book(self, book_id: str) -> None:
        await self._request("DELETE", f"/users/me/saved-books/{book_id}")

    async def list_saved_books(
        self,
        q: str | None = None,
        page: int = 1,
        per_page: int = 10,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"page": page, "per_page": per_page}
        if q:
            params["q"] = q
        response = await self._request("GET", "/users/me/saved-books", params=params)
        return response.json()
