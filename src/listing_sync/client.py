"""HTTP client for the listing backend's CRUD endpoints."""

from typing import Any, Final
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from listing_sync.config import Settings
from listing_sync.logging import get_logger
from listing_sync.models import ListingRecord, Review

logger = get_logger(__name__)

# Keys some backend versions wrap collection responses in
_COLLECTION_KEYS: Final = ("data", "houses", "listings", "reviews", "items")


class BackendError(Exception):
    """The backend answered with a non-success status."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"backend returned {status_code} for {url}")
        self.status_code = status_code
        self.url = url


def _unwrap_collection(payload: Any) -> list[Any]:
    """Return the list of items in a collection response."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in _COLLECTION_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    raise ValueError(f"unrecognized collection payload: {type(payload).__name__}")


class BackendClient:
    """Thin async wrapper over the backend endpoints the engine consumes.

    Every method raises ``BackendError`` for non-2xx responses,
    ``httpx.HTTPError`` for transport failures and ``ValueError`` for bodies
    that are not JSON. Callers decide how much of a failure to absorb.
    """

    def __init__(self, settings: Settings, *, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._settings.request_timeout_seconds,
                follow_redirects=True,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def _request_json(self, method: str, url: str) -> Any:
        client = await self._get_client()
        response = await client.request(method, url)
        if not response.is_success:
            raise BackendError(response.status_code, url)
        if not response.content:
            return None
        return response.json()

    async def fetch_listings(self) -> list[ListingRecord]:
        """Fetch the full current listing snapshot.

        Items that fail validation (e.g. no id) are skipped and logged; the
        rest of the snapshot is still returned.
        """
        url = self._settings.endpoint(self._settings.listings_path)
        items = _unwrap_collection(await self._request_json("GET", url))
        listings: list[ListingRecord] = []
        for item in items:
            try:
                listings.append(ListingRecord.model_validate(item))
            except ValidationError as e:
                logger.warning("listing_skipped_invalid", errors=e.error_count())
        logger.debug("listings_fetched", count=len(listings))
        return listings

    async def fetch_reviews(self) -> list[Review]:
        """Fetch every review (used for review counts and the review series)."""
        url = self._settings.endpoint(self._settings.reviews_path)
        items = _unwrap_collection(await self._request_json("GET", url))
        reviews: list[Review] = []
        for item in items:
            try:
                reviews.append(Review.model_validate(item))
            except ValidationError as e:
                logger.warning("review_skipped_invalid", errors=e.error_count())
        return reviews

    async def fetch_listing_views(self, listing_id: str) -> Any:
        """Fetch the raw view-count payload for a listing."""
        url = self._settings.endpoint(
            self._settings.listing_views_path, listing_id=quote(listing_id, safe="")
        )
        return await self._request_json("GET", url)

    async def fetch_landlord_views(self, landlord_id: str) -> Any:
        """Fetch the raw view-count payload for a landlord."""
        url = self._settings.endpoint(
            self._settings.landlord_views_path, landlord_id=quote(landlord_id, safe="")
        )
        return await self._request_json("GET", url)

    async def delete_listing(self, listing_id: str) -> None:
        """Delete a listing on the backend. Raises on any failure."""
        url = self._settings.endpoint(
            self._settings.delete_listing_path, listing_id=quote(listing_id, safe="")
        )
        await self._request_json("DELETE", url)
        logger.info("listing_deleted_on_backend", listing_id=listing_id)

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
