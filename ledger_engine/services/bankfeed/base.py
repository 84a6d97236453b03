"""
Bank-Feed Provider Interface

DESIGN DECISION: Providers only talk HTTP and normalise. They return
provider-shaped accounts and transactions with a single sign convention
(positive = money in) and leave every store decision to the reconciler.

Amounts travel as the provider's raw text so that one malformed amount can
be skipped by the reconciler without failing the whole batch.

Retry policy: only transport failures where the request never reached the
provider (connect errors, connect timeouts) are retried, with tenacity.
HTTP error statuses are surfaced immediately; a rejected credential is
never retried.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger_engine.config import get_settings
from ledger_engine.models.records import BankFeedProviderName


logger = structlog.get_logger("ledger_engine.bankfeed")


# =============================================================================
# EXCEPTIONS
# =============================================================================

class BankFeedError(Exception):
    """Base exception for bank-feed operations."""
    pass


class BankFeedProviderError(BankFeedError):
    """The provider failed or returned something unusable."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class BankFeedCredentialError(BankFeedProviderError):
    """
    The setup token or access credential was rejected.

    Fatal for this sync; the user has to re-link.
    """
    pass


class InvalidConnectionStateError(BankFeedError):
    """Requested a state transition the connection lifecycle does not allow."""
    pass


class ConnectionNotFoundError(BankFeedError):
    """No bank-feed connection with that id."""
    pass


# =============================================================================
# NORMALISED PROVIDER DATA
# =============================================================================

class ProviderTransaction(BaseModel):
    provider_transaction_id: str = Field(..., min_length=1)
    posted: date
    amount: str = Field(
        ...,
        description="Signed amount as sent by the provider, positive = money in"
    )
    description: str = ""
    pending: bool = False


class ProviderAccount(BaseModel):
    provider_account_id: str = Field(..., min_length=1)
    name: str = ""
    balance_date: Optional[date] = None
    transactions: list[ProviderTransaction] = Field(default_factory=list)


class ProviderAccountSet(BaseModel):
    institution_name: Optional[str] = None
    accounts: list[ProviderAccount] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# =============================================================================
# PROVIDER BASE
# =============================================================================

class BankFeedProvider(ABC):
    """
    A bank-feed backend.

    Subclasses set `name` plus the provenance text the reconciler stamps on
    imported transactions.
    """

    name: BankFeedProviderName
    import_note: str = "Imported from bank feed"
    default_merchant: str = "Bank Feed Import"

    @abstractmethod
    async def claim_access_credential(self, setup_token: str) -> str:
        """
        Exchange a one-time setup token for a long-lived access credential.

        Raises:
            BankFeedCredentialError: If the token is malformed, expired or used
            BankFeedProviderError: On any other provider failure
        """
        pass

    @abstractmethod
    async def fetch_accounts(
        self,
        credential: str,
        since: date,
        until: Optional[date] = None,
    ) -> ProviderAccountSet:
        """
        Fetch accounts and their transactions posted on or after `since`.

        Raises:
            BankFeedCredentialError: If the credential was revoked or expired
            BankFeedProviderError: On any other provider failure
        """
        pass

    async def aclose(self) -> None:
        pass


class HttpBankFeedProvider(BankFeedProvider):
    """
    Shared httpx plumbing: one AsyncClient, an explicit timeout, connect
    retries, and status-code classification.
    """

    # Statuses that mean the credential itself is no good
    credential_statuses = frozenset({401, 403})

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        max_connect_attempts: Optional[int] = None,
        retry_wait: Any = None,
    ):
        """
        Args:
            client: Pre-built client (tests pass one with a MockTransport)
            timeout: Per-request timeout in seconds; defaults from settings
            max_connect_attempts: Attempts for connect failures; defaults from settings
            retry_wait: tenacity wait strategy between connect attempts
        """
        feed_settings = get_settings().bank_feed
        self._timeout = timeout or feed_settings.request_timeout_seconds
        self._max_attempts = max_connect_attempts or feed_settings.max_connect_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send one request, retrying only if it never reached the provider.

        Raises:
            BankFeedProviderError: On transport failure after all attempts
        """
        client = self._get_client()
        kwargs.setdefault("timeout", self._timeout)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=self._retry_wait,
                retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
                reraise=True,
            ):
                with attempt:
                    return await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning(
                "bank_feed_transport_failed",
                provider=self.name.value,
                error=str(e),
            )
            raise BankFeedProviderError(
                self.name.value,
                f"{self.name.value} request failed: {e.__class__.__name__}: {e}",
            ) from e

    def _raise_for_status(self, response: httpx.Response, context: str) -> None:
        if response.status_code < 400:
            return
        message = f"{context} error {response.status_code}: {response.text}"
        if response.status_code in self.credential_statuses:
            raise BankFeedCredentialError(self.name.value, message, response.status_code)
        raise BankFeedProviderError(self.name.value, message, response.status_code)

    def _json(self, response: httpx.Response, context: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise BankFeedProviderError(
                self.name.value,
                f"{context} returned invalid JSON",
                response.status_code,
            ) from e
