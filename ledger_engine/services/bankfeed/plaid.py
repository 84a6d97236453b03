"""
Plaid Provider

Flow:
1. The host app runs Plaid Link and receives a public token.
2. POST /item/public_token/exchange swaps it for an access token, which is
   the long-lived credential.
3. POST /accounts/get lists accounts; POST /transactions/get pages through
   transactions between two dates.

CRITICAL: Plaid reports outflows as POSITIVE amounts. The sign is flipped
here so every provider hands the reconciler positive = money in.

Plaid returns most errors as HTTP 400 with an error_code in the body; the
codes below mean the item has to be re-linked.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from ledger_engine.config import get_settings
from ledger_engine.models.records import BankFeedProviderName
from ledger_engine.services.bankfeed.base import (
    BankFeedCredentialError,
    BankFeedProviderError,
    HttpBankFeedProvider,
    ProviderAccount,
    ProviderAccountSet,
    ProviderTransaction,
)


CREDENTIAL_ERROR_CODES = frozenset({
    "ITEM_LOGIN_REQUIRED",
    "INVALID_ACCESS_TOKEN",
    "INVALID_PUBLIC_TOKEN",
    "ITEM_NOT_FOUND",
    "ACCESS_NOT_GRANTED",
})

PAGE_SIZE = 500


def flip_sign(raw: Any) -> str:
    """Plaid amount (positive = outflow) to positive = inflow text."""
    text = str(raw)
    try:
        return str(-Decimal(text))
    except InvalidOperation:
        # left unparsed; the reconciler skips it
        return text


class PlaidProvider(HttpBankFeedProvider):
    """Plaid API over httpx."""

    name = BankFeedProviderName.PLAID
    import_note = "Imported from Plaid"
    default_merchant = "Plaid Import"

    def __init__(
        self,
        *args,
        client_id: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        if client_id is None or secret is None or base_url is None:
            plaid = get_settings().plaid
            client_id = client_id or plaid.client_id
            secret = secret or plaid.secret
            base_url = base_url or plaid.base_url
        self._client_id = client_id
        self._secret = secret
        self._base_url = base_url.rstrip("/")

    async def _api_post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Make an authenticated POST request to the Plaid API."""
        body = {
            "client_id": self._client_id,
            "secret": self._secret,
            **payload,
        }
        response = await self._send("POST", f"{self._base_url}/{endpoint}", json=body)
        if response.status_code >= 400:
            self._raise_plaid_error(response, endpoint)
        data = self._json(response, f"Plaid {endpoint}")
        if not isinstance(data, dict):
            raise BankFeedProviderError(
                self.name.value,
                f"Plaid {endpoint} returned {type(data).__name__}, expected an object",
                response.status_code,
            )
        return data

    def _raise_plaid_error(self, response: httpx.Response, endpoint: str) -> None:
        try:
            error = response.json()
        except ValueError:
            error = {}
        if not isinstance(error, dict):
            error = {}
        error_code = error.get("error_code", "UNKNOWN")
        error_message = error.get("error_message", response.text)
        message = f"Plaid {endpoint} error [{error_code}]: {error_message}"
        if error_code in CREDENTIAL_ERROR_CODES or response.status_code in self.credential_statuses:
            raise BankFeedCredentialError(self.name.value, message, response.status_code)
        raise BankFeedProviderError(self.name.value, message, response.status_code)

    async def claim_access_credential(self, setup_token: str) -> str:
        if not (setup_token or "").strip():
            raise BankFeedCredentialError(self.name.value, "Plaid public token is empty.")
        data = await self._api_post("item/public_token/exchange", {"public_token": setup_token.strip()})
        access_token = data.get("access_token")
        if not access_token:
            raise BankFeedProviderError(self.name.value, "Plaid exchange returned no access token.")
        return access_token

    async def fetch_accounts(
        self,
        credential: str,
        since: date,
        until: Optional[date] = None,
    ) -> ProviderAccountSet:
        """
        All accounts plus transactions in [since, until].

        Plaid needs an explicit end date; without `until` only `since`
        itself is fetched.
        """
        end = until or since
        accounts_data = await self._api_post("accounts/get", {"access_token": credential})

        raw_transactions: list[dict] = []
        offset = 0
        while True:
            page = await self._api_post("transactions/get", {
                "access_token": credential,
                "start_date": since.isoformat(),
                "end_date": end.isoformat(),
                "options": {"count": PAGE_SIZE, "offset": offset},
            })
            batch = page.get("transactions") or []
            raw_transactions.extend(batch)
            offset += len(batch)
            if not batch or offset >= int(page.get("total_transactions") or 0):
                break

        try:
            return self._normalise(accounts_data, raw_transactions)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise BankFeedProviderError(
                self.name.value,
                f"Plaid response was malformed: {e}",
            ) from e

    def _normalise(self, accounts_data: dict, raw_transactions: list[dict]) -> ProviderAccountSet:
        by_account: dict[str, list[ProviderTransaction]] = {}
        for tx in raw_transactions:
            by_account.setdefault(str(tx["account_id"]), []).append(ProviderTransaction(
                provider_transaction_id=str(tx["transaction_id"]),
                posted=date.fromisoformat(tx["date"]),
                amount=flip_sign(tx.get("amount", "0")),
                description=tx.get("merchant_name") or tx.get("name") or "",
                pending=bool(tx.get("pending", False)),
            ))

        accounts = []
        for raw in accounts_data.get("accounts") or []:
            account_id = str(raw["account_id"])
            accounts.append(ProviderAccount(
                provider_account_id=account_id,
                name=raw.get("name") or raw.get("official_name") or "",
                transactions=by_account.get(account_id, []),
            ))

        item = accounts_data.get("item") or {}
        return ProviderAccountSet(
            institution_name=item.get("institution_name"),
            accounts=accounts,
        )
