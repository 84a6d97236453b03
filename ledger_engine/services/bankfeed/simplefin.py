"""
SimpleFIN Bridge Provider

Flow:
1. The user pastes a setup token: base64 (often URL-safe, often unpadded)
   of a one-time https claim URL.
2. POSTing to the claim URL returns the access URL, which embeds basic-auth
   credentials. That access URL is the long-lived credential.
3. GET {access_url}/accounts?start-date=<unix> returns accounts with their
   transactions. Amounts are strings, positive = money in.

A 403 on claim means the token expired or was already used.
"""

import base64
import binascii
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional
from urllib.parse import unquote, urlsplit, urlunsplit

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


def _unix(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp())


def _utc_date(timestamp: Any) -> Optional[date]:
    if not timestamp:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).date()


def decode_setup_token(raw: str) -> str:
    """
    Decode a setup token into its claim URL.

    Accepts a bare https URL, multi-line pastes, URL-safe base64 and
    missing padding.

    Raises:
        BankFeedCredentialError: If the token is empty or undecodable
    """
    provider = BankFeedProviderName.SIMPLEFIN.value
    trimmed = (raw or "").strip()
    if not trimmed:
        raise BankFeedCredentialError(provider, "SimpleFIN setup token is empty.")
    if trimmed.startswith("https://"):
        return trimmed

    compact = re.sub(r"\s+", "", trimmed).replace("-", "+").replace("_", "/")
    compact += "=" * (-len(compact) % 4)
    try:
        claim_url = base64.b64decode(compact, validate=True).decode("utf-8").strip()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise BankFeedCredentialError(
            provider,
            "SimpleFIN setup token could not be decoded. Copy a fresh token from the bridge.",
        ) from e
    if not claim_url.startswith("https://"):
        raise BankFeedCredentialError(
            provider,
            "SimpleFIN setup token is invalid. It should decode to an https claim URL.",
        )
    return claim_url


def parse_access_url(access_url: str) -> tuple[str, tuple[str, str]]:
    """
    Split an access URL into (base URL without credentials, basic-auth pair).

    Raises:
        BankFeedCredentialError: If the URL is not https or has no credentials
    """
    provider = BankFeedProviderName.SIMPLEFIN.value
    parts = urlsplit(access_url)
    if parts.scheme != "https":
        raise BankFeedCredentialError(provider, "SimpleFIN access URL must be HTTPS.")
    username = unquote(parts.username or "")
    password = unquote(parts.password or "")
    if not username or not password:
        raise BankFeedCredentialError(provider, "SimpleFIN access URL is missing credentials.")
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    base_url = urlunsplit((parts.scheme, netloc, parts.path, "", "")).rstrip("/")
    return base_url, (username, password)


class SimpleFinProvider(HttpBankFeedProvider):
    """SimpleFIN bridge over httpx."""

    name = BankFeedProviderName.SIMPLEFIN
    import_note = "Imported from SimpleFIN bridge"
    default_merchant = "SimpleFIN Import"

    def __init__(self, *args, default_institution_name: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._default_institution = (
            default_institution_name or get_settings().simplefin.default_institution_name
        )

    async def claim_access_credential(self, setup_token: str) -> str:
        claim_url = decode_setup_token(setup_token)
        response = await self._send("POST", claim_url)
        if response.status_code == 403:
            raise BankFeedCredentialError(
                self.name.value,
                "SimpleFIN setup token expired or was already used. Generate a new one.",
                403,
            )
        self._raise_for_status(response, "SimpleFIN claim")

        access_url = response.text.strip()
        if not access_url.startswith("https://"):
            raise BankFeedProviderError(self.name.value, "SimpleFIN returned an invalid access URL.")
        return access_url

    async def fetch_accounts(
        self,
        credential: str,
        since: date,
        until: Optional[date] = None,
    ) -> ProviderAccountSet:
        base_url, auth = parse_access_url(credential)
        start = _unix(since)
        params = {"start-date": str(start)}
        if until is not None:
            # end-date is exclusive
            params["end-date"] = str(_unix(until + timedelta(days=1)))

        response = await self._send("GET", f"{base_url}/accounts", params=params, auth=auth)
        self._raise_for_status(response, "SimpleFIN accounts")
        payload = self._json(response, "SimpleFIN accounts")

        try:
            return self._normalise(payload, start)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise BankFeedProviderError(
                self.name.value,
                f"SimpleFIN accounts response was malformed: {e}",
            ) from e

    def _normalise(self, payload: dict, start: int) -> ProviderAccountSet:
        raw_accounts = payload.get("accounts") or []
        institution = None
        if raw_accounts:
            org = raw_accounts[0].get("org") or {}
            institution = org.get("name") or org.get("domain")

        accounts = []
        for raw in raw_accounts:
            transactions = []
            for tx in raw.get("transactions") or []:
                posted = int(tx.get("posted") or 0)
                if posted < start:
                    continue
                transactions.append(ProviderTransaction(
                    provider_transaction_id=str(tx["id"]),
                    posted=_utc_date(posted),
                    amount=str(tx.get("amount") or "0"),
                    description=tx.get("description") or "",
                    pending=bool(tx.get("pending", False)),
                ))
            accounts.append(ProviderAccount(
                provider_account_id=str(raw["id"]),
                name=raw.get("name") or "",
                balance_date=_utc_date(raw.get("balance-date")),
                transactions=transactions,
            ))

        return ProviderAccountSet(
            institution_name=institution or self._default_institution,
            accounts=accounts,
            errors=[str(error) for error in payload.get("errors") or []],
        )
