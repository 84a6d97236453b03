"""
Bank-Feed Services Package

Provider clients (SimpleFIN, Plaid) that normalise bank data, and the
reconciler that merges it into the record store.
"""

from ledger_engine.services.bankfeed.base import (
    BankFeedCredentialError,
    BankFeedError,
    BankFeedProvider,
    BankFeedProviderError,
    ConnectionNotFoundError,
    HttpBankFeedProvider,
    InvalidConnectionStateError,
    ProviderAccount,
    ProviderAccountSet,
    ProviderTransaction,
)
from ledger_engine.services.bankfeed.plaid import PlaidProvider, flip_sign
from ledger_engine.services.bankfeed.reconciler import (
    ALLOWED_TRANSITIONS,
    BankFeedReconciler,
    parse_amount,
    transition,
)
from ledger_engine.services.bankfeed.simplefin import (
    SimpleFinProvider,
    decode_setup_token,
    parse_access_url,
)

__all__ = [
    # Exceptions
    "BankFeedCredentialError",
    "BankFeedError",
    "BankFeedProviderError",
    "ConnectionNotFoundError",
    "InvalidConnectionStateError",
    # Normalised data
    "ProviderAccount",
    "ProviderAccountSet",
    "ProviderTransaction",
    # Providers
    "BankFeedProvider",
    "HttpBankFeedProvider",
    "PlaidProvider",
    "SimpleFinProvider",
    "decode_setup_token",
    "flip_sign",
    "parse_access_url",
    # Reconciler
    "ALLOWED_TRANSITIONS",
    "BankFeedReconciler",
    "parse_amount",
    "transition",
]
