"""
Bank-Feed Reconciler

Merges provider accounts and transactions into the record store.

CRITICAL rules:
1. Accounts are INSERT-ONLY. A feed account whose derived id already exists
   is left untouched; its anchor balance belongs to the user. New accounts
   start at 0.
2. Transactions are UPSERTED by id. The id embeds the provider's
   transaction id, so re-running a sync over an overlapping window never
   duplicates anything.
3. After the merge, every stored bank-feed transaction dated before the
   import cutoff is PRUNED, whichever connection it came from.
4. Every network call finishes before the first account or transaction
   write. A failed fetch leaves that data exactly as it was.
5. A connection never stays in LINKING or SYNCING after the call that put
   it there returns, raises or is cancelled.

Connection lifecycle:
    UNLINKED -> LINKING -> LINKED <-> SYNCING
    LINKING/SYNCING -> ERROR   (credential rejected, interrupted link,
                                or a stale in-flight state found on re-link)
    ERROR -> LINKING           (manual re-link only)

DESIGN DECISION: Syncs of the same connection are serialised with one
asyncio.Lock per known connection id; different connections sync in
parallel.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Union
from uuid import UUID, uuid4

import structlog
from pydantic import SecretStr

from ledger_engine.audit import AuditLogger, create_correlation_id
from ledger_engine.engine.context import EngineContext
from ledger_engine.models.records import (
    BANK_FEED_PREFIX,
    BankAccount,
    BankAccountType,
    BankFeedConnection,
    BankFeedProviderName,
    ConnectionStatus,
    Transaction,
    TransactionType,
    bank_feed_account_id,
    bank_feed_transaction_id,
)
from ledger_engine.models.results import SyncSummary
from ledger_engine.services.bankfeed.base import (
    BankFeedCredentialError,
    BankFeedError,
    BankFeedProvider,
    ConnectionNotFoundError,
    InvalidConnectionStateError,
    ProviderAccountSet,
)
from ledger_engine.services.storage.interface import (
    Collection,
    DuplicateError,
    RecordStoreInterface,
)


logger = structlog.get_logger("ledger_engine.reconciler")

IMPORTED_CATEGORY = "Imported"

IN_FLIGHT_STATES = frozenset({ConnectionStatus.LINKING, ConnectionStatus.SYNCING})

ALLOWED_TRANSITIONS: dict[ConnectionStatus, frozenset[ConnectionStatus]] = {
    ConnectionStatus.UNLINKED: frozenset({ConnectionStatus.LINKING}),
    ConnectionStatus.LINKING: frozenset({ConnectionStatus.LINKED, ConnectionStatus.ERROR}),
    ConnectionStatus.LINKED: frozenset({ConnectionStatus.SYNCING}),
    ConnectionStatus.SYNCING: frozenset({ConnectionStatus.LINKED, ConnectionStatus.ERROR}),
    ConnectionStatus.ERROR: frozenset({ConnectionStatus.LINKING}),
}


def transition(connection: BankFeedConnection, target: ConnectionStatus, **changes) -> BankFeedConnection:
    """
    Return a copy of the connection in the target state.

    Raises:
        InvalidConnectionStateError: If the lifecycle does not allow the move
    """
    if target not in ALLOWED_TRANSITIONS[connection.status]:
        raise InvalidConnectionStateError(
            f"Connection {connection.connection_id} cannot go from "
            f"{connection.status.value} to {target.value}"
        )
    return connection.model_copy(update={"status": target, **changes})


def parse_amount(raw: str) -> Optional[Decimal]:
    """Signed Decimal, or None if the text is not a finite number."""
    try:
        value = Decimal((raw or "0").strip() or "0")
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def describe_failure(error: BaseException) -> str:
    """Text stored in last_error; cancellations carry no message of their own."""
    if isinstance(error, asyncio.CancelledError):
        return "Interrupted before completion (cancelled or timed out)"
    return str(error) or error.__class__.__name__


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BankFeedReconciler:
    """
    Links bank-feed connections and merges their data into the store.

    Usage:
        reconciler = BankFeedReconciler(store, {BankFeedProviderName.SIMPLEFIN: SimpleFinProvider()})
        connection = await reconciler.link(BankFeedProviderName.SIMPLEFIN, setup_token)
        summary = await reconciler.sync(connection.connection_id)
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        providers: dict[BankFeedProviderName, BankFeedProvider],
        ctx_factory: Optional[Callable[[], EngineContext]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Args:
            store: Record store to merge into
            providers: One provider per supported provider name
            ctx_factory: Builds the context (reference date, cutoff) for each sync
            audit_logger: Audit trail; a local-only logger if omitted
        """
        self._store = store
        self._providers = providers
        self._ctx_factory = ctx_factory or EngineContext.from_settings
        self._audit = audit_logger or AuditLogger()
        self._locks: dict[str, asyncio.Lock] = {}

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    async def list_connections(self) -> list[BankFeedConnection]:
        return await self._store.list_records(Collection.BANK_FEED_CONNECTIONS)

    async def get_connection(self, connection_id: str) -> BankFeedConnection:
        for connection in await self.list_connections():
            if connection.connection_id == connection_id:
                return connection
        # Forget the lock of a connection that no longer exists
        self._locks.pop(connection_id, None)
        raise ConnectionNotFoundError(f"Unknown bank-feed connection: {connection_id}")

    def _lock(self, connection_id: str) -> asyncio.Lock:
        """Lock for a connection id already known to exist (or being created)."""
        lock = self._locks.get(connection_id)
        if lock is None:
            lock = self._locks[connection_id] = asyncio.Lock()
        return lock

    async def _save(self, connection: BankFeedConnection) -> BankFeedConnection:
        await self._store.upsert_records(Collection.BANK_FEED_CONNECTIONS, [connection])
        return connection

    def _provider(self, name: BankFeedProviderName) -> BankFeedProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise BankFeedError(f"No provider configured for {name.value}") from None

    # -------------------------------------------------------------------------
    # Link / re-link
    # -------------------------------------------------------------------------

    async def link(
        self,
        provider: BankFeedProviderName,
        setup_token: str,
        institution_name: Optional[str] = None,
    ) -> BankFeedConnection:
        """
        Create a connection from a setup token.

        Claims the access credential, lists the provider accounts and
        inserts a zero-balance bank account for each.

        Raises:
            BankFeedCredentialError: If the setup token is rejected
            BankFeedProviderError: On any other provider failure
        """
        self._provider(provider)
        connection_id = f"{provider.value}:{uuid4()}"
        existing = {c.connection_id for c in await self.list_connections()}
        if connection_id in existing:
            raise DuplicateError(f"Connection {connection_id} already exists")

        connection = BankFeedConnection(
            connection_id=connection_id,
            provider=provider,
            institution_name=institution_name or "",
        )
        async with self._lock(connection_id):
            return await self._link(connection, setup_token)

    async def relink(self, connection_id: str, setup_token: str) -> BankFeedConnection:
        """
        Re-link a connection in ERROR with a fresh setup token.

        A connection left in LINKING or SYNCING by a process that died
        mid-call is first moved to ERROR, then re-linked.

        Raises:
            ConnectionNotFoundError: If the connection does not exist
            InvalidConnectionStateError: If the connection is healthy
        """
        await self.get_connection(connection_id)
        async with self._lock(connection_id):
            connection = await self.get_connection(connection_id)
            if connection.status in IN_FLIGHT_STATES:
                # Holding the lock: nothing in this process is still working on it
                logger.warning(
                    "bank_feed_stale_state_recovered",
                    connection_id=connection_id,
                    status=connection.status.value,
                )
                connection = await self._save(transition(
                    connection,
                    ConnectionStatus.ERROR,
                    is_active=False,
                    last_error=f"Found stale {connection.status.value} state",
                ))
            return await self._link(connection, setup_token)

    async def _link(self, connection: BankFeedConnection, setup_token: str) -> BankFeedConnection:
        provider = self._provider(connection.provider)
        correlation_id = create_correlation_id()
        ctx = self._ctx_factory()

        connection = await self._save(transition(connection, ConnectionStatus.LINKING))
        await self._audit.log_link_started(connection.connection_id, provider.name.value, correlation_id)

        try:
            credential = await provider.claim_access_credential(setup_token)
            account_set = await provider.fetch_accounts(credential, since=ctx.import_cutoff, until=ctx.as_of)

            institution = connection.institution_name or account_set.institution_name or ""
            new_banks = await self._new_bank_accounts(connection.connection_id, institution, account_set, ctx)
            if new_banks:
                await self._store.upsert_records(Collection.BANKS, new_banks)
        except BaseException as e:
            # Without a stored credential the connection cannot be LINKED
            await self._save(transition(
                connection,
                ConnectionStatus.ERROR,
                is_active=False,
                last_error=describe_failure(e),
            ))
            await self._audit.log_link_failed(
                connection.connection_id, provider.name.value, describe_failure(e), correlation_id
            )
            raise

        connection = await self._save(transition(
            connection,
            ConnectionStatus.LINKED,
            access_credential=SecretStr(credential),
            institution_name=institution,
            is_active=True,
            last_error=None,
        ))
        await self._audit.log_link_completed(
            connection.connection_id, provider.name.value, institution, correlation_id
        )
        logger.info(
            "bank_feed_linked",
            connection_id=connection.connection_id,
            accounts=len(account_set.accounts),
            new_accounts=len(new_banks),
        )
        return connection

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    async def sync(self, connection_id: str) -> SyncSummary:
        """
        Fetch and merge one connection.

        Raises:
            ConnectionNotFoundError: If the connection does not exist
            InvalidConnectionStateError: If it is not LINKED and active
            BankFeedCredentialError: Connection is now ERROR and inactive
            BankFeedProviderError: Connection stays LINKED with last_error set
            asyncio.CancelledError: Connection is back to LINKED with last_error set
        """
        await self.get_connection(connection_id)
        async with self._lock(connection_id):
            connection = await self.get_connection(connection_id)
            if not connection.is_active:
                raise InvalidConnectionStateError(f"Connection {connection_id} is inactive; re-link it")
            provider = self._provider(connection.provider)
            ctx = self._ctx_factory()
            correlation_id = create_correlation_id()

            connection = await self._save(transition(connection, ConnectionStatus.SYNCING))
            await self._audit.log_sync_started(connection_id, ctx.import_cutoff.isoformat(), correlation_id)

            credential = connection.access_credential.get_secret_value() if connection.access_credential else ""
            try:
                account_set = await provider.fetch_accounts(credential, since=ctx.import_cutoff, until=ctx.as_of)
                summary = await self._merge(connection, provider, account_set, ctx, correlation_id)
            except BankFeedCredentialError as e:
                await self._save(transition(
                    connection,
                    ConnectionStatus.ERROR,
                    is_active=False,
                    last_error=str(e),
                ))
                await self._audit.log_credential_rejected(
                    connection_id, provider.name.value, str(e), correlation_id
                )
                raise
            except BaseException as e:
                await self._save(transition(connection, ConnectionStatus.LINKED, last_error=describe_failure(e)))
                await self._audit.log_sync_failed(connection_id, describe_failure(e), correlation_id)
                raise

            await self._save(transition(
                connection,
                ConnectionStatus.LINKED,
                last_synced_at=summary.synced_at,
                last_error=None,
            ))
            await self._audit.log_sync_completed(
                connection_id,
                summary.model_dump(include={"added", "modified", "unchanged", "skipped", "pruned", "new_accounts"}),
                correlation_id,
            )
            return summary

    async def sync_all(self) -> dict[str, Union[SyncSummary, BankFeedError]]:
        """
        Sync every active connection concurrently.

        Failures are returned per connection instead of raised, so one bad
        credential does not hide the other results. An active connection
        that is not LINKED is reported with its InvalidConnectionStateError
        rather than skipped.
        """
        connection_ids = [c.connection_id for c in await self.list_connections() if c.is_active]
        results = await asyncio.gather(
            *(self.sync(connection_id) for connection_id in connection_ids),
            return_exceptions=True,
        )
        outcome: dict[str, Union[SyncSummary, BankFeedError]] = {}
        for connection_id, result in zip(connection_ids, results):
            if isinstance(result, BaseException) and not isinstance(result, BankFeedError):
                raise result
            outcome[connection_id] = result
        return outcome

    # -------------------------------------------------------------------------
    # Merge
    # -------------------------------------------------------------------------

    async def _new_bank_accounts(
        self,
        connection_id: str,
        institution: str,
        account_set: ProviderAccountSet,
        ctx: EngineContext,
    ) -> list[BankAccount]:
        existing = {bank.id for bank in await self._store.list_records(Collection.BANKS)}
        new_banks = []
        for account in account_set.accounts:
            bank_id = bank_feed_account_id(connection_id, account.provider_account_id)
            if bank_id in existing:
                continue
            existing.add(bank_id)
            new_banks.append(BankAccount(
                id=bank_id,
                institution=institution,
                nickname=account.name,
                type=BankAccountType.CHECKING,
                current_balance=Decimal("0"),
                available_balance=Decimal("0"),
                last_updated=account.balance_date or ctx.as_of,
            ))
        return new_banks

    async def _merge(
        self,
        connection: BankFeedConnection,
        provider: BankFeedProvider,
        account_set: ProviderAccountSet,
        ctx: EngineContext,
        correlation_id: UUID,
    ) -> SyncSummary:
        connection_id = connection.connection_id
        new_banks = await self._new_bank_accounts(
            connection_id, connection.institution_name, account_set, ctx
        )
        stored = {tx.id: tx for tx in await self._store.list_records(Collection.TRANSACTIONS)}

        incoming: dict[str, Transaction] = {}
        skipped = 0
        for account in account_set.accounts:
            account_id = bank_feed_account_id(connection_id, account.provider_account_id)
            for ptx in account.transactions:
                if ptx.posted < ctx.import_cutoff:
                    continue
                amount = parse_amount(ptx.amount)
                if amount is None:
                    skipped += 1
                    logger.warning(
                        "bank_feed_amount_malformed",
                        connection_id=connection_id,
                        provider_transaction_id=ptx.provider_transaction_id,
                        raw_amount=ptx.amount,
                    )
                    await self._audit.log_transaction_skipped(
                        connection_id, ptx.provider_transaction_id, ptx.amount, correlation_id
                    )
                    continue
                tx_id = bank_feed_transaction_id(
                    connection_id, account.provider_account_id, ptx.provider_transaction_id
                )
                incoming[tx_id] = Transaction(
                    id=tx_id,
                    date=ptx.posted,
                    amount=abs(amount),
                    type=TransactionType.EXPENSE if amount < 0 else TransactionType.INCOME,
                    category=IMPORTED_CATEGORY,
                    merchant=ptx.description or provider.default_merchant,
                    account=account_id,
                    note=provider.import_note,
                )

        added = modified = unchanged = 0
        writes = []
        for tx_id, tx in incoming.items():
            previous = stored.get(tx_id)
            if previous is None:
                added += 1
                writes.append(tx)
            elif previous.model_dump() != tx.model_dump():
                modified += 1
                writes.append(tx)
            else:
                unchanged += 1

        # The reconciler owns the bank-feed id namespace across all connections.
        prune_ids = [
            tx.id for tx in stored.values()
            if tx.id.startswith(BANK_FEED_PREFIX) and tx.date < ctx.import_cutoff
        ]

        if new_banks:
            await self._store.upsert_records(Collection.BANKS, new_banks)
        if writes:
            await self._store.upsert_records(Collection.TRANSACTIONS, writes)
        pruned = 0
        if prune_ids:
            pruned = await self._store.delete_records(Collection.TRANSACTIONS, prune_ids)
            await self._audit.log_transactions_pruned(pruned, ctx.import_cutoff.isoformat(), correlation_id)

        summary = SyncSummary(
            connection_id=connection_id,
            added=added,
            modified=modified,
            unchanged=unchanged,
            skipped=skipped,
            pruned=pruned,
            new_accounts=len(new_banks),
            synced_at=_now(),
        )
        logger.info("bank_feed_synced", **summary.model_dump(mode="json"))
        return summary
