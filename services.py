from typing import Iterable, List, Optional
import structlog

from models import (
    AccountSummary,
    FUNDING_TYPES,
    ProcessingSummary,
    TransactionRecord,
    TransactionRow,
    TransactionType,
)
from repositories import AccountRepository, TransactionRepository

logger = structlog.get_logger()


class TransactionService:
    """Applies transaction rows to the ledger, tracking disputes per tx id.

    Every inapplicable row is ignored without raising: a missing or
    non-positive amount, a dispute-family row naming an unknown tx or another
    client, a transition from the wrong dispute state, or anything against a
    locked account.
    """

    def __init__(self, account_repo: AccountRepository, transaction_repo: TransactionRepository):
        self.account_repo = account_repo
        self.transaction_repo = transaction_repo

    def process_transaction(self, row: TransactionRow) -> bool:
        """Apply a single row. Returns True if any balance moved."""
        self.account_repo.get_or_create(row.client_id)

        if row.tx_type == TransactionType.deposit:
            applied = self._process_deposit(row)
        elif row.tx_type == TransactionType.withdrawal:
            applied = self._process_withdrawal(row)
        elif row.tx_type == TransactionType.dispute:
            applied = self._process_dispute(row)
        elif row.tx_type == TransactionType.resolve:
            applied = self._process_resolve(row)
        else:
            applied = self._process_chargeback(row)

        if not applied:
            logger.debug(
                "Transaction ignored",
                type=row.tx_type.value,
                client_id=row.client_id,
                tx_id=row.tx_id,
            )
        return applied

    def process_transactions(self, rows: Iterable[TransactionRow]) -> ProcessingSummary:
        """Apply rows strictly in arrival order."""
        summary = ProcessingSummary()

        for row in rows:
            summary.rows_processed += 1
            if self.process_transaction(row):
                summary.rows_applied += 1
            else:
                summary.rows_ignored += 1

        summary.accounts_count = self.account_repo.get_accounts_count()
        summary.transactions_count = self.transaction_repo.get_transactions_count()
        return summary

    def get_account_summaries(self) -> List[AccountSummary]:
        return [AccountSummary.from_account(account) for account in self.account_repo.snapshot()]

    def _process_deposit(self, row: TransactionRow) -> bool:
        """Process deposit transaction."""
        if not self._store_funding_record(row):
            return False
        applied = self.account_repo.deposit(row.client_id, row.amount)

        logger.debug(
            "Deposit processed",
            client_id=row.client_id,
            tx_id=row.tx_id,
            amount=str(row.amount),
            applied=applied
        )

        return applied

    def _process_withdrawal(self, row: TransactionRow) -> bool:
        """Process withdrawal transaction."""
        # Recorded even when funds are short, so it can still be disputed
        if not self._store_funding_record(row):
            return False
        applied = self.account_repo.withdraw(row.client_id, row.amount)

        logger.debug(
            "Withdrawal processed",
            client_id=row.client_id,
            tx_id=row.tx_id,
            amount=str(row.amount),
            applied=applied
        )

        return applied

    def _process_dispute(self, row: TransactionRow) -> bool:
        """Open a dispute on a recorded deposit or withdrawal."""
        record = self._find_record(row)
        if record is None or record.disputed or record.tx_type not in FUNDING_TYPES:
            return False

        if not self.account_repo.hold(row.client_id, record.amount):
            return False
        record.disputed = True
        self.transaction_repo.store(record)

        logger.debug(
            "Dispute opened",
            client_id=row.client_id,
            tx_id=row.tx_id,
            held=str(record.amount)
        )

        return True

    def _process_resolve(self, row: TransactionRow) -> bool:
        """Close an open dispute, releasing the held funds."""
        record = self._find_record(row)
        if record is None or not record.disputed:
            return False

        if not self.account_repo.release(row.client_id, record.amount):
            return False
        record.disputed = False
        self.transaction_repo.store(record)

        logger.debug(
            "Dispute resolved",
            client_id=row.client_id,
            tx_id=row.tx_id,
            released=str(record.amount)
        )

        return True

    def _process_chargeback(self, row: TransactionRow) -> bool:
        """Reverse a disputed transaction and lock the account."""
        record = self._find_record(row)
        if record is None or not record.disputed:
            return False

        # The record stays disputed: the funds are gone and the account is frozen
        if not self.account_repo.chargeback(row.client_id, record.amount):
            return False

        logger.debug(
            "Chargeback applied",
            client_id=row.client_id,
            tx_id=row.tx_id,
            charged_back=str(record.amount)
        )

        return True

    def _store_funding_record(self, row: TransactionRow) -> bool:
        """Record a deposit or withdrawal with a positive amount."""
        if row.amount is None or row.amount <= 0:
            return False

        self.transaction_repo.store(
            TransactionRecord(
                tx_id=row.tx_id,
                tx_type=row.tx_type,
                client_id=row.client_id,
                amount=row.amount,
            )
        )
        return True

    def _find_record(self, row: TransactionRow) -> Optional[TransactionRecord]:
        """Look up the record a dispute-family row refers to."""
        record = self.transaction_repo.get(row.tx_id)
        if record is None:
            return None

        if record.client_id != row.client_id:
            logger.debug(
                "Client mismatch on referenced transaction",
                tx_id=row.tx_id,
                client_id=row.client_id,
                owner_client_id=record.client_id
            )
            return None

        return record


# Factory function for dependency injection
def get_transaction_service(
    account_repo: AccountRepository,
    transaction_repo: TransactionRepository
) -> TransactionService:
    return TransactionService(account_repo, transaction_repo)
