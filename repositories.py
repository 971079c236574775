from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from decimal import Decimal
from models import Account, TransactionRecord


class AccountRepository(ABC):
    """Per-client balance state.

    Mutators never raise. They return True when funds moved and False when the
    request was ignored, which is the normal outcome for a locked account or a
    withdrawal without enough available funds.
    """

    @abstractmethod
    def get_or_create(self, client_id: int) -> Account:
        """Get account, creating it with zeroed balances if it doesn't exist."""
        pass

    @abstractmethod
    def deposit(self, client_id: int, amount: Decimal) -> bool:
        """Credit available funds."""
        pass

    @abstractmethod
    def withdraw(self, client_id: int, amount: Decimal) -> bool:
        """Debit available funds if they cover the amount."""
        pass

    @abstractmethod
    def hold(self, client_id: int, amount: Decimal) -> bool:
        """Move funds from available to held."""
        pass

    @abstractmethod
    def release(self, client_id: int, amount: Decimal) -> bool:
        """Move funds from held back to available."""
        pass

    @abstractmethod
    def chargeback(self, client_id: int, amount: Decimal) -> bool:
        """Remove held funds and lock the account."""
        pass

    @abstractmethod
    def snapshot(self) -> List[Account]:
        """Get a copy of every account, ordered by client id."""
        pass

    @abstractmethod
    def get_accounts_count(self) -> int:
        """Get total number of accounts."""
        pass


class TransactionRepository(ABC):
    @abstractmethod
    def get(self, tx_id: int) -> Optional[TransactionRecord]:
        """Get stored record by transaction id. Returns None if unknown."""
        pass

    @abstractmethod
    def store(self, record: TransactionRecord) -> None:
        """Store record, replacing any previous record with the same id."""
        pass

    @abstractmethod
    def get_transactions_count(self) -> int:
        """Get total number of stored records."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, Account] = {}

    def get_or_create(self, client_id: int) -> Account:
        account = self.accounts.get(client_id)
        if account is None:
            account = self.accounts[client_id] = Account(client_id=client_id)
        return account

    def deposit(self, client_id: int, amount: Decimal) -> bool:
        account = self.get_or_create(client_id)
        if account.locked:
            return False
        account.available += amount
        return True

    def withdraw(self, client_id: int, amount: Decimal) -> bool:
        account = self.get_or_create(client_id)
        if account.locked or account.available < amount:
            return False
        account.available -= amount
        return True

    def hold(self, client_id: int, amount: Decimal) -> bool:
        account = self.get_or_create(client_id)
        if account.locked:
            return False
        account.available -= amount
        account.held += amount
        return True

    def release(self, client_id: int, amount: Decimal) -> bool:
        account = self.get_or_create(client_id)
        if account.locked:
            return False
        account.held -= amount
        account.available += amount
        return True

    def chargeback(self, client_id: int, amount: Decimal) -> bool:
        account = self.get_or_create(client_id)
        if account.locked:
            return False
        account.held -= amount
        account.locked = True
        return True

    def snapshot(self) -> List[Account]:
        return [self.accounts[client_id].model_copy() for client_id in sorted(self.accounts)]

    def get_accounts_count(self) -> int:
        return len(self.accounts)


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self):
        self.records: Dict[int, TransactionRecord] = {}

    def get(self, tx_id: int) -> Optional[TransactionRecord]:
        return self.records.get(tx_id)

    def store(self, record: TransactionRecord) -> None:
        self.records[record.tx_id] = record

    def get_transactions_count(self) -> int:
        return len(self.records)


def get_account_repository() -> AccountRepository:
    return InMemoryAccountRepository()


def get_transaction_repository() -> TransactionRepository:
    return InMemoryTransactionRepository()
