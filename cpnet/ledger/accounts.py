"""Account Ledger -- cash-balance bookkeeping.

debit / credit / transfer stage new Account records in the caller's
transaction. transfer validates both legs before staging either, so a
failed transfer leaves nothing staged; the commit of the enclosing
transaction makes both legs durable together.

Conservation: transfer changes the sum of all balances in a currency by
exactly zero.
"""

from __future__ import annotations

from decimal import localcontext
from typing import final

from cpnet.core.errors import (
    CurrencyMismatchError,
    FieldViolation,
    InsufficientFundsError,
    PersistenceError,
    StateConflictError,
    ValidationError,
    invalid,
)
from cpnet.core.money import CPNET_DECIMAL_CONTEXT, Money
from cpnet.core.result import Err, Ok
from cpnet.core.types import UtcDatetime
from cpnet.infra.config import LedgerPolicy
from cpnet.infra.protocols import LedgerTransaction
from cpnet.ledger._store import load
from cpnet.ledger.types import Account, account_key

type AccountError = (
    ValidationError
    | InsufficientFundsError
    | CurrencyMismatchError
    | StateConflictError
    | PersistenceError
)


def _currency_mismatch(expected: str, actual: str, source: str) -> CurrencyMismatchError:
    return CurrencyMismatchError(
        message=f"Currency mismatch: expected {expected}, got {actual}",
        code="CURRENCY_MISMATCH",
        timestamp=UtcDatetime.now(),
        source=source,
        expected=expected,
        actual=actual,
    )


@final
class AccountLedger:
    """Stateless service over Account records."""

    def __init__(self, policy: LedgerPolicy | None = None) -> None:
        self._policy = policy or LedgerPolicy()

    def get(
        self, tx: LedgerTransaction, account_id: str,
    ) -> Ok[Account] | Err[StateConflictError | PersistenceError]:
        return load(tx, account_key(account_id), Account, "ledger.accounts.get")

    def balance(
        self, tx: LedgerTransaction, account_id: str,
    ) -> Ok[Money] | Err[StateConflictError | PersistenceError]:
        return self.get(tx, account_id).map(lambda a: a.balance)

    # -- validation of single legs (no writes) --

    def _check_amount(self, amount: Money, source: str) -> Ok[None] | Err[ValidationError]:
        if amount.amount <= 0:
            return Err(invalid(
                f"Amount must be > 0, got {amount.amount}", "INVALID_AMOUNT", source,
                FieldViolation("amount", "must be > 0", str(amount.amount)),
            ))
        return Ok(None)

    def _debited(self, account: Account, amount: Money) -> Ok[Account] | Err[AccountError]:
        source = "ledger.accounts.debit"
        if amount.currency != account.working_currency:
            return Err(_currency_mismatch(
                account.working_currency.value, amount.currency.value, source,
            ))
        if amount.amount > account.cash_balance.value:
            return Err(InsufficientFundsError(
                message=(
                    f"Account {account.account_id.value} holds {account.balance}, "
                    f"cannot debit {amount}"
                ),
                code="INSUFFICIENT_FUNDS",
                timestamp=UtcDatetime.now(),
                source=source,
                account_id=account.account_id.value,
                requested=str(amount.amount),
                available=str(account.cash_balance.value),
            ))
        with localcontext(CPNET_DECIMAL_CONTEXT):
            return Ok(account.with_balance(account.cash_balance.value - amount.amount))

    def _credited(self, account: Account, amount: Money) -> Ok[Account] | Err[AccountError]:
        source = "ledger.accounts.credit"
        if amount.currency != account.working_currency:
            return Err(_currency_mismatch(
                account.working_currency.value, amount.currency.value, source,
            ))
        with localcontext(CPNET_DECIMAL_CONTEXT):
            new_balance = account.cash_balance.value + amount.amount
        if new_balance > self._policy.max_account_balance:
            return Err(invalid(
                f"Crediting {amount} to {account.account_id.value} exceeds the "
                f"balance limit {self._policy.max_account_balance}",
                "BALANCE_LIMIT_EXCEEDED", source,
                FieldViolation("amount", "balance limit exceeded", str(amount.amount)),
            ))
        return Ok(account.with_balance(new_balance))

    def _stage(self, tx: LedgerTransaction, account: Account) -> Ok[Account] | Err[PersistenceError]:
        return tx.put(account_key(account.account_id.value), account).map(lambda _: account)

    # -- operations --

    def debit(
        self, tx: LedgerTransaction, account_id: str, amount: Money,
    ) -> Ok[Account] | Err[AccountError]:
        """Decrease a balance; InsufficientFunds if amount > balance."""
        match self._check_amount(amount, "ledger.accounts.debit"):
            case Err() as e:
                return e
        match self.get(tx, account_id):
            case Err() as e:
                return e
            case Ok(account):
                pass
        return self._debited(account, amount).and_then(lambda a: self._stage(tx, a))

    def credit(
        self, tx: LedgerTransaction, account_id: str, amount: Money,
    ) -> Ok[Account] | Err[AccountError]:
        """Increase a balance, bounded by LedgerPolicy.max_account_balance."""
        match self._check_amount(amount, "ledger.accounts.credit"):
            case Err() as e:
                return e
        match self.get(tx, account_id):
            case Err() as e:
                return e
            case Ok(account):
                pass
        return self._credited(account, amount).and_then(lambda a: self._stage(tx, a))

    def transfer(
        self, tx: LedgerTransaction, from_id: str, to_id: str, amount: Money,
    ) -> Ok[tuple[Account, Account]] | Err[AccountError]:
        """Move cash between two accounts of the same working currency.

        Both legs are computed first; nothing is staged unless both succeed.
        """
        source = "ledger.accounts.transfer"
        if from_id == to_id:
            return Err(invalid(
                f"Cannot transfer from {from_id} to itself", "SELF_TRANSFER", source,
                FieldViolation("to_account", "must differ from from_account", to_id),
            ))
        match self._check_amount(amount, source):
            case Err() as e:
                return e
        match self.get(tx, from_id):
            case Err() as e:
                return e
            case Ok(payer):
                pass
        match self.get(tx, to_id):
            case Err() as e:
                return e
            case Ok(payee):
                pass
        if payer.working_currency != payee.working_currency:
            return Err(_currency_mismatch(
                payer.working_currency.value, payee.working_currency.value, source,
            ))
        match self._debited(payer, amount):
            case Err() as e:
                return e
            case Ok(debited):
                pass
        match self._credited(payee, amount):
            case Err() as e:
                return e
            case Ok(credited):
                pass
        match self._stage(tx, debited):
            case Err() as e:
                return e
        match self._stage(tx, credited):
            case Err() as e:
                return e
        return Ok((debited, credited))
