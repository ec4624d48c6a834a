"""
Wallet Transaction Engine
=========================

Every balance mutation is one atomic unit made of

1. a conditional balance update on ``wallets`` (never below zero), and
2. exactly one new ``transactions`` row recording the delta and the
   resulting balance.

``_post`` is the only code path that touches a balance, so the invariant
``wallet.balance == sum(transaction.amount)`` holds after every commit.
Ledger rows are never updated; a cancelled withdrawal gets a new
reversing credit instead.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from src.domain.entities import BankDetails, Page, check_offset
from src.domain.enums import TransactionType, WithdrawalStatus
from src.domain.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from src.domain.money import ZERO, positive_money
from src.infrastructure.models import TransactionModel, WithdrawalModel
from src.infrastructure.store import Store, UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerCheck:
    balance: Decimal
    ledger_total: Decimal

    @property
    def consistent(self) -> bool:
        return self.balance == self.ledger_total


class WalletEngine:
    """High-level wallet API used by the ride state machine and the routes."""

    def __init__(self, store: Store, page_size: int = 50):
        self.store = store
        self.page_size = page_size

    # ── Mutations ─────────────────────────────────────────────────────

    async def credit_ride_earning(
        self,
        driver_id: str,
        amount: Decimal,
        ride_id: str,
        *,
        uow: Optional[UnitOfWork] = None,
    ) -> TransactionModel:
        """Credit a completed ride's price.

        When *uow* is given the credit joins the caller's unit of work, so
        the completion status write and the credit commit together.
        """
        amount = positive_money(amount)

        async def _op(work: UnitOfWork) -> TransactionModel:
            return await self._post(
                work,
                driver_id,
                amount,
                type=TransactionType.RIDE_CREDIT,
                description="Ride earning",
                ride_id=ride_id,
            )

        if uow is not None:
            return await _op(uow)
        return await self.store.with_transaction(_op)

    async def request_withdrawal(
        self,
        driver_id: str,
        amount: Decimal | int | str,
        bank_details: BankDetails,
        *,
        driver_name: Optional[str] = None,
    ) -> WithdrawalModel:
        amount = positive_money(amount)
        if not isinstance(bank_details, BankDetails):
            raise ValidationError("Incomplete bank details")

        async def _op(uow: UnitOfWork) -> WithdrawalModel:
            withdrawal = await uow.withdrawals.create(
                WithdrawalModel(
                    id=uuid.uuid4().hex,
                    driver_id=driver_id,
                    driver_name=driver_name,
                    amount=amount,
                    bank=bank_details.bank,
                    agency=bank_details.agency,
                    account=bank_details.account,
                    status=WithdrawalStatus.PENDING,
                )
            )
            # Raises InsufficientFundsError -> whole unit rolls back
            await self._post(
                uow,
                driver_id,
                -amount,
                type=TransactionType.WITHDRAWAL_DEBIT,
                description="Withdrawal request",
                withdrawal_id=withdrawal.id,
                status=WithdrawalStatus.PENDING,
            )
            return withdrawal

        withdrawal = await self.store.with_transaction(_op)
        logger.info(
            "Withdrawal %s requested by driver %s (amount=%s)",
            withdrawal.id, driver_id, amount,
        )
        return withdrawal

    async def cancel_withdrawal(self, driver_id: str, withdrawal_id: str) -> WithdrawalModel:
        async def _op(uow: UnitOfWork) -> WithdrawalModel:
            withdrawal = await self._owned_withdrawal(uow, driver_id, withdrawal_id)
            if WithdrawalStatus(withdrawal.status) != WithdrawalStatus.PENDING:
                raise ConflictError("Withdrawal request can no longer be cancelled")

            if not await uow.withdrawals.mark_cancelled(withdrawal_id):
                logger.warning("Concurrent cancel lost on withdrawal %s", withdrawal_id)
                raise ConflictError("Withdrawal request can no longer be cancelled")

            await self._post(
                uow,
                driver_id,
                Decimal(withdrawal.amount),
                type=TransactionType.WITHDRAWAL_CANCELLATION_CREDIT,
                description="Withdrawal request cancelled",
                withdrawal_id=withdrawal_id,
            )
            return await uow.withdrawals.get_by_id(withdrawal_id, refresh=True)

        withdrawal = await self.store.with_transaction(_op)
        logger.info("Withdrawal %s cancelled by driver %s", withdrawal_id, driver_id)
        return withdrawal

    # ── Reads ─────────────────────────────────────────────────────────

    async def get_balance(self, driver_id: str) -> Decimal:
        """Current balance; 0 for a wallet never touched (nothing is created)."""

        async def _op(uow: UnitOfWork) -> Decimal:
            wallet = await uow.wallets.get(driver_id)
            if wallet is None:
                return ZERO
            return Decimal(wallet.balance).quantize(ZERO)

        return await self.store.with_transaction(_op)

    async def get_withdrawal(
        self, driver_id: str, withdrawal_id: str
    ) -> tuple[WithdrawalModel, list[TransactionModel]]:
        """The withdrawal and its ledger entries, oldest first."""

        async def _op(uow: UnitOfWork):
            withdrawal = await self._owned_withdrawal(uow, driver_id, withdrawal_id)
            return withdrawal, await uow.transactions.list_for_withdrawal(withdrawal_id)

        return await self.store.with_transaction(_op)

    async def check_ledger(self, driver_id: str) -> LedgerCheck:
        """Compare the stored balance with the sum of the driver's ledger."""

        async def _op(uow: UnitOfWork) -> LedgerCheck:
            wallet = await uow.wallets.get(driver_id)
            balance = Decimal(wallet.balance).quantize(ZERO) if wallet else ZERO
            total = await uow.transactions.sum_for_driver(driver_id)
            return LedgerCheck(balance=balance, ledger_total=total)

        check = await self.store.with_transaction(_op)
        if not check.consistent:
            logger.error(
                "Wallet %s out of balance: stored=%s ledger=%s",
                driver_id, check.balance, check.ledger_total,
            )
        return check

    async def list_transactions(
        self,
        driver_id: str,
        *,
        type: Optional[TransactionType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
    ) -> Page[TransactionModel]:
        offset = check_offset(offset)
        if start is not None and end is not None and start > end:
            raise ValidationError("start_date must not be after end_date")

        async def _op(uow: UnitOfWork) -> list[TransactionModel]:
            return await uow.transactions.list_for_driver(
                driver_id,
                type=type,
                start=start,
                end=end,
                offset=offset,
                limit=self.page_size,
            )

        items = await self.store.with_transaction(_op)
        return Page.build(items, offset, self.page_size)

    # ── Internals ─────────────────────────────────────────────────────

    async def _post(
        self,
        uow: UnitOfWork,
        driver_id: str,
        delta: Decimal,
        **entry_fields,
    ) -> TransactionModel:
        """Apply *delta* to the wallet and append its ledger entry."""
        if delta > 0:
            await uow.wallets.ensure(driver_id)
        new_balance = await uow.wallets.apply_delta(driver_id, delta)
        if new_balance is None:
            raise InsufficientFundsError("Insufficient balance")

        entry = await uow.transactions.append(
            TransactionModel(
                driver_id=driver_id,
                amount=delta,
                balance=new_balance,
                **entry_fields,
            )
        )
        logger.debug(
            "Wallet %s %s %s -> balance %s",
            driver_id,
            "credited" if delta > 0 else "debited",
            abs(delta),
            new_balance,
        )
        return entry

    @staticmethod
    async def _owned_withdrawal(
        uow: UnitOfWork, driver_id: str, withdrawal_id: str
    ) -> WithdrawalModel:
        withdrawal = await uow.withdrawals.get_by_id(withdrawal_id)
        if withdrawal is None:
            raise NotFoundError("Withdrawal request not found")
        if withdrawal.driver_id != driver_id:
            raise ForbiddenError("Not authorized to access this withdrawal request")
        return withdrawal
