"""
Wallet endpoints (drivers only)
===============================

GET  /api/v1/wallet                              -- current balance
POST /api/v1/wallet/withdrawals                  -- request a withdrawal (201)
GET  /api/v1/wallet/withdrawals/{withdrawal_id}  -- status and ledger entries
POST /api/v1/wallet/withdrawals/{withdrawal_id}/cancel -- cancel a pending one
GET  /api/v1/wallet/transactions                 -- ledger, newest first
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import get_active_driver, get_driver, get_wallet
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    BalanceResponse,
    Envelope,
    PageResponse,
    TransactionResponse,
    WithdrawalCreateRequest,
    WithdrawalDetailResponse,
    WithdrawalResponse,
)
from src.domain.entities import Actor, BankDetails
from src.domain.enums import TransactionType
from src.services.wallet_engine import WalletEngine

router = APIRouter(prefix="/wallet", tags=["wallet"])


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@router.get("", response_model=Envelope[BalanceResponse], summary="Wallet balance")
@limiter.limit(RATE_LIMIT)
async def get_balance(
    request: Request,
    actor: Actor = Depends(get_driver),
    wallet: WalletEngine = Depends(get_wallet),
):
    balance = await wallet.get_balance(actor.id)
    return Envelope[BalanceResponse](data=BalanceResponse(balance=balance))


@router.post(
    "/withdrawals",
    status_code=201,
    response_model=Envelope[WithdrawalResponse],
    summary="Request a withdrawal",
    description="The amount is debited from the wallet immediately and held "
    "until the withdrawal is paid out or cancelled.",
)
@limiter.limit(RATE_LIMIT)
async def request_withdrawal(
    request: Request,
    body: WithdrawalCreateRequest,
    actor: Actor = Depends(get_active_driver),
    wallet: WalletEngine = Depends(get_wallet),
):
    bank = BankDetails.build(
        body.bank_account.bank, body.bank_account.agency, body.bank_account.account
    )
    withdrawal = await wallet.request_withdrawal(
        actor.id, body.amount, bank, driver_name=actor.name
    )
    return Envelope[WithdrawalResponse](
        message="Withdrawal requested",
        data=WithdrawalResponse.model_validate(withdrawal),
    )


@router.get(
    "/withdrawals/{withdrawal_id}",
    response_model=Envelope[WithdrawalDetailResponse],
    summary="Get a withdrawal request and its ledger entries",
)
@limiter.limit(RATE_LIMIT)
async def get_withdrawal(
    request: Request,
    withdrawal_id: str,
    actor: Actor = Depends(get_driver),
    wallet: WalletEngine = Depends(get_wallet),
):
    withdrawal, entries = await wallet.get_withdrawal(actor.id, withdrawal_id)
    detail = WithdrawalDetailResponse.model_validate(withdrawal).model_copy(
        update={"transactions": [TransactionResponse.model_validate(t) for t in entries]}
    )
    return Envelope[WithdrawalDetailResponse](data=detail)


@router.post(
    "/withdrawals/{withdrawal_id}/cancel",
    response_model=Envelope[WithdrawalResponse],
    summary="Cancel a pending withdrawal request",
    responses={409: {"description": "Withdrawal is no longer pending"}},
)
@limiter.limit(RATE_LIMIT)
async def cancel_withdrawal(
    request: Request,
    withdrawal_id: str,
    actor: Actor = Depends(get_active_driver),
    wallet: WalletEngine = Depends(get_wallet),
):
    withdrawal = await wallet.cancel_withdrawal(actor.id, withdrawal_id)
    return Envelope[WithdrawalResponse](
        message="Withdrawal cancelled",
        data=WithdrawalResponse.model_validate(withdrawal),
    )


@router.get(
    "/transactions",
    response_model=Envelope[PageResponse[TransactionResponse]],
    summary="List wallet transactions, newest first",
)
@limiter.limit(RATE_LIMIT)
async def list_transactions(
    request: Request,
    type: Optional[TransactionType] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_driver),
    wallet: WalletEngine = Depends(get_wallet),
):
    page = await wallet.list_transactions(
        actor.id,
        type=type,
        start=_as_utc(start_date),
        end=_as_utc(end_date),
        offset=offset,
    )
    return Envelope[PageResponse[TransactionResponse]](
        data=PageResponse[TransactionResponse](
            items=[TransactionResponse.model_validate(t) for t in page.items],
            offset=page.offset,
            next_offset=page.next_offset,
        )
    )
