# ledger/transfer.py
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Tuple

from extensions import db
from logger import ledger_logger
from models import User, Transaction, TransactionType
from ledger.audit import record_operation
from ledger.commands import TransferDirection, positive_amount
from ledger.exceptions import (
    InsufficientFundsError,
    InvalidInputError,
    NotFoundError,
)
from ledger.downline import DownlineAggregator
from ledger.permissions import PermissionGuard
from utils import quantize_money


@dataclass(frozen=True)
class TransferResult:
    direction: str
    amount: Decimal
    operator_balance: Decimal
    target_balance: Decimal
    debit_entry_id: int
    credit_entry_id: int

    def to_dict(self):
        return {
            "success": True,
            "type": self.direction,
            "amount": float(self.amount),
            "operatorBalance": float(self.operator_balance),
            "targetBalance": float(self.target_balance),
        }


class TransferService:
    """
    Moves balance between an operator and a node it manages.

    Every transfer is one database transaction: both balance updates, both
    ledger entries and the operation log row commit together or not at all.
    Both user rows are locked (SELECT ... FOR UPDATE) in ascending id order
    before any balance is read.
    """

    def __init__(self, session=None, guard: Optional[PermissionGuard] = None):
        self.session = session or db.session
        self.guard = guard or PermissionGuard(DownlineAggregator(self.session))

    # ==========================================================
    #                  PUBLIC OPERATIONS
    # ==========================================================
    def transfer(self, operator_id: int, target_id: int, direction, amount,
                 note: Optional[str] = None, ip_address: Optional[str] = None) -> TransferResult:
        try:
            direction = TransferDirection(direction)
        except ValueError:
            raise InvalidInputError("Type must be deposit or withdraw")
        amount = positive_amount(amount)

        try:
            operator, target = self._lock_pair(operator_id, target_id)
            self.guard.ensure_mutation(operator, target)

            debit, credit = self.apply_transfer(operator, target, direction, amount, note)

            record_operation(
                self.session,
                operator_id=operator.id,
                action="deposit_to_user" if direction == TransferDirection.DEPOSIT else "withdraw_from_user",
                target_id=target.id,
                details={"type": direction.value, "amount": str(amount), "note": note},
                ip_address=ip_address,
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        ledger_logger.info(
            f"Transfer {direction.value} {amount}: operator={operator_id} target={target_id} "
            f"entries=({debit.id}, {credit.id})"
        )
        return TransferResult(
            direction=direction.value,
            amount=amount,
            operator_balance=operator.balance,
            target_balance=target.balance,
            debit_entry_id=debit.id,
            credit_entry_id=credit.id,
        )

    def withdraw_all(self, operator_id: int, target_id: int,
                     ip_address: Optional[str] = None) -> TransferResult:
        """
        Pull the target node's whole balance up to the operator.
        Only the target's own balance moves; its downline is untouched.
        """
        try:
            operator, target = self._lock_pair(operator_id, target_id)
            self.guard.ensure_mutation(operator, target)

            amount = quantize_money(target.balance or 0)
            if amount <= 0:
                raise InvalidInputError("No balance to withdraw")

            debit, credit = self.apply_transfer(
                operator, target, TransferDirection.WITHDRAW, amount,
                note="Withdraw all by parent agent",
            )
            record_operation(
                self.session,
                operator_id=operator.id,
                action="withdraw_all",
                target_id=target.id,
                details={"amount": str(amount)},
                ip_address=ip_address,
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        ledger_logger.info(f"Withdraw-all {amount}: operator={operator_id} target={target_id}")
        return TransferResult(
            direction=TransferDirection.WITHDRAW.value,
            amount=amount,
            operator_balance=operator.balance,
            target_balance=target.balance,
            debit_entry_id=debit.id,
            credit_entry_id=credit.id,
        )

    # ==========================================================
    #                  BUILDING BLOCKS
    # ==========================================================
    def apply_transfer(self, operator: User, target: User, direction: TransferDirection,
                       amount: Decimal, note: Optional[str] = None) -> Tuple[Transaction, Transaction]:
        """
        Debit one side, credit the other and write both ledger entries.
        The caller owns the transaction and must already hold both row locks.
        Returns (debit_entry, credit_entry).
        """
        if operator.id == target.id:
            raise InvalidInputError("Cannot transfer to yourself")

        if direction == TransferDirection.DEPOSIT:
            source, destination = operator, target
            debit_note = f"Transfer to {target.username}"
            credit_note = note or "Deposit by agent"
        else:
            source, destination = target, operator
            debit_note = note or "Withdraw by agent"
            credit_note = f"Received from {target.username}"

        source_before = quantize_money(source.balance or 0)
        if source_before < amount:
            if source is operator:
                raise InsufficientFundsError("Insufficient balance")
            raise InsufficientFundsError("Target has insufficient balance")
        destination_before = quantize_money(destination.balance or 0)

        source.balance = source_before - amount
        destination.balance = destination_before + amount

        debit = self._entry(source, operator, TransactionType.WITHDRAW, amount,
                            source_before, source.balance, debit_note)
        credit = self._entry(destination, operator, TransactionType.DEPOSIT, amount,
                             destination_before, destination.balance, credit_note)
        self.session.flush()
        return debit, credit

    def lock_query(self, *user_ids: int):
        """SELECT ... FOR UPDATE over the given users, ascending id order, refreshing loaded rows."""
        return (
            self.session.query(User)
            .filter(User.id.in_(sorted(set(user_ids))))
            .order_by(User.id)
            .populate_existing()
            .with_for_update()
        )

    def lock_users(self, *user_ids: int) -> Dict[int, User]:
        rows = self.lock_query(*user_ids).all()
        return {user.id: user for user in rows}

    def _lock_pair(self, operator_id: int, target_id: int) -> Tuple[User, User]:
        locked = self.lock_users(operator_id, target_id)
        target = locked.get(target_id)
        if target is None:
            raise NotFoundError("User not found")
        operator = locked.get(operator_id)
        if operator is None:
            raise NotFoundError("Operator not found")
        return operator, target

    def _entry(self, user: User, operator: User, entry_type: TransactionType, amount: Decimal,
               before: Decimal, after: Decimal, note: Optional[str]) -> Transaction:
        entry = Transaction(
            user_id=user.id,
            operator_id=operator.id,
            type=entry_type.value,
            amount=amount,
            balance_before=before,
            balance_after=after,
            note=note,
        )
        self.session.add(entry)
        return entry
