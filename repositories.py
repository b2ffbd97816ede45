"""Read-only query collaborators consumed by the analytics engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from models import (
    Budget,
    BudgetPeriod,
    FinancialGoal,
    GoalStatus,
    GoalType,
    Transaction,
    TransactionType,
)
from periods import Period


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    user_id: int
    date: date
    type: TransactionType
    amount_cents: int
    category_id: int
    category_name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class BudgetRecord:
    id: int
    user_id: int
    category_id: int
    category_name: str
    amount_cents: int
    period: BudgetPeriod
    start_date: date
    end_date: date
    spent_cents: int
    remaining_cents: int
    is_active: bool = True


@dataclass(frozen=True)
class GoalRecord:
    id: int
    user_id: int
    title: str
    target_amount_cents: int
    current_amount_cents: int
    goal_type: GoalType
    status: GoalStatus
    target_date: Optional[date] = None
    description: Optional[str] = None


class TransactionQuery(Protocol):
    def get_transactions(
        self,
        user_id: int,
        period: Period,
        *,
        transaction_type: Optional[TransactionType] = None,
        category_id: Optional[int] = None,
    ) -> list[TransactionRecord]:
        """Transactions dated inside ``period`` (inclusive), oldest first."""
        ...


class BudgetQuery(Protocol):
    def get_budgets(
        self, user_id: int, period: Period, *, active_only: bool = False
    ) -> list[BudgetRecord]:
        """Budgets whose ``[start_date, end_date]`` overlaps ``period``."""
        ...


class GoalQuery(Protocol):
    def get_active_goals(self, user_id: int) -> list[GoalRecord]: ...


def transaction_record(txn: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=txn.id,
        user_id=txn.user_id,
        date=txn.date,
        type=txn.type,
        amount_cents=txn.amount_cents,
        category_id=txn.category_id,
        category_name=txn.category.name if txn.category else "",
        description=txn.description,
    )


def budget_record(budget: Budget) -> BudgetRecord:
    return BudgetRecord(
        id=budget.id,
        user_id=budget.user_id,
        category_id=budget.category_id,
        category_name=budget.category.name if budget.category else "",
        amount_cents=budget.amount_cents,
        period=budget.period,
        start_date=budget.start_date,
        end_date=budget.end_date,
        spent_cents=budget.spent_cents,
        remaining_cents=budget.remaining_cents,
        is_active=budget.is_active,
    )


def goal_record(goal: FinancialGoal) -> GoalRecord:
    return GoalRecord(
        id=goal.id,
        user_id=goal.user_id,
        title=goal.title,
        target_amount_cents=goal.target_amount_cents,
        current_amount_cents=goal.current_amount_cents,
        goal_type=goal.goal_type,
        status=goal.status,
        target_date=goal.target_date,
        description=goal.description,
    )


class SQLTransactionQuery:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_transactions(
        self,
        user_id: int,
        period: Period,
        *,
        transaction_type: Optional[TransactionType] = None,
        category_id: Optional[int] = None,
    ) -> list[TransactionRecord]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == user_id,
                Transaction.date.between(period.start, period.end),
            )
            .order_by(Transaction.date.asc(), Transaction.id.asc())
        )
        if transaction_type is not None:
            stmt = stmt.where(Transaction.type == transaction_type)
        if category_id is not None:
            stmt = stmt.where(Transaction.category_id == category_id)
        return [transaction_record(t) for t in self.session.scalars(stmt).all()]


class SQLBudgetQuery:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_budgets(
        self, user_id: int, period: Period, *, active_only: bool = False
    ) -> list[BudgetRecord]:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category))
            .where(
                Budget.user_id == user_id,
                Budget.start_date <= period.end,
                Budget.end_date >= period.start,
            )
            .order_by(Budget.start_date.asc(), Budget.id.asc())
        )
        if active_only:
            stmt = stmt.where(Budget.is_active.is_(True))
        return [budget_record(b) for b in self.session.scalars(stmt).all()]


class SQLGoalQuery:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_active_goals(self, user_id: int) -> list[GoalRecord]:
        stmt = (
            select(FinancialGoal)
            .where(
                FinancialGoal.user_id == user_id,
                FinancialGoal.status == GoalStatus.active,
            )
            .order_by(FinancialGoal.id.asc())
        )
        return [goal_record(g) for g in self.session.scalars(stmt).all()]
