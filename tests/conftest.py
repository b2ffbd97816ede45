from datetime import date
from typing import Optional

import pytest
from sqlalchemy.orm import Session

from database import Base, make_engine
from models import BudgetPeriod, GoalStatus, GoalType, TransactionType
from periods import Period
from repositories import BudgetRecord, GoalRecord, TransactionRecord


class InMemoryLedger:
    """Satisfies all three query protocols from plain lists."""

    def __init__(self) -> None:
        self.transactions: list[TransactionRecord] = []
        self.budgets: list[BudgetRecord] = []
        self.goals: list[GoalRecord] = []
        self.categories: dict[int, str] = {}

    def _category_name(self, category_id: int) -> str:
        return self.categories.get(category_id, f"Category {category_id}")

    def add_transaction(
        self,
        on: date,
        transaction_type: TransactionType,
        amount_cents: int,
        category_id: int,
        *,
        user_id: int = 1,
        description: Optional[str] = None,
    ) -> TransactionRecord:
        record = TransactionRecord(
            id=len(self.transactions) + 1,
            user_id=user_id,
            date=on,
            type=transaction_type,
            amount_cents=amount_cents,
            category_id=category_id,
            category_name=self._category_name(category_id),
            description=description,
        )
        self.transactions.append(record)
        return record

    def income(self, on: date, amount_cents: int, category_id: int, **kw):
        return self.add_transaction(
            on, TransactionType.income, amount_cents, category_id, **kw
        )

    def expense(self, on: date, amount_cents: int, category_id: int, **kw):
        return self.add_transaction(
            on, TransactionType.expense, amount_cents, category_id, **kw
        )

    def add_budget(
        self,
        category_id: int,
        amount_cents: int,
        start: date,
        end: date,
        *,
        user_id: int = 1,
        is_active: bool = True,
    ) -> BudgetRecord:
        record = BudgetRecord(
            id=len(self.budgets) + 1,
            user_id=user_id,
            category_id=category_id,
            category_name=self._category_name(category_id),
            amount_cents=amount_cents,
            period=BudgetPeriod.monthly,
            start_date=start,
            end_date=end,
            spent_cents=0,
            remaining_cents=amount_cents,
            is_active=is_active,
        )
        self.budgets.append(record)
        return record

    def add_goal(
        self, title: str, target_cents: int, current_cents: int, *, user_id: int = 1
    ) -> GoalRecord:
        record = GoalRecord(
            id=len(self.goals) + 1,
            user_id=user_id,
            title=title,
            target_amount_cents=target_cents,
            current_amount_cents=current_cents,
            goal_type=GoalType.savings,
            status=GoalStatus.active,
        )
        self.goals.append(record)
        return record

    def get_transactions(
        self,
        user_id: int,
        period: Period,
        *,
        transaction_type: Optional[TransactionType] = None,
        category_id: Optional[int] = None,
    ) -> list[TransactionRecord]:
        rows = [
            t
            for t in self.transactions
            if t.user_id == user_id
            and period.start <= t.date <= period.end
            and (transaction_type is None or t.type == transaction_type)
            and (category_id is None or t.category_id == category_id)
        ]
        return sorted(rows, key=lambda t: (t.date, t.id))

    def get_budgets(
        self, user_id: int, period: Period, *, active_only: bool = False
    ) -> list[BudgetRecord]:
        return [
            b
            for b in self.budgets
            if b.user_id == user_id
            and period.overlaps(b.start_date, b.end_date)
            and (b.is_active or not active_only)
        ]

    def get_active_goals(self, user_id: int) -> list[GoalRecord]:
        return [
            g
            for g in self.goals
            if g.user_id == user_id and g.status == GoalStatus.active
        ]


class FailingLedger:
    def get_transactions(self, user_id, period, **kwargs):
        raise RuntimeError("ledger unavailable")

    def get_budgets(self, user_id, period, **kwargs):
        raise RuntimeError("ledger unavailable")

    def get_active_goals(self, user_id):
        raise RuntimeError("ledger unavailable")


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def session():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture
def failing_ledger() -> FailingLedger:
    return FailingLedger()
