from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from analytics import budget_status
from models import (
    Budget,
    BudgetPeriod,
    Category,
    FinancialGoal,
    GoalStatus,
    Transaction,
    TransactionType,
)
from periods import shift_months
from schemas import (
    BudgetIn,
    BudgetSummary,
    BudgetUpdate,
    CategoryIn,
    CategoryUpdate,
    CategoryUsage,
    GoalIn,
    TransactionIn,
)
from thresholds import pct

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: tuple[tuple[str, TransactionType, str, str], ...] = (
    ("Salary", TransactionType.income, "Regular salary income", "#4CAF50"),
    ("Freelance", TransactionType.income, "Freelance work income", "#2196F3"),
    ("Investment", TransactionType.income, "Investment returns", "#FF9800"),
    ("Business", TransactionType.income, "Business income", "#9C27B0"),
    ("Other Income", TransactionType.income, "Other sources of income", "#607D8B"),
    (
        "Food & Dining",
        TransactionType.expense,
        "Restaurants, groceries, food delivery",
        "#F44336",
    ),
    (
        "Transportation",
        TransactionType.expense,
        "Gas, public transport, car maintenance",
        "#FF5722",
    ),
    (
        "Shopping",
        TransactionType.expense,
        "Clothing, electronics, general shopping",
        "#E91E63",
    ),
    ("Entertainment", TransactionType.expense, "Movies, games, hobbies", "#9C27B0"),
    (
        "Bills & Utilities",
        TransactionType.expense,
        "Electricity, water, internet, phone",
        "#FF9800",
    ),
    ("Healthcare", TransactionType.expense, "Medical expenses, insurance", "#4CAF50"),
    ("Education", TransactionType.expense, "Courses, books, training", "#2196F3"),
    ("Travel", TransactionType.expense, "Vacation, business trips", "#00BCD4"),
    ("Housing", TransactionType.expense, "Rent, mortgage, home maintenance", "#795548"),
    ("Other Expenses", TransactionType.expense, "Miscellaneous expenses", "#607D8B"),
)


class NotFoundError(ValueError):
    pass


def default_budget_end(start: date, period: BudgetPeriod) -> date:
    if period == BudgetPeriod.weekly:
        return start + timedelta(days=7)
    if period == BudgetPeriod.yearly:
        return shift_months(start, 12)
    return shift_months(start, 1)


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self, transaction_type: Optional[TransactionType] = None) -> list[Category]:
        stmt = select(Category).order_by(Category.type, Category.name)
        if transaction_type is not None:
            stmt = stmt.where(Category.type == transaction_type)
        return list(self.session.scalars(stmt).all())

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        existing = self.session.scalar(
            select(Category).where(func.lower(Category.name) == name.lower())
        )
        if existing:
            raise ValueError("Category with this name already exists")
        category = Category(
            name=name,
            type=data.type,
            description=data.description,
            color=data.color,
            is_default=False,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryUpdate) -> Category:
        category = self.get(category_id)
        if category.is_default:
            category.description = data.description
            category.color = data.color
        else:
            name = data.name.strip()
            clash = self.session.scalar(
                select(Category.id).where(
                    func.lower(Category.name) == name.lower(),
                    Category.id != category_id,
                )
            )
            if clash:
                raise ValueError("Category with this name already exists")
            category.name = name
            category.type = data.type
            category.description = data.description
            category.color = data.color
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        if category.is_default:
            raise ValueError("Default categories cannot be deleted")
        in_use = self.session.scalar(
            select(func.count(Transaction.id)).where(
                Transaction.category_id == category_id
            )
        )
        if in_use:
            raise ValueError("Category is used by transactions")
        budgeted = self.session.scalar(
            select(func.count(Budget.id)).where(Budget.category_id == category_id)
        )
        if budgeted:
            raise ValueError("Category is used by budgets")
        self.session.delete(category)
        self.session.commit()
        logger.info(f"category_deleted: id={category_id}")

    def usage_stats(self, user_id: int) -> list[CategoryUsage]:
        """Per-category totals of one user's transactions, busiest first."""
        txn_count = func.count(Transaction.id)
        total = func.coalesce(func.sum(Transaction.amount_cents), 0)
        stmt = (
            select(
                Category.id,
                Category.name,
                Category.type,
                txn_count,
                total,
                func.avg(Transaction.amount_cents),
                func.max(Transaction.date),
            )
            .select_from(Category)
            .outerjoin(
                Transaction,
                (Transaction.category_id == Category.id)
                & (Transaction.user_id == user_id),
            )
            .group_by(Category.id, Category.name, Category.type)
            .order_by(txn_count.desc(), total.desc(), Category.name)
        )
        stats: list[CategoryUsage] = []
        for row in self.session.execute(stmt).all():
            category_id, name, category_type, count, total_cents, average, last_used = row
            stats.append(
                CategoryUsage(
                    category_id=category_id,
                    category_name=name,
                    category_type=category_type,
                    transaction_count=count,
                    total_cents=int(total_cents),
                    average_cents=round(float(average or 0)),
                    last_used=last_used,
                )
            )
        return stats

    def seed_defaults(self) -> list[Category]:
        """Create any missing system categories; existing names are left alone."""
        existing = set(self.session.scalars(select(Category.name)).all())
        created: list[Category] = []
        for name, category_type, description, color in DEFAULT_CATEGORIES:
            if name in existing:
                continue
            category = Category(
                name=name,
                type=category_type,
                description=description,
                color=color,
                is_default=True,
            )
            self.session.add(category)
            created.append(category)
        self.session.commit()
        logger.info(f"categories_seeded: created={len(created)}")
        return created


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def create(self, data: TransactionIn) -> Transaction:
        category = self.session.get(Category, data.category_id)
        if not category:
            raise NotFoundError("Category not found")
        if category.type != data.type:
            raise ValueError("Category type mismatch")
        txn = Transaction(
            user_id=self.user_id,
            date=data.date,
            type=data.type,
            amount_cents=data.amount_cents,
            category_id=data.category_id,
            description=data.description,
        )
        self.session.add(txn)
        self.session.flush()
        if data.type == TransactionType.expense:
            BudgetService(self.session, self.user_id).record_spending(
                data.category_id, data.amount_cents, data.date
            )
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: user_id={self.user_id} id={txn.id} "
            f"type={txn.type.value} amount_cents={txn.amount_cents}"
        )
        return txn

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def list(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: int = 200,
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(Transaction.user_id == self.user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .limit(limit)
        )
        if start:
            stmt = stmt.where(Transaction.date >= start)
        if end:
            stmt = stmt.where(Transaction.date <= end)
        return list(self.session.scalars(stmt).all())


class BudgetService:
    """Persisted budgets and their running ``spent``/``remaining`` totals.

    ``record_spending`` keeps the totals current as expenses arrive;
    ``refresh_spending`` rebuilds them from the transaction table and is what
    the scheduler runs.
    """

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def create(self, data: BudgetIn, *, today: Optional[date] = None) -> Budget:
        category = self.session.get(Category, data.category_id)
        if not category:
            raise NotFoundError("Category not found")
        if category.type != TransactionType.expense:
            raise ValueError("Budgets can only be set on expense categories")

        start = data.start_date or today or date.today()
        end = data.end_date or default_budget_end(start, data.period)
        if start > end:
            raise ValueError("Budget start date must be on or before end date")

        clash = self.session.scalar(
            select(Budget.id).where(
                Budget.user_id == self.user_id,
                Budget.category_id == data.category_id,
                Budget.is_active.is_(True),
                Budget.start_date <= end,
                Budget.end_date >= start,
            )
        )
        if clash:
            raise ValueError("Budget already exists for this category and period")

        budget = Budget(
            user_id=self.user_id,
            category_id=data.category_id,
            amount_cents=data.amount_cents,
            period=data.period,
            start_date=start,
            end_date=end,
            spent_cents=0,
            remaining_cents=data.amount_cents,
            is_active=True,
        )
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def get(self, budget_id: int) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise NotFoundError("Budget not found")
        return budget

    def update(self, budget_id: int, data: BudgetUpdate) -> Budget:
        budget = self.get(budget_id)
        if data.start_date > data.end_date:
            raise ValueError("Budget start date must be on or before end date")
        if data.is_active:
            clash = self.session.scalar(
                select(Budget.id).where(
                    Budget.user_id == self.user_id,
                    Budget.category_id == budget.category_id,
                    Budget.is_active.is_(True),
                    Budget.start_date <= data.end_date,
                    Budget.end_date >= data.start_date,
                    Budget.id != budget_id,
                )
            )
            if clash:
                raise ValueError("Budget already exists for this category and period")

        window_changed = (budget.start_date, budget.end_date) != (
            data.start_date,
            data.end_date,
        )
        budget.amount_cents = data.amount_cents
        budget.period = data.period
        budget.start_date = data.start_date
        budget.end_date = data.end_date
        budget.is_active = data.is_active
        if window_changed:
            budget.spent_cents = self._spent_from_transactions(budget)
        budget.recalculate_remaining()
        self.session.commit()
        self.session.refresh(budget)
        logger.info(
            f"budget_updated: user_id={self.user_id} id={budget.id} "
            f"amount_cents={budget.amount_cents} remaining_cents={budget.remaining_cents}"
        )
        return budget

    def delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()
        logger.info(f"budget_deleted: user_id={self.user_id} id={budget_id}")

    def list(self, *, active_only: bool = False) -> list[Budget]:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category))
            .where(Budget.user_id == self.user_id)
            .order_by(Budget.start_date.desc(), Budget.id.desc())
        )
        if active_only:
            stmt = stmt.where(Budget.is_active.is_(True))
        return list(self.session.scalars(stmt).all())

    def _covering(self, category_id: int, on_date: date) -> list[Budget]:
        stmt = select(Budget).where(
            Budget.user_id == self.user_id,
            Budget.category_id == category_id,
            Budget.is_active.is_(True),
            Budget.start_date <= on_date,
            Budget.end_date >= on_date,
        )
        return list(self.session.scalars(stmt).all())

    def record_spending(self, category_id: int, amount_cents: int, on_date: date) -> int:
        """Add an expense to every active budget covering ``on_date``; returns how many."""
        budgets = self._covering(category_id, on_date)
        for budget in budgets:
            budget.spent_cents += amount_cents
            budget.recalculate_remaining()
        return len(budgets)

    def _spent_from_transactions(self, budget: Budget) -> int:
        stmt = select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
            Transaction.user_id == budget.user_id,
            Transaction.category_id == budget.category_id,
            Transaction.type == TransactionType.expense,
            Transaction.date.between(budget.start_date, budget.end_date),
        )
        return int(self.session.execute(stmt).scalar_one())

    def refresh_spending(self) -> int:
        budgets = self.list(active_only=True)
        for budget in budgets:
            budget.spent_cents = self._spent_from_transactions(budget)
            budget.recalculate_remaining()
        self.session.commit()
        logger.info(
            f"budget_spending_refreshed: user_id={self.user_id} budgets={len(budgets)}"
        )
        return len(budgets)

    def summary(self, *, today: Optional[date] = None) -> BudgetSummary:
        today = today or date.today()
        budgets = [b for b in self.list(active_only=True) if b.end_date >= today]
        total_budget = sum(b.amount_cents for b in budgets)
        total_spent = sum(b.spent_cents for b in budgets)
        return BudgetSummary(
            total_budget_cents=total_budget,
            total_spent_cents=total_spent,
            total_remaining_cents=total_budget - total_spent,
            percentage_used=pct(total_spent, total_budget),
            budget_status=budget_status(total_spent, total_budget),
        )


class GoalService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def create(self, data: GoalIn) -> FinancialGoal:
        goal = FinancialGoal(
            user_id=self.user_id,
            title=data.title.strip(),
            description=data.description,
            target_amount_cents=data.target_amount_cents,
            current_amount_cents=data.current_amount_cents,
            target_date=data.target_date,
            goal_type=data.goal_type,
            status=GoalStatus.active,
        )
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def list_active(self) -> list[FinancialGoal]:
        stmt = (
            select(FinancialGoal)
            .where(
                FinancialGoal.user_id == self.user_id,
                FinancialGoal.status == GoalStatus.active,
            )
            .order_by(FinancialGoal.id)
        )
        return list(self.session.scalars(stmt).all())


def refresh_spending_for_all_users(session: Session) -> int:
    user_ids = session.scalars(
        select(Budget.user_id).where(Budget.is_active.is_(True)).distinct()
    ).all()
    refreshed = 0
    for user_id in user_ids:
        refreshed += BudgetService(session, user_id).refresh_spending()
    return refreshed
