import logging
from datetime import date
from typing import Optional, Sequence

from analytics import (
    BudgetPerformanceService,
    income_and_expenses,
    relative_change,
    savings_rate,
    top_categories,
    typed_breakdown,
)
from models import TransactionType
from periods import dashboard_period
from repositories import (
    BudgetQuery,
    BudgetRecord,
    GoalQuery,
    GoalRecord,
    TransactionQuery,
    TransactionRecord,
)
from schemas import DashboardSummary, GoalProgress, QuickStats, TransactionOut
from thresholds import RECENT_TRANSACTIONS_LIMIT, TOP_CATEGORIES_LIMIT, round_pct

logger = logging.getLogger(__name__)


def goal_progress(goal: GoalRecord) -> GoalProgress:
    progress = 0.0
    if goal.target_amount_cents > 0:
        progress = min(
            100.0,
            round_pct(goal.current_amount_cents * 100 / goal.target_amount_cents),
        )
    return GoalProgress(
        id=goal.id,
        title=goal.title,
        goal_type=goal.goal_type,
        target_amount_cents=goal.target_amount_cents,
        current_amount_cents=goal.current_amount_cents,
        target_date=goal.target_date,
        progress=progress,
    )


def most_used_category(transactions: Sequence[TransactionRecord]) -> str:
    counts: dict[str, int] = {}
    for txn in transactions:
        if txn.category_name:
            counts[txn.category_name] = counts.get(txn.category_name, 0) + 1
    best = ""
    best_count = 0
    for name, count in counts.items():
        if count > best_count:
            best, best_count = name, count
    return best


def cash_flow_trend(transactions: Sequence[TransactionRecord]) -> str:
    if not transactions:
        return "stable"
    midpoint = len(transactions) // 2
    older = sum(t.amount_cents for t in transactions[:midpoint])
    recent = sum(t.amount_cents for t in transactions[midpoint:])
    change = relative_change(recent, older)
    if change > 0:
        return "positive"
    if change < 0:
        return "negative"
    return "stable"


def days_until_next_budget(budgets: Sequence[BudgetRecord], today: date) -> int:
    upcoming = [(b.end_date - today).days for b in budgets if b.end_date >= today]
    return min(upcoming) if upcoming else 0


def quick_stats(
    transactions: Sequence[TransactionRecord],
    budgets: Sequence[BudgetRecord],
    today: date,
) -> QuickStats:
    total = len(transactions)
    average = 0
    if total:
        average = round(sum(t.amount_cents for t in transactions) / total)
    largest_expense = max(
        (t.amount_cents for t in transactions if t.type == TransactionType.expense),
        default=0,
    )
    return QuickStats(
        total_transactions=total,
        average_transaction_cents=average,
        largest_expense_cents=largest_expense,
        most_used_category=most_used_category(transactions),
        days_until_next_budget=days_until_next_budget(budgets, today),
        cash_flow_trend=cash_flow_trend(transactions),
    )


class DashboardService:
    def __init__(
        self,
        transactions: TransactionQuery,
        budgets: BudgetQuery,
        goals: GoalQuery,
        *,
        top_limit: int = TOP_CATEGORIES_LIMIT,
        recent_limit: int = RECENT_TRANSACTIONS_LIMIT,
    ) -> None:
        self.transactions = transactions
        self.budgets = budgets
        self.goals = goals
        self.budget_performance = BudgetPerformanceService(transactions, budgets)
        self.top_limit = top_limit
        self.recent_limit = recent_limit

    def summary(
        self,
        user_id: int,
        period: Optional[str] = "month",
        *,
        today: Optional[date] = None,
    ) -> DashboardSummary:
        today = today or date.today()
        window = dashboard_period(period, today=today)

        txns = self.transactions.get_transactions(user_id, window)
        income, expenses = income_and_expenses(txns)
        savings = income - expenses
        expense_breakdown = typed_breakdown(txns, TransactionType.expense)
        recent = sorted(txns, key=lambda t: (t.date, t.id), reverse=True)
        alerts = self.budget_performance.alerts(user_id, window, today=today)
        active_budgets = self.budgets.get_budgets(user_id, window, active_only=True)
        goals = [goal_progress(g) for g in self.goals.get_active_goals(user_id)]

        logger.info(
            f"dashboard_built: user_id={user_id} period={window.slug} "
            f"transactions={len(txns)} alerts={len(alerts)}"
        )
        return DashboardSummary(
            user_id=user_id,
            period=window.slug,
            start_date=window.start,
            end_date=window.end,
            total_balance_cents=savings,
            income_cents=income,
            expense_cents=expenses,
            savings_cents=savings,
            savings_rate=savings_rate(income, expenses),
            top_expense_categories=top_categories(expense_breakdown, self.top_limit),
            recent_transactions=[
                TransactionOut.model_validate(t) for t in recent[: self.recent_limit]
            ],
            budget_alerts=alerts,
            financial_goals=goals,
            quick_stats=quick_stats(txns, active_budgets, today),
        )
