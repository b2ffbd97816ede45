"""Category breakdowns, trend series, budget performance and health scoring."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from models import TransactionType
from periods import (
    DateLike,
    Period,
    add_months,
    month_end,
    month_start,
    period_between,
    week_start,
)
from repositories import BudgetQuery, BudgetRecord, TransactionQuery, TransactionRecord
from schemas import (
    BudgetAlert,
    BudgetPerformanceMetrics,
    BudgetStatusEntry,
    CategoryMetric,
    DailyAverages,
    FinancialHealthScore,
    FinancialMetrics,
    IncomeExpenseAnalysis,
    MonthlyTrend,
    WeeklyTrend,
)
from thresholds import (
    ALERT_CRITICAL_PCT,
    ALERT_DANGER_PCT,
    ALERT_WARNING_PCT,
    BUDGET_OVER_PCT,
    BUDGET_SCORE_BANDS,
    BUDGET_WARNING_PCT,
    EXPENSE_SCORE_BANDS,
    HEALTH_HIGH_EXPENSE_PCT,
    HEALTH_LOW_SAVINGS_PCT,
    HEALTH_STATUS_BANDS,
    SAVINGS_SCORE_BANDS,
    TOP_CATEGORIES_LIMIT,
    TREND_DECREASE_FACTOR,
    TREND_INCREASE_FACTOR,
    pct,
    round_cents,
    round_pct,
)

logger = logging.getLogger(__name__)


def income_and_expenses(transactions: Iterable[TransactionRecord]) -> tuple[int, int]:
    income = 0
    expenses = 0
    for txn in transactions:
        if txn.type == TransactionType.income:
            income += txn.amount_cents
        else:
            expenses += txn.amount_cents
    return income, expenses


def savings_rate(income_cents: int, expense_cents: int) -> float:
    return pct(income_cents - expense_cents, income_cents)


def expense_ratio(income_cents: int, expense_cents: int) -> float:
    return pct(expense_cents, income_cents)


def daily_averages(income_cents: int, expense_cents: int, days: int) -> DailyAverages:
    days = max(days, 1)
    return DailyAverages(
        daily_income_cents=round_cents(income_cents / days),
        daily_expense_cents=round_cents(expense_cents / days),
        daily_net_cents=round_cents((income_cents - expense_cents) / days),
    )


def _scaled(amount: int, factor: float) -> Decimal:
    return Decimal(amount) * Decimal(repr(factor))


def relative_change(current: int, baseline: int) -> int:
    """1 above +10% of ``baseline``, -1 below -10%, otherwise 0."""
    if current > _scaled(baseline, TREND_INCREASE_FACTOR):
        return 1
    if current < _scaled(baseline, TREND_DECREASE_FACTOR):
        return -1
    return 0


def trend_label(current_cents: int, previous_cents: int) -> str:
    change = relative_change(current_cents, previous_cents)
    if change > 0:
        return "increasing"
    if change < 0:
        return "decreasing"
    return "stable"


@dataclass
class _CategoryTotals:
    name: str
    total: int = 0
    count: int = 0


def category_breakdown(transactions: Iterable[TransactionRecord]) -> list[CategoryMetric]:
    """Per-category totals, largest first; equal totals by ascending category id."""
    totals: dict[int, _CategoryTotals] = {}
    for txn in transactions:
        entry = totals.get(txn.category_id)
        if entry is None:
            entry = totals[txn.category_id] = _CategoryTotals(txn.category_name)
        entry.total += txn.amount_cents
        entry.count += 1

    grand_total = sum(entry.total for entry in totals.values())
    breakdown = [
        CategoryMetric(
            category_id=category_id,
            category_name=entry.name,
            total_cents=entry.total,
            transaction_count=entry.count,
            average_cents=round(entry.total / entry.count),
            percentage_of_total=pct(entry.total, grand_total),
        )
        for category_id, entry in totals.items()
    ]
    breakdown.sort(key=lambda m: (-m.total_cents, m.category_id))
    return breakdown


def typed_breakdown(
    transactions: Iterable[TransactionRecord], transaction_type: TransactionType
) -> list[CategoryMetric]:
    return category_breakdown(t for t in transactions if t.type == transaction_type)


def top_categories(
    breakdown: Sequence[CategoryMetric], limit: int = TOP_CATEGORIES_LIMIT
) -> list[CategoryMetric]:
    return list(breakdown[:limit])


class TrendService:
    def __init__(self, transactions: TransactionQuery) -> None:
        self.transactions = transactions

    def _bucket(self, user_id: int, bucket: Period) -> list[TransactionRecord]:
        return self.transactions.get_transactions(user_id, bucket)

    def monthly_series(self, user_id: int, period: Period) -> list[MonthlyTrend]:
        out: list[MonthlyTrend] = []
        current = month_start(period.start)
        while current <= period.end:
            bucket = Period(period.slug, current, month_end(current))
            income, expenses = income_and_expenses(self._bucket(user_id, bucket))
            out.append(
                MonthlyTrend(
                    label=f"{current.year:04d}-{current.month:02d}",
                    month=calendar.month_name[current.month],
                    year=current.year,
                    start=bucket.start,
                    end=bucket.end,
                    income_cents=income,
                    expense_cents=expenses,
                    net_cents=income - expenses,
                    savings_rate=savings_rate(income, expenses),
                )
            )
            current = add_months(current, 1)
        return out

    def weekly_series(self, user_id: int, period: Period) -> list[WeeklyTrend]:
        out: list[WeeklyTrend] = []
        current = week_start(period.start)
        week_number = 1
        while current <= period.end:
            bucket = Period(
                period.slug, current, min(current + timedelta(days=6), period.end)
            )
            txns = self._bucket(user_id, bucket)
            income, expenses = income_and_expenses(txns)
            iso_year, iso_week, _ = current.isocalendar()
            out.append(
                WeeklyTrend(
                    week_number=week_number,
                    label=f"{iso_year:04d}-W{iso_week:02d}",
                    start=bucket.start,
                    end=bucket.end,
                    income_cents=income,
                    expense_cents=expenses,
                    net_cents=income - expenses,
                    savings_rate=savings_rate(income, expenses),
                    transaction_count=len(txns),
                )
            )
            current += timedelta(days=7)
            week_number += 1
        return out


def budget_status(spent_cents: int, amount_cents: int) -> str:
    if amount_cents == 0:
        return "no_budget"
    used = pct(spent_cents, amount_cents)
    if used >= BUDGET_OVER_PCT:
        return "over_budget"
    if used >= BUDGET_WARNING_PCT:
        return "warning"
    return "on_track"


def alert_level(percentage_used: float) -> str:
    used = round_pct(percentage_used)
    if used >= ALERT_CRITICAL_PCT:
        return "critical"
    if used >= ALERT_DANGER_PCT:
        return "danger"
    if used >= ALERT_WARNING_PCT:
        return "warning"
    return "normal"


class BudgetPerformanceService:
    def __init__(self, transactions: TransactionQuery, budgets: BudgetQuery) -> None:
        self.transactions = transactions
        self.budgets = budgets

    def spent_for(self, user_id: int, budget: BudgetRecord, period: Period) -> int:
        """Expense spending in the budget's category over the overlap of both windows."""
        window = period.clip(budget.start_date, budget.end_date)
        if window is None:
            return 0
        txns = self.transactions.get_transactions(
            user_id,
            window,
            transaction_type=TransactionType.expense,
            category_id=budget.category_id,
        )
        return sum(t.amount_cents for t in txns)

    def _entry(self, budget: BudgetRecord, spent: int) -> BudgetStatusEntry:
        return BudgetStatusEntry(
            budget_id=budget.id,
            category_id=budget.category_id,
            category_name=budget.category_name,
            amount_cents=budget.amount_cents,
            spent_cents=spent,
            remaining_cents=budget.amount_cents - spent,
            percentage_used=pct(spent, budget.amount_cents),
            status=budget_status(spent, budget.amount_cents),
            over_budget=spent > budget.amount_cents,
        )

    def evaluate(self, user_id: int, period: Period) -> BudgetPerformanceMetrics:
        entries = [
            self._entry(budget, self.spent_for(user_id, budget, period))
            for budget in self.budgets.get_budgets(user_id, period)
        ]
        total_budgeted = sum(e.amount_cents for e in entries)
        total_spent = sum(e.spent_cents for e in entries)
        over = sum(1 for e in entries if e.over_budget)
        variance = total_budgeted - total_spent
        return BudgetPerformanceMetrics(
            total_budgeted_cents=total_budgeted,
            total_spent_cents=total_spent,
            variance_cents=variance,
            variance_percentage=pct(variance, total_budgeted),
            categories_over_budget=over,
            categories_under_budget=len(entries) - over,
            budgets=entries,
        )

    def alerts(
        self, user_id: int, period: Period, *, today: Optional[date] = None
    ) -> list[BudgetAlert]:
        today = today or date.today()
        alerts: list[BudgetAlert] = []
        for budget in self.budgets.get_budgets(user_id, period, active_only=True):
            spent = self.spent_for(user_id, budget, period)
            used = pct(spent, budget.amount_cents)
            level = alert_level(used)
            if level == "normal":
                continue
            alerts.append(
                BudgetAlert(
                    budget_id=budget.id,
                    category_id=budget.category_id,
                    category_name=budget.category_name,
                    budget_amount_cents=budget.amount_cents,
                    spent_cents=spent,
                    percentage_used=used,
                    alert_level=level,
                    days_remaining=max(0, (budget.end_date - today).days),
                )
            )
        return alerts


def health_status(overall_score: int) -> str:
    for minimum, status in HEALTH_STATUS_BANDS:
        if overall_score >= minimum:
            return status
    return "poor"


def _savings_score(rate: float) -> int:
    for minimum, points in SAVINGS_SCORE_BANDS:
        if rate >= minimum:
            return points
    return 0


def _spending_score(ratio: float) -> int:
    for maximum, points in EXPENSE_SCORE_BANDS:
        if ratio <= maximum:
            return points
    return 0


def _budget_score(variance_percentage: float) -> int:
    for low, high, points in BUDGET_SCORE_BANDS:
        if low <= variance_percentage <= high:
            return points
    return 0


def score_financial_health(
    savings_rate: float,
    expense_ratio: float,
    variance_percentage: float,
    *,
    categories_over_budget: int = 0,
    categories_under_budget: int = 0,
) -> FinancialHealthScore:
    savings_rate = round_pct(savings_rate)
    expense_ratio = round_pct(expense_ratio)
    variance_percentage = round_pct(variance_percentage)

    savings_score = _savings_score(savings_rate)
    spending_score = _spending_score(expense_ratio)
    budget_score = _budget_score(variance_percentage)
    overall = savings_score + spending_score + budget_score

    recommendations: list[str] = []
    if savings_rate < HEALTH_LOW_SAVINGS_PCT:
        recommendations.append(
            "Consider increasing your savings rate to at least 10% of income"
        )
    if expense_ratio > HEALTH_HIGH_EXPENSE_PCT:
        recommendations.append(
            "Your expenses are high relative to income. Look for areas to reduce spending"
        )
    if categories_over_budget > categories_under_budget:
        recommendations.append(
            "Review and adjust budgets for categories where you're overspending"
        )

    return FinancialHealthScore(
        overall_score=overall,
        savings_score=savings_score,
        spending_score=spending_score,
        budget_score=budget_score,
        health_status=health_status(overall),
        recommendations=recommendations,
    )


def score_from_performance(
    savings: float, ratio: float, performance: BudgetPerformanceMetrics
) -> FinancialHealthScore:
    return score_financial_health(
        savings,
        ratio,
        performance.variance_percentage,
        categories_over_budget=performance.categories_over_budget,
        categories_under_budget=performance.categories_under_budget,
    )


class MetricsService:
    def __init__(
        self,
        transactions: TransactionQuery,
        budgets: BudgetQuery,
        *,
        top_limit: int = TOP_CATEGORIES_LIMIT,
    ) -> None:
        self.transactions = transactions
        self.trends = TrendService(transactions)
        self.budget_performance = BudgetPerformanceService(transactions, budgets)
        self.top_limit = top_limit

    def financial_metrics(
        self, user_id: int, period_name: str, start: DateLike, end: DateLike
    ) -> FinancialMetrics:
        window = period_between(period_name, start, end)
        txns = self.transactions.get_transactions(user_id, window)
        income, expenses = income_and_expenses(txns)
        savings = savings_rate(income, expenses)
        ratio = expense_ratio(income, expenses)
        performance = self.budget_performance.evaluate(user_id, window)
        logger.info(
            f"financial_metrics: user_id={user_id} start={window.start} "
            f"end={window.end} transactions={len(txns)}"
        )
        return FinancialMetrics(
            user_id=user_id,
            period=period_name,
            start_date=window.start,
            end_date=window.end,
            total_income_cents=income,
            total_expense_cents=expenses,
            net_income_cents=income - expenses,
            savings_rate=savings,
            expense_ratio=ratio,
            cash_flow_cents=income - expenses,
            transaction_count=len(txns),
            category_breakdown=category_breakdown(txns),
            monthly_trends=self.trends.monthly_series(user_id, window),
            budget_performance=performance,
            financial_health=score_from_performance(savings, ratio, performance),
        )

    def income_expense_analysis(
        self, user_id: int, period_name: str, start: DateLike, end: DateLike
    ) -> IncomeExpenseAnalysis:
        window = period_between(period_name, start, end)
        txns = self.transactions.get_transactions(user_id, window)
        income, expenses = income_and_expenses(txns)
        income_breakdown = typed_breakdown(txns, TransactionType.income)
        expense_breakdown = typed_breakdown(txns, TransactionType.expense)
        return IncomeExpenseAnalysis(
            user_id=user_id,
            period=period_name,
            start_date=window.start,
            end_date=window.end,
            income_breakdown=income_breakdown,
            expense_breakdown=expense_breakdown,
            top_income_categories=top_categories(income_breakdown, self.top_limit),
            top_expense_categories=top_categories(expense_breakdown, self.top_limit),
            daily_averages=daily_averages(income, expenses, window.days),
            weekly_trends=self.trends.weekly_series(user_id, window),
        )

    def category_analysis(
        self, user_id: int, category_id: int, start: DateLike, end: DateLike
    ) -> CategoryMetric:
        window = period_between("category", start, end)
        txns = self.transactions.get_transactions(
            user_id, window, category_id=category_id
        )
        if not txns:
            return CategoryMetric(category_id=category_id, category_name="")

        total = sum(t.amount_cents for t in txns)
        same_type = self.transactions.get_transactions(
            user_id, window, transaction_type=txns[0].type
        )
        previous = self.transactions.get_transactions(
            user_id, window.previous(), category_id=category_id
        )
        return CategoryMetric(
            category_id=category_id,
            category_name=txns[0].category_name,
            total_cents=total,
            transaction_count=len(txns),
            average_cents=round(total / len(txns)),
            percentage_of_total=pct(total, sum(t.amount_cents for t in same_type)),
            trend=trend_label(total, sum(t.amount_cents for t in previous)),
        )
