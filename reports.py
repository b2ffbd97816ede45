import calendar
import logging
from datetime import date, datetime, timezone
from typing import Optional

from analytics import (
    BudgetPerformanceService,
    TrendService,
    category_breakdown,
    daily_averages,
    expense_ratio,
    income_and_expenses,
    savings_rate,
    score_from_performance,
    top_categories,
    typed_breakdown,
)
from models import TransactionType
from periods import DateLike, Period, quarter_of, report_period
from repositories import BudgetQuery, TransactionQuery
from schemas import BudgetPerformanceMetrics, CategoryMetric, FinancialReport
from thresholds import (
    BUDGET_SCORE_GOOD,
    BUDGET_SCORE_GREAT,
    CATEGORY_CONCENTRATION_PCT,
    CATEGORY_REDUCTION_PCT,
    SAVINGS_EXCELLENT_PCT,
    SAVINGS_GOOD_PCT,
    TOP_CATEGORIES_LIMIT,
    pct,
)

logger = logging.getLogger(__name__)

STANDING_RECOMMENDATIONS = (
    "Track your expenses daily for better financial awareness.",
    "Review and update your budgets monthly.",
    "Consider setting up an emergency fund if you haven't already.",
)


def _short_date(d: date) -> str:
    return f"{calendar.month_abbr[d.month]} {d.day}, {d.year}"


def report_title(report_type: str, start: date, end: date) -> str:
    if report_type == "monthly":
        return f"{calendar.month_name[start.month]} {start.year} Monthly Report"
    if report_type == "quarterly":
        return f"Q{quarter_of(start)} {start.year} Quarterly Report"
    if report_type == "yearly":
        return f"{start.year} Annual Report"
    if report_type == "custom":
        return f"Custom Report ({_short_date(start)} - {_short_date(end)})"
    return "Financial Report"


def budget_performance_score(performance: BudgetPerformanceMetrics) -> float:
    """Share of the total budget left unspent; 100 when nothing is budgeted."""
    if performance.total_budgeted_cents == 0:
        return 100.0
    return pct(performance.variance_cents, performance.total_budgeted_cents)


def build_insights(
    savings: float,
    expense_breakdown: list[CategoryMetric],
    performance: BudgetPerformanceMetrics,
) -> list[str]:
    insights: list[str] = []

    if savings > SAVINGS_EXCELLENT_PCT:
        insights.append(
            "Excellent savings rate! You're saving more than 20% of your income."
        )
    elif savings > SAVINGS_GOOD_PCT:
        insights.append(
            "Good savings rate. Consider increasing to 20% for better financial security."
        )
    elif savings > 0:
        insights.append("You're saving money, but there's room for improvement.")
    else:
        insights.append(
            "Warning: You're spending more than you earn. Review your expenses."
        )

    score = budget_performance_score(performance)
    if score > BUDGET_SCORE_GREAT:
        insights.append("Great budget management! You're staying within your limits.")
    elif score > BUDGET_SCORE_GOOD:
        insights.append("Good budget control with some room for improvement.")
    else:
        insights.append(
            "Budget management needs attention. Consider reviewing your spending habits."
        )

    for category in expense_breakdown:
        if category.percentage_of_total > CATEGORY_CONCENTRATION_PCT:
            insights.append(
                f"High spending in {category.category_name} category "
                f"({category.percentage_of_total:.1f}% of total expenses)."
            )
    return insights


def build_recommendations(
    savings: float,
    expense_breakdown: list[CategoryMetric],
    performance: BudgetPerformanceMetrics,
) -> list[str]:
    recommendations: list[str] = []
    if savings < SAVINGS_GOOD_PCT:
        recommendations.append("Try to save at least 10% of your income each month.")
    if savings < SAVINGS_EXCELLENT_PCT:
        recommendations.append(
            "Consider automating your savings to reach a 20% savings rate."
        )
    if performance.categories_over_budget > 0:
        recommendations.append("Review and adjust budgets for overspent categories.")
    for category in expense_breakdown:
        if category.percentage_of_total > CATEGORY_REDUCTION_PCT:
            recommendations.append(
                f"Consider reducing spending in {category.category_name} category."
            )
    recommendations.extend(STANDING_RECOMMENDATIONS)
    return recommendations


class ReportService:
    """Compiles financial reports for monthly, quarterly, yearly or custom windows.

    The report type only decides the window; every report is produced by
    ``generate_for_period`` from a single transaction snapshot plus the
    trend and budget queries for the same window.
    """

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

    def generate(self, user_id: int, report_type: str, **period_params) -> FinancialReport:
        period = report_period(report_type, **period_params)
        return self.generate_for_period(user_id, period)

    def monthly(self, user_id: int, year: int, month: int) -> FinancialReport:
        return self.generate(user_id, "monthly", year=year, month=month)

    def quarterly(self, user_id: int, year: int, quarter: int) -> FinancialReport:
        return self.generate(user_id, "quarterly", year=year, quarter=quarter)

    def yearly(self, user_id: int, year: int) -> FinancialReport:
        return self.generate(user_id, "yearly", year=year)

    def custom(self, user_id: int, start: DateLike, end: DateLike) -> FinancialReport:
        return self.generate(user_id, "custom", start=start, end=end)

    def generate_for_period(
        self, user_id: int, period: Period, *, generated_at: Optional[datetime] = None
    ) -> FinancialReport:
        txns = self.transactions.get_transactions(user_id, period)
        income, expenses = income_and_expenses(txns)
        savings = savings_rate(income, expenses)
        ratio = expense_ratio(income, expenses)

        income_breakdown = typed_breakdown(txns, TransactionType.income)
        expense_breakdown = typed_breakdown(txns, TransactionType.expense)
        monthly_trends = self.trends.monthly_series(user_id, period)
        performance = self.budget_performance.evaluate(user_id, period)

        report = FinancialReport(
            user_id=user_id,
            report_type=period.slug,
            title=report_title(period.slug, period.start, period.end),
            start_date=period.start,
            end_date=period.end,
            period_days=period.days,
            total_income_cents=income,
            total_expense_cents=expenses,
            net_income_cents=income - expenses,
            savings_rate=savings,
            expense_ratio=ratio,
            transaction_count=len(txns),
            daily_averages=daily_averages(income, expenses, period.days),
            category_breakdown=category_breakdown(txns),
            monthly_trends=monthly_trends,
            budget_performance=performance,
            financial_health=score_from_performance(savings, ratio, performance),
            top_income_categories=top_categories(income_breakdown, self.top_limit),
            top_expense_categories=top_categories(expense_breakdown, self.top_limit),
            insights=build_insights(savings, expense_breakdown, performance),
            recommendations=build_recommendations(
                savings, expense_breakdown, performance
            ),
            generated_at=generated_at or datetime.now(timezone.utc),
        )
        logger.info(
            f"report_generated: user_id={user_id} type={period.slug} "
            f"start={period.start} end={period.end} transactions={len(txns)}"
        )
        return report
