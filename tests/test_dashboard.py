from datetime import date

from dashboard import DashboardService, cash_flow_trend, most_used_category

TODAY = date(2024, 1, 20)


def _service(ledger) -> DashboardService:
    return DashboardService(ledger, ledger, ledger)


def test_budget_at_75_percent_is_a_warning(ledger) -> None:
    ledger.add_budget(4, 200_000, date(2024, 1, 1), date(2024, 1, 31))
    ledger.expense(date(2024, 1, 10), 150_000, 4)

    summary = _service(ledger).summary(1, "month", today=TODAY)

    assert len(summary.budget_alerts) == 1
    alert = summary.budget_alerts[0]
    assert alert.percentage_used == 75.0
    assert alert.alert_level == "warning"
    assert alert.days_remaining == 11


def test_budget_at_85_percent_is_danger(ledger) -> None:
    ledger.add_budget(4, 200_000, date(2024, 1, 1), date(2024, 1, 31))
    ledger.expense(date(2024, 1, 10), 170_000, 4)

    summary = _service(ledger).summary(1, "month", today=TODAY)

    assert [a.alert_level for a in summary.budget_alerts] == ["danger"]


def test_summary_totals_and_recent_transactions(ledger) -> None:
    ledger.categories.update({1: "Salary", 4: "Food"})
    ledger.income(date(2024, 1, 1), 300_000, 1)
    for day in range(2, 14):
        ledger.expense(date(2024, 1, day), 1_000 * day, 4)
    ledger.expense(date(2023, 11, 1), 99_999, 4)

    summary = _service(ledger).summary(1, "month", today=TODAY)

    assert summary.start_date == date(2023, 12, 20)
    assert summary.end_date == TODAY
    assert summary.income_cents == 300_000
    assert summary.expense_cents == 90_000
    assert summary.savings_cents == 210_000
    assert summary.total_balance_cents == 210_000
    assert summary.savings_rate == 70.0
    assert len(summary.recent_transactions) == 10
    assert summary.recent_transactions[0].date == date(2024, 1, 13)
    assert summary.recent_transactions[0].category_name == "Food"
    assert summary.quick_stats.total_transactions == 13
    assert summary.quick_stats.largest_expense_cents == 13_000
    assert summary.quick_stats.most_used_category == "Food"
    assert [m.category_id for m in summary.top_expense_categories] == [4]


def test_empty_dashboard(ledger) -> None:
    summary = _service(ledger).summary(1, "year", today=TODAY)

    assert summary.period == "year"
    assert summary.income_cents == 0
    assert summary.recent_transactions == []
    assert summary.budget_alerts == []
    assert summary.financial_goals == []
    assert summary.quick_stats.average_transaction_cents == 0
    assert summary.quick_stats.most_used_category == ""
    assert summary.quick_stats.days_until_next_budget == 0
    assert summary.quick_stats.cash_flow_trend == "stable"


def test_goal_progress_is_capped(ledger) -> None:
    ledger.add_goal("Emergency fund", 100_000, 25_000)
    ledger.add_goal("Laptop", 50_000, 80_000)
    ledger.add_goal("Open ended", 0, 10_000)

    goals = _service(ledger).summary(1, today=TODAY).financial_goals

    assert [g.progress for g in goals] == [25.0, 100.0, 0.0]


def test_days_until_next_budget_uses_nearest_end(ledger) -> None:
    ledger.add_budget(4, 10_000, date(2024, 1, 1), date(2024, 1, 31))
    ledger.add_budget(5, 10_000, date(2024, 1, 15), date(2024, 1, 25))
    ledger.add_budget(6, 10_000, date(2024, 1, 1), date(2024, 1, 10))

    stats = _service(ledger).summary(1, today=TODAY).quick_stats

    assert stats.days_until_next_budget == 5


def test_cash_flow_trend_and_most_used(ledger) -> None:
    ledger.categories.update({1: "Salary", 2: "Food"})
    ledger.expense(date(2024, 1, 1), 1_000, 2)
    ledger.income(date(2024, 1, 2), 1_000, 1)
    ledger.income(date(2024, 1, 3), 5_000, 1)
    ledger.expense(date(2024, 1, 4), 5_000, 2)

    assert cash_flow_trend(ledger.transactions) == "positive"
    assert cash_flow_trend(list(reversed(ledger.transactions))) == "negative"
    assert most_used_category(ledger.transactions) == "Food"
