from datetime import date, datetime, timezone

import pytest

from periods import InvalidPeriodError, report_period
from reports import ReportService, report_title


def _january_ledger(ledger):
    ledger.categories.update({1: "Salary", 2: "Freelance", 3: "Rent", 4: "Food"})
    ledger.income(date(2024, 1, 1), 500_000, 1)
    ledger.expense(date(2024, 1, 5), 30_000, 3)
    ledger.expense(date(2024, 1, 15), 25_000, 4)
    ledger.income(date(2024, 1, 20), 100_000, 2)
    return ledger


def test_monthly_report_totals(ledger) -> None:
    report = ReportService(_january_ledger(ledger), ledger).monthly(1, 2024, 1)

    assert report.total_income_cents == 600_000
    assert report.total_expense_cents == 55_000
    assert report.net_income_cents == 545_000
    assert report.savings_rate == 90.83
    assert report.expense_ratio == 9.17
    assert report.transaction_count == 4
    assert report.period_days == 31
    assert report.title == "January 2024 Monthly Report"
    assert [m.category_id for m in report.top_income_categories] == [1, 2]
    assert [m.category_id for m in report.top_expense_categories] == [3, 4]
    assert len(report.monthly_trends) == 1
    assert report.insights[0].startswith("Excellent savings rate")


def test_expense_concentration_insights(ledger) -> None:
    report = ReportService(_january_ledger(ledger), ledger).monthly(1, 2024, 1)

    assert any(i.startswith("High spending in Rent category") for i in report.insights)
    assert any(i.startswith("High spending in Food category") for i in report.insights)
    assert "Consider reducing spending in Food category." in report.recommendations
    assert report.recommendations[-1] == (
        "Consider setting up an emergency fund if you haven't already."
    )


def test_empty_month_report(ledger) -> None:
    report = ReportService(ledger, ledger).monthly(1, 2024, 2)

    assert report.total_income_cents == 0
    assert report.total_expense_cents == 0
    assert report.transaction_count == 0
    assert report.savings_rate == 0.0
    assert report.category_breakdown == []
    assert report.financial_health.overall_score == 60
    assert report.insights[0].startswith("Warning: You're spending more")
    assert "Great budget management! You're staying within your limits." in report.insights


def test_custom_report_is_inclusive_of_single_day(ledger) -> None:
    ledger.expense(date(2023, 12, 31), 1_000, 4)
    ledger.expense(date(2024, 1, 1), 2_000, 4)
    ledger.expense(date(2024, 1, 2), 4_000, 4)

    report = ReportService(ledger, ledger).custom(
        1, date(2024, 1, 1), datetime(2024, 1, 1, 23, 59, 59)
    )

    assert report.transaction_count == 1
    assert report.total_expense_cents == 2_000
    assert report.title == "Custom Report (Jan 1, 2024 - Jan 1, 2024)"


def test_invalid_quarter_raises_before_querying(failing_ledger) -> None:
    service = ReportService(failing_ledger, failing_ledger)
    with pytest.raises(InvalidPeriodError, match="invalid quarter"):
        service.quarterly(1, 2024, 5)


def test_collaborator_errors_propagate(failing_ledger) -> None:
    service = ReportService(failing_ledger, failing_ledger)
    with pytest.raises(RuntimeError, match="ledger unavailable"):
        service.yearly(1, 2024)


def test_generated_at_is_passed_through(ledger) -> None:
    stamp = datetime(2024, 2, 1, tzinfo=timezone.utc)
    period = report_period("yearly", year=2024)
    report = ReportService(ledger, ledger).generate_for_period(
        1, period, generated_at=stamp
    )
    assert report.generated_at == stamp
    assert report.period_days == 366


def test_report_titles() -> None:
    assert report_title("quarterly", date(2024, 4, 1), date(2024, 6, 30)) == (
        "Q2 2024 Quarterly Report"
    )
    assert report_title("yearly", date(2024, 1, 1), date(2024, 12, 31)) == (
        "2024 Annual Report"
    )
