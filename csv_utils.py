import csv
import re
from io import StringIO
from typing import Sequence

from repositories import BudgetRecord, TransactionRecord
from schemas import FinancialReport


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    if value.startswith(("=", "+", "-", "@", "\t", "\r")):
        return "\t" + value

    for pattern in (r"^cmd\s*", r"^powershell\s*", r"^http[s]?://"):
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def format_cents(cents: float) -> str:
    return f"{cents / 100:.2f}"


def export_transactions(transactions: Sequence[TransactionRecord]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["ID", "Date", "Type", "Amount", "Category", "Description"])
    for txn in transactions:
        writer.writerow(
            [
                txn.id,
                txn.date.isoformat(),
                txn.type.value,
                format_cents(txn.amount_cents),
                sanitize_csv_value(txn.category_name),
                sanitize_csv_value(txn.description or ""),
            ]
        )
    return output.getvalue()


def export_budgets(budgets: Sequence[BudgetRecord]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(
        [
            "ID",
            "Category",
            "Amount",
            "Period",
            "Start Date",
            "End Date",
            "Spent",
            "Remaining",
            "Is Active",
        ]
    )
    for budget in budgets:
        writer.writerow(
            [
                budget.id,
                sanitize_csv_value(budget.category_name),
                format_cents(budget.amount_cents),
                budget.period.value,
                budget.start_date.isoformat(),
                budget.end_date.isoformat(),
                format_cents(budget.spent_cents),
                format_cents(budget.remaining_cents),
                "true" if budget.is_active else "false",
            ]
        )
    return output.getvalue()


def report_filename(report: FinancialReport) -> str:
    return f"financial_report_{report.report_type}_{report.start_date:%Y-%m}.csv"


def export_report(report: FinancialReport) -> str:
    """Summary rows, a blank separator, then the category breakdown."""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["Metric", "Value"])
    writer.writerow(["Report", report.title])
    writer.writerow(["Report Type", report.report_type])
    writer.writerow(
        ["Period", f"{report.start_date.isoformat()} to {report.end_date.isoformat()}"]
    )
    writer.writerow(["Total Income", format_cents(report.total_income_cents)])
    writer.writerow(["Total Expenses", format_cents(report.total_expense_cents)])
    writer.writerow(["Net Income", format_cents(report.net_income_cents)])
    writer.writerow(["Savings Rate", f"{report.savings_rate:.2f}%"])
    writer.writerow(["Expense Ratio", f"{report.expense_ratio:.2f}%"])
    writer.writerow(["Transaction Count", report.transaction_count])
    writer.writerow(["Health Score", report.financial_health.overall_score])
    writer.writerow([])
    writer.writerow(["Category", "Amount", "Percentage", "Transaction Count"])
    for metric in report.category_breakdown:
        writer.writerow(
            [
                sanitize_csv_value(metric.category_name),
                format_cents(metric.total_cents),
                f"{metric.percentage_of_total:.2f}%",
                metric.transaction_count,
            ]
        )
    return output.getvalue()
