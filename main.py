import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from analytics import MetricsService
from config import get_settings
from csv_utils import (
    export_budgets,
    export_report,
    export_transactions,
    report_filename,
)
from dashboard import DashboardService
from database import SessionLocal
from models import TransactionType
from periods import resolve_period
from reports import ReportService
from repositories import (
    SQLBudgetQuery,
    SQLGoalQuery,
    SQLTransactionQuery,
    budget_record,
    transaction_record,
)
from scheduler import SchedulerManager
from schemas import (
    BudgetIn,
    BudgetOut,
    BudgetSummary,
    BudgetUpdate,
    CategoryIn,
    CategoryMetric,
    CategoryOut,
    CategoryUpdate,
    CategoryUsage,
    DashboardSummary,
    FinancialMetrics,
    FinancialReport,
    GoalIn,
    GoalOut,
    IncomeExpenseAnalysis,
    TransactionIn,
    TransactionOut,
)
from services import (
    BudgetService,
    CategoryService,
    GoalService,
    NotFoundError,
    TransactionService,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

scheduler_manager = SchedulerManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler_manager.start()
    yield
    scheduler_manager.stop()


app = FastAPI(title="LedgerLens", lifespan=lifespan)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def http_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def report_service(db: Session) -> ReportService:
    return ReportService(
        SQLTransactionQuery(db),
        SQLBudgetQuery(db),
        top_limit=settings.top_categories_limit,
    )


def metrics_service(db: Session) -> MetricsService:
    return MetricsService(
        SQLTransactionQuery(db),
        SQLBudgetQuery(db),
        top_limit=settings.top_categories_limit,
    )


@app.get("/health")
def health():
    return {"status": "ok"}


def _generate_report(
    db: Session,
    user_id: int,
    report_type: str,
    year: Optional[int],
    month: Optional[int],
    quarter: Optional[int],
    start: Optional[date],
    end: Optional[date],
) -> FinancialReport:
    try:
        return report_service(db).generate(
            user_id,
            report_type,
            year=year,
            month=month,
            quarter=quarter,
            start=start,
            end=end,
        )
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/users/{user_id}/reports/{report_type}", response_model=FinancialReport)
def api_report(
    user_id: int,
    report_type: str,
    year: Optional[int] = None,
    month: Optional[int] = None,
    quarter: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    return _generate_report(db, user_id, report_type, year, month, quarter, start, end)


@app.get("/api/users/{user_id}/reports/{report_type}/export.csv")
def api_report_csv(
    user_id: int,
    report_type: str,
    year: Optional[int] = None,
    month: Optional[int] = None,
    quarter: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    report = _generate_report(
        db, user_id, report_type, year, month, quarter, start, end
    )
    return StreamingResponse(
        iter([export_report(report)]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{report_filename(report)}"'
        },
    )


@app.get("/api/users/{user_id}/analytics/metrics", response_model=FinancialMetrics)
def api_financial_metrics(
    user_id: int,
    period: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    try:
        window = resolve_period(period, start, end)
        return metrics_service(db).financial_metrics(
            user_id, window.slug, window.start, window.end
        )
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get(
    "/api/users/{user_id}/analytics/income-expense",
    response_model=IncomeExpenseAnalysis,
)
def api_income_expense(
    user_id: int,
    period: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    try:
        window = resolve_period(period, start, end)
        return metrics_service(db).income_expense_analysis(
            user_id, window.slug, window.start, window.end
        )
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get(
    "/api/users/{user_id}/analytics/categories/{category_id}",
    response_model=CategoryMetric,
)
def api_category_analysis(
    user_id: int,
    category_id: int,
    period: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    try:
        window = resolve_period(period, start, end)
        return metrics_service(db).category_analysis(
            user_id, category_id, window.start, window.end
        )
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/users/{user_id}/dashboard", response_model=DashboardSummary)
def api_dashboard(
    user_id: int, period: Optional[str] = None, db: Session = Depends(get_db)
):
    service = DashboardService(
        SQLTransactionQuery(db),
        SQLBudgetQuery(db),
        SQLGoalQuery(db),
        top_limit=settings.top_categories_limit,
        recent_limit=settings.recent_transactions_limit,
    )
    return service.summary(user_id, period)


@app.get("/api/categories", response_model=list[CategoryOut])
def api_list_categories(
    type: Optional[TransactionType] = None, db: Session = Depends(get_db)
):
    return CategoryService(db).list_all(type)


@app.post("/api/categories", response_model=CategoryOut, status_code=201)
def api_create_category(data: CategoryIn, db: Session = Depends(get_db)):
    try:
        return CategoryService(db).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/api/categories/seed", response_model=list[CategoryOut])
def api_seed_categories(db: Session = Depends(get_db)):
    return CategoryService(db).seed_defaults()


@app.get("/api/categories/{category_id}", response_model=CategoryOut)
def api_get_category(category_id: int, db: Session = Depends(get_db)):
    try:
        return CategoryService(db).get(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.put("/api/categories/{category_id}", response_model=CategoryOut)
def api_update_category(
    category_id: int, data: CategoryUpdate, db: Session = Depends(get_db)
):
    try:
        return CategoryService(db).update(category_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/api/categories/{category_id}", status_code=204)
def api_delete_category(category_id: int, db: Session = Depends(get_db)):
    try:
        CategoryService(db).delete(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.get(
    "/api/users/{user_id}/categories/usage", response_model=list[CategoryUsage]
)
def api_category_usage(user_id: int, db: Session = Depends(get_db)):
    return CategoryService(db).usage_stats(user_id)


@app.get("/api/users/{user_id}/transactions", response_model=list[TransactionOut])
def api_list_transactions(
    user_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    txns = TransactionService(db, user_id).list(start, end)
    return [TransactionOut.model_validate(transaction_record(t)) for t in txns]


@app.post(
    "/api/users/{user_id}/transactions",
    response_model=TransactionOut,
    status_code=201,
)
def api_create_transaction(
    user_id: int, data: TransactionIn, db: Session = Depends(get_db)
):
    service = TransactionService(db, user_id)
    try:
        txn = service.create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return TransactionOut.model_validate(transaction_record(service.get(txn.id)))


@app.get("/api/users/{user_id}/transactions/export.csv")
def api_export_transactions(
    user_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    try:
        window = resolve_period(None, start, end)
    except ValueError as exc:
        raise http_error(exc) from exc
    records = SQLTransactionQuery(db).get_transactions(user_id, window)
    filename = f"transactions_{window.start}_{window.end}.csv"
    return StreamingResponse(
        iter([export_transactions(records)]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/users/{user_id}/budgets", response_model=list[BudgetOut])
def api_list_budgets(
    user_id: int, active_only: bool = False, db: Session = Depends(get_db)
):
    return BudgetService(db, user_id).list(active_only=active_only)


@app.post(
    "/api/users/{user_id}/budgets", response_model=BudgetOut, status_code=201
)
def api_create_budget(user_id: int, data: BudgetIn, db: Session = Depends(get_db)):
    try:
        return BudgetService(db, user_id).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/api/users/{user_id}/budgets/summary", response_model=BudgetSummary)
def api_budget_summary(user_id: int, db: Session = Depends(get_db)):
    return BudgetService(db, user_id).summary()


@app.post("/api/users/{user_id}/budgets/refresh")
def api_refresh_budgets(user_id: int, db: Session = Depends(get_db)):
    count = BudgetService(db, user_id).refresh_spending()
    return {"refreshed": count}


@app.get("/api/users/{user_id}/budgets/export.csv")
def api_export_budgets(user_id: int, db: Session = Depends(get_db)):
    records = [budget_record(b) for b in BudgetService(db, user_id).list()]
    filename = f"budgets_{date.today().isoformat()}.csv"
    return StreamingResponse(
        iter([export_budgets(records)]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/users/{user_id}/budgets/{budget_id}", response_model=BudgetOut)
def api_get_budget(user_id: int, budget_id: int, db: Session = Depends(get_db)):
    try:
        return BudgetService(db, user_id).get(budget_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.put("/api/users/{user_id}/budgets/{budget_id}", response_model=BudgetOut)
def api_update_budget(
    user_id: int, budget_id: int, data: BudgetUpdate, db: Session = Depends(get_db)
):
    try:
        return BudgetService(db, user_id).update(budget_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/api/users/{user_id}/budgets/{budget_id}", status_code=204)
def api_delete_budget(user_id: int, budget_id: int, db: Session = Depends(get_db)):
    try:
        BudgetService(db, user_id).delete(budget_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


@app.get("/api/users/{user_id}/goals", response_model=list[GoalOut])
def api_list_goals(user_id: int, db: Session = Depends(get_db)):
    return GoalService(db, user_id).list_active()


@app.post("/api/users/{user_id}/goals", response_model=GoalOut, status_code=201)
def api_create_goal(user_id: int, data: GoalIn, db: Session = Depends(get_db)):
    return GoalService(db, user_id).create(data)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
