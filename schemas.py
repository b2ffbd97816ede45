from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import BudgetPeriod, GoalStatus, GoalType, TransactionType

TrendLabel = Literal["increasing", "decreasing", "stable"]
CashFlowTrend = Literal["positive", "negative", "stable"]
BudgetStatus = Literal["no_budget", "on_track", "warning", "over_budget"]
AlertLevel = Literal["normal", "warning", "danger", "critical"]
HealthStatus = Literal["excellent", "good", "fair", "poor"]


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    type: TransactionType
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, max_length=7)


class CategoryUpdate(CategoryIn):
    pass


class TransactionIn(BaseModel):
    date: date
    type: TransactionType
    amount_cents: int = Field(..., ge=0)
    category_id: int
    description: Optional[str] = Field(default=None, max_length=200)


class BudgetIn(BaseModel):
    category_id: int
    amount_cents: int = Field(..., ge=0)
    period: BudgetPeriod = BudgetPeriod.monthly
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BudgetUpdate(BaseModel):
    amount_cents: int = Field(..., ge=0)
    period: BudgetPeriod = BudgetPeriod.monthly
    start_date: date
    end_date: date
    is_active: bool = True


class GoalIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    target_amount_cents: int = Field(..., ge=0)
    current_amount_cents: int = Field(default=0, ge=0)
    target_date: Optional[date] = None
    goal_type: GoalType = GoalType.savings


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: TransactionType
    description: Optional[str] = None
    color: Optional[str] = None
    is_default: bool


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: date
    type: TransactionType
    amount_cents: int
    category_id: int
    category_name: str
    description: Optional[str] = None


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int
    amount_cents: int
    period: BudgetPeriod
    start_date: date
    end_date: date
    spent_cents: int
    remaining_cents: int
    is_active: bool


class GoalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    target_amount_cents: int
    current_amount_cents: int
    target_date: Optional[date] = None
    goal_type: GoalType
    status: GoalStatus


class CategoryUsage(BaseModel):
    category_id: int
    category_name: str
    category_type: TransactionType
    transaction_count: int
    total_cents: int
    average_cents: int
    last_used: Optional[date] = None


class BudgetSummary(BaseModel):
    total_budget_cents: int
    total_spent_cents: int
    total_remaining_cents: int
    percentage_used: float
    budget_status: BudgetStatus


class CategoryMetric(BaseModel):
    category_id: int
    category_name: str
    total_cents: int = 0
    transaction_count: int = 0
    average_cents: int = 0
    percentage_of_total: float = 0.0
    trend: TrendLabel = "stable"


class MonthlyTrend(BaseModel):
    label: str
    month: str
    year: int
    start: date
    end: date
    income_cents: int
    expense_cents: int
    net_cents: int
    savings_rate: float


class WeeklyTrend(BaseModel):
    week_number: int
    label: str
    start: date
    end: date
    income_cents: int
    expense_cents: int
    net_cents: int
    savings_rate: float
    transaction_count: int


class BudgetStatusEntry(BaseModel):
    budget_id: int
    category_id: int
    category_name: str
    amount_cents: int
    spent_cents: int
    remaining_cents: int
    percentage_used: float
    status: BudgetStatus
    over_budget: bool


class BudgetPerformanceMetrics(BaseModel):
    total_budgeted_cents: int = 0
    total_spent_cents: int = 0
    variance_cents: int = 0
    variance_percentage: float = 0.0
    categories_over_budget: int = 0
    categories_under_budget: int = 0
    budgets: list[BudgetStatusEntry] = Field(default_factory=list)


class FinancialHealthScore(BaseModel):
    overall_score: int
    savings_score: int
    spending_score: int
    budget_score: int
    health_status: HealthStatus
    recommendations: list[str] = Field(default_factory=list)


class DailyAverages(BaseModel):
    daily_income_cents: float
    daily_expense_cents: float
    daily_net_cents: float


class FinancialMetrics(BaseModel):
    user_id: int
    period: str
    start_date: date
    end_date: date
    total_income_cents: int
    total_expense_cents: int
    net_income_cents: int
    savings_rate: float
    expense_ratio: float
    cash_flow_cents: int
    transaction_count: int
    category_breakdown: list[CategoryMetric]
    monthly_trends: list[MonthlyTrend]
    budget_performance: BudgetPerformanceMetrics
    financial_health: FinancialHealthScore


class IncomeExpenseAnalysis(BaseModel):
    user_id: int
    period: str
    start_date: date
    end_date: date
    income_breakdown: list[CategoryMetric]
    expense_breakdown: list[CategoryMetric]
    top_income_categories: list[CategoryMetric]
    top_expense_categories: list[CategoryMetric]
    daily_averages: DailyAverages
    weekly_trends: list[WeeklyTrend]


class FinancialReport(BaseModel):
    user_id: int
    report_type: str
    title: str
    start_date: date
    end_date: date
    period_days: int
    total_income_cents: int
    total_expense_cents: int
    net_income_cents: int
    savings_rate: float
    expense_ratio: float
    transaction_count: int
    daily_averages: DailyAverages
    category_breakdown: list[CategoryMetric]
    monthly_trends: list[MonthlyTrend]
    budget_performance: BudgetPerformanceMetrics
    financial_health: FinancialHealthScore
    top_income_categories: list[CategoryMetric]
    top_expense_categories: list[CategoryMetric]
    insights: list[str]
    recommendations: list[str]
    generated_at: datetime


class BudgetAlert(BaseModel):
    budget_id: int
    category_id: int
    category_name: str
    budget_amount_cents: int
    spent_cents: int
    percentage_used: float
    alert_level: AlertLevel
    days_remaining: int


class GoalProgress(BaseModel):
    id: int
    title: str
    goal_type: GoalType
    target_amount_cents: int
    current_amount_cents: int
    target_date: Optional[date] = None
    progress: float


class QuickStats(BaseModel):
    total_transactions: int
    average_transaction_cents: int
    largest_expense_cents: int
    most_used_category: str
    days_until_next_budget: int
    cash_flow_trend: CashFlowTrend


class DashboardSummary(BaseModel):
    user_id: int
    period: str
    start_date: date
    end_date: date
    total_balance_cents: int
    income_cents: int
    expense_cents: int
    savings_cents: int
    savings_rate: float
    top_expense_categories: list[CategoryMetric]
    recent_transactions: list[TransactionOut]
    budget_alerts: list[BudgetAlert]
    financial_goals: list[GoalProgress]
    quick_stats: QuickStats
