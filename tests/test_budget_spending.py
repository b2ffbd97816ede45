from datetime import date

import pytest

from models import BudgetPeriod, TransactionType
from schemas import (
    BudgetIn,
    BudgetUpdate,
    CategoryIn,
    CategoryUpdate,
    GoalIn,
    TransactionIn,
)
from services import (
    BudgetService,
    CategoryService,
    GoalService,
    NotFoundError,
    TransactionService,
    default_budget_end,
    refresh_spending_for_all_users,
)


def _categories(session):
    categories = CategoryService(session)
    food = categories.create(CategoryIn(name="Groceries", type=TransactionType.expense))
    salary = categories.create(CategoryIn(name="Paycheck", type=TransactionType.income))
    return food, salary


def test_expenses_update_covering_budgets(session) -> None:
    food, salary = _categories(session)
    budgets = BudgetService(session, 1)
    budget = budgets.create(
        BudgetIn(
            category_id=food.id,
            amount_cents=20_000,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
        )
    )
    assert budget.remaining_cents == 20_000

    txns = TransactionService(session, 1)
    txns.create(
        TransactionIn(
            date=date(2024, 1, 5),
            type=TransactionType.expense,
            amount_cents=7_500,
            category_id=food.id,
        )
    )
    txns.create(
        TransactionIn(
            date=date(2024, 2, 5),
            type=TransactionType.expense,
            amount_cents=1_000,
            category_id=food.id,
        )
    )
    txns.create(
        TransactionIn(
            date=date(2024, 1, 6),
            type=TransactionType.income,
            amount_cents=50_000,
            category_id=salary.id,
        )
    )

    session.refresh(budget)
    assert budget.spent_cents == 7_500
    assert budget.remaining_cents == budget.amount_cents - budget.spent_cents


def test_refresh_rebuilds_spending_from_transactions(session) -> None:
    food, _ = _categories(session)
    budget = BudgetService(session, 1).create(
        BudgetIn(category_id=food.id, amount_cents=10_000),
        today=date(2024, 3, 1),
    )
    TransactionService(session, 1).create(
        TransactionIn(
            date=date(2024, 3, 10),
            type=TransactionType.expense,
            amount_cents=12_000,
            category_id=food.id,
        )
    )
    budget.spent_cents = 0
    budget.recalculate_remaining()
    session.commit()

    assert refresh_spending_for_all_users(session) == 1
    session.refresh(budget)
    assert budget.spent_cents == 12_000
    assert budget.remaining_cents == -2_000

    summary = BudgetService(session, 1).summary(today=date(2024, 3, 15))
    assert summary.total_budget_cents == 10_000
    assert summary.percentage_used == 120.0
    assert summary.budget_status == "over_budget"


def test_budget_defaults_and_validation(session) -> None:
    food, salary = _categories(session)
    budgets = BudgetService(session, 1)

    budget = budgets.create(
        BudgetIn(category_id=food.id, amount_cents=5_000, period=BudgetPeriod.weekly),
        today=date(2024, 1, 1),
    )
    assert (budget.start_date, budget.end_date) == (date(2024, 1, 1), date(2024, 1, 8))

    with pytest.raises(ValueError, match="already exists"):
        budgets.create(
            BudgetIn(category_id=food.id, amount_cents=5_000),
            today=date(2024, 1, 3),
        )
    with pytest.raises(ValueError, match="expense categories"):
        budgets.create(BudgetIn(category_id=salary.id, amount_cents=5_000))
    with pytest.raises(NotFoundError):
        budgets.create(BudgetIn(category_id=999, amount_cents=5_000))

    assert default_budget_end(date(2024, 1, 31), BudgetPeriod.monthly) == date(2024, 2, 29)
    assert default_budget_end(date(2024, 2, 29), BudgetPeriod.yearly) == date(2025, 2, 28)


def test_summary_without_budgets(session) -> None:
    summary = BudgetService(session, 7).summary(today=date(2024, 1, 1))
    assert summary.total_budget_cents == 0
    assert summary.percentage_used == 0.0
    assert summary.budget_status == "no_budget"


def test_transaction_category_checks(session) -> None:
    food, _ = _categories(session)
    txns = TransactionService(session, 1)

    with pytest.raises(ValueError, match="type mismatch"):
        txns.create(
            TransactionIn(
                date=date(2024, 1, 1),
                type=TransactionType.income,
                amount_cents=100,
                category_id=food.id,
            )
        )
    with pytest.raises(NotFoundError):
        txns.create(
            TransactionIn(
                date=date(2024, 1, 1),
                type=TransactionType.expense,
                amount_cents=100,
                category_id=404,
            )
        )
    with pytest.raises(NotFoundError):
        txns.get(12345)


def test_seed_defaults_is_idempotent(session) -> None:
    categories = CategoryService(session)
    created = categories.seed_defaults()
    assert len(created) == 15
    assert all(c.is_default for c in created)
    assert categories.seed_defaults() == []
    assert {c.name for c in categories.list_all(TransactionType.income)} >= {
        "Salary",
        "Freelance",
    }

    with pytest.raises(ValueError, match="already exists"):
        categories.create(CategoryIn(name="salary", type=TransactionType.income))


def test_goals_list_active(session) -> None:
    goals = GoalService(session, 1)
    goals.create(GoalIn(title="Emergency fund", target_amount_cents=500_000))
    GoalService(session, 2).create(GoalIn(title="Other", target_amount_cents=1))

    active = goals.list_active()
    assert [g.title for g in active] == ["Emergency fund"]
    assert active[0].current_amount_cents == 0


def _expense(session, category_id: int, on: date, amount_cents: int, user_id: int = 1):
    return TransactionService(session, user_id).create(
        TransactionIn(
            date=on,
            type=TransactionType.expense,
            amount_cents=amount_cents,
            category_id=category_id,
        )
    )


def test_update_budget_recalculates_remaining(session) -> None:
    food, _ = _categories(session)
    budgets = BudgetService(session, 1)
    budget = budgets.create(
        BudgetIn(
            category_id=food.id,
            amount_cents=20_000,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
        )
    )
    _expense(session, food.id, date(2024, 1, 5), 7_500)

    updated = budgets.update(
        budget.id,
        BudgetUpdate(
            amount_cents=10_000,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
        ),
    )
    assert updated.spent_cents == 7_500
    assert updated.remaining_cents == 2_500

    moved = budgets.update(
        budget.id,
        BudgetUpdate(
            amount_cents=10_000,
            start_date=date(2024, 2, 1),
            end_date=date(2024, 2, 29),
            is_active=False,
        ),
    )
    assert moved.spent_cents == 0
    assert moved.remaining_cents == 10_000
    assert moved.is_active is False


def test_update_budget_rejects_bad_windows(session) -> None:
    food, _ = _categories(session)
    budgets = BudgetService(session, 1)
    budgets.create(
        BudgetIn(
            category_id=food.id,
            amount_cents=5_000,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
        )
    )
    february = budgets.create(
        BudgetIn(
            category_id=food.id,
            amount_cents=5_000,
            start_date=date(2024, 2, 1),
            end_date=date(2024, 2, 29),
        )
    )

    with pytest.raises(ValueError, match="already exists"):
        budgets.update(
            february.id,
            BudgetUpdate(
                amount_cents=5_000,
                start_date=date(2024, 1, 15),
                end_date=date(2024, 2, 15),
            ),
        )
    with pytest.raises(ValueError, match="on or before"):
        budgets.update(
            february.id,
            BudgetUpdate(
                amount_cents=5_000,
                start_date=date(2024, 3, 1),
                end_date=date(2024, 2, 1),
            ),
        )
    with pytest.raises(NotFoundError):
        BudgetService(session, 2).update(
            february.id,
            BudgetUpdate(
                amount_cents=1,
                start_date=date(2024, 2, 1),
                end_date=date(2024, 2, 29),
            ),
        )


def test_delete_budget(session) -> None:
    food, _ = _categories(session)
    budgets = BudgetService(session, 1)
    budget = budgets.create(
        BudgetIn(category_id=food.id, amount_cents=5_000), today=date(2024, 1, 1)
    )

    with pytest.raises(NotFoundError):
        BudgetService(session, 2).delete(budget.id)

    budgets.delete(budget.id)
    assert budgets.list() == []
    with pytest.raises(NotFoundError):
        budgets.get(budget.id)


def test_update_category_protects_default_fields(session) -> None:
    categories = CategoryService(session)
    categories.seed_defaults()
    salary = next(c for c in categories.list_all() if c.name == "Salary")
    custom = categories.create(CategoryIn(name="Side gig", type=TransactionType.income))

    renamed = categories.update(
        salary.id,
        CategoryUpdate(
            name="Wages", type=TransactionType.expense, color="#000000"
        ),
    )
    assert renamed.name == "Salary"
    assert renamed.type == TransactionType.income
    assert renamed.color == "#000000"

    changed = categories.update(
        custom.id,
        CategoryUpdate(name=" Consulting ", type=TransactionType.income),
    )
    assert changed.name == "Consulting"

    with pytest.raises(ValueError, match="already exists"):
        categories.update(
            custom.id, CategoryUpdate(name="salary", type=TransactionType.income)
        )
    with pytest.raises(NotFoundError):
        categories.update(999, CategoryUpdate(name="x", type=TransactionType.income))


def test_delete_category_refuses_defaults_and_used(session) -> None:
    categories = CategoryService(session)
    categories.seed_defaults()
    housing = next(c for c in categories.list_all() if c.name == "Housing")
    food, _ = _categories(session)
    pets = categories.create(CategoryIn(name="Pets", type=TransactionType.expense))
    spare = categories.create(CategoryIn(name="Spare", type=TransactionType.expense))
    _expense(session, food.id, date(2024, 1, 5), 100)
    BudgetService(session, 1).create(
        BudgetIn(category_id=pets.id, amount_cents=1_000), today=date(2024, 1, 1)
    )

    with pytest.raises(ValueError, match="Default"):
        categories.delete(housing.id)
    with pytest.raises(ValueError, match="transactions"):
        categories.delete(food.id)
    with pytest.raises(ValueError, match="budgets"):
        categories.delete(pets.id)

    categories.delete(spare.id)
    with pytest.raises(NotFoundError):
        categories.get(spare.id)


def test_category_usage_stats(session) -> None:
    food, salary = _categories(session)
    unused = CategoryService(session).create(
        CategoryIn(name="Rent", type=TransactionType.expense)
    )
    _expense(session, food.id, date(2024, 1, 5), 1_000)
    _expense(session, food.id, date(2024, 1, 20), 3_001)
    _expense(session, food.id, date(2024, 2, 1), 999, user_id=2)
    TransactionService(session, 1).create(
        TransactionIn(
            date=date(2024, 1, 1),
            type=TransactionType.income,
            amount_cents=50_000,
            category_id=salary.id,
        )
    )

    stats = CategoryService(session).usage_stats(1)

    assert [s.category_id for s in stats] == [food.id, salary.id, unused.id]
    assert stats[0].transaction_count == 2
    assert stats[0].total_cents == 4_001
    assert stats[0].average_cents == 2_000
    assert stats[0].last_used == date(2024, 1, 20)
    assert stats[1].category_type == TransactionType.income
    assert stats[2].transaction_count == 0
    assert stats[2].total_cents == 0
    assert stats[2].average_cents == 0
    assert stats[2].last_used is None
