import logging
from datetime import date

import pytest

from models import Theme, TransactionType
from periods import PeriodFilter, resolve_period
from schemas import CardIn, CategoryIn, GoalIn, ProfileIn, RegisterIn, TransactionIn
from services import (
    AccountService,
    CardService,
    CategoryService,
    DashboardService,
    GoalService,
    ProfileService,
    ReportService,
    TransactionService,
)
from store import MemoryAccountStore

TODAY = date(2024, 3, 15)


def _setup(email: str = "ana@example.com"):
    store = MemoryAccountStore()
    account = (
        AccountService(store)
        .register(RegisterIn(name="Ana", email=email, password="secret"), today=TODAY)
        .account
    )
    return store, account.id


def _expense(amount_cents: int, **overrides) -> TransactionIn:
    data = {
        "type": TransactionType.expense,
        "category_id": "cat-4",
        "description": "Groceries",
        "amount_cents": amount_cents,
        "date": TODAY,
    }
    data.update(overrides)
    return TransactionIn(**data)


def test_transaction_crud() -> None:
    store, account_id = _setup()
    service = TransactionService(store, account_id)

    created = service.create(_expense(1_250))
    assert service.get(created.id).amount_cents == 1_250

    updated = service.update(created.id, _expense(2_000, description="Market"))
    assert updated.id == created.id
    assert service.get(created.id).description == "Market"

    service.delete(created.id)
    with pytest.raises(ValueError, match="Transaction not found"):
        service.get(created.id)
    with pytest.raises(ValueError, match="Transaction not found"):
        service.delete(created.id)


def test_transaction_requires_matching_category() -> None:
    store, account_id = _setup()
    service = TransactionService(store, account_id)

    with pytest.raises(ValueError, match="Category type mismatch"):
        service.create(_expense(100, category_id="cat-1"))
    with pytest.raises(ValueError, match="Category not found"):
        service.create(_expense(100, category_id="cat-missing"))
    with pytest.raises(ValueError, match="Card not found"):
        service.create(_expense(100, card_id="card-missing"))


def test_list_filters_by_period_and_category() -> None:
    store, account_id = _setup()
    service = TransactionService(store, account_id)
    period = resolve_period(PeriodFilter.this_month, today=TODAY)

    this_month = service.list_all(period)
    assert len(this_month) == 11
    assert [t.date for t in this_month] == sorted((t.date for t in this_month), reverse=True)

    food = service.list_all(period, category_id="cat-4")
    assert {t.description for t in food} == {"Supermarket", "Restaurant"}

    assert len(service.list_all()) == 25


def test_deleting_card_removes_its_transactions() -> None:
    store, account_id = _setup()
    cards = CardService(store, account_id)
    transactions = TransactionService(store, account_id)

    card = cards.create(CardIn(name="Visa", holder="Ana", due_day=10))
    other = cards.create(CardIn(name="Master", holder="Ana", due_day=5, limit_cents=500_000))
    transactions.create(_expense(1_000, card_id=card.id))
    transactions.create(_expense(2_000, card_id=card.id))
    kept = transactions.create(_expense(3_000, card_id=other.id))
    assert len(cards.transactions(card.id)) == 2

    removed = cards.delete(card.id)

    assert removed == 2
    assert [c.id for c in cards.list_all()] == [other.id]
    assert all(t.card_id != card.id for t in transactions.list_all())
    assert transactions.get(kept.id).amount_cents == 3_000
    assert len(transactions.list_all()) == 26


def test_card_update_and_lookup() -> None:
    store, account_id = _setup()
    cards = CardService(store, account_id)
    card = cards.create(CardIn(name="Visa", holder="Ana", due_day=10))

    cards.update(card.id, CardIn(name="Visa Gold", holder="Ana", due_day=28))

    assert cards.get(card.id).name == "Visa Gold"
    assert cards.get(card.id).due_day == 28
    with pytest.raises(ValueError, match="Card not found"):
        cards.update("card-missing", CardIn(name="X", holder="Y", due_day=1))


def test_category_crud_and_type_filter() -> None:
    store, account_id = _setup()
    service = CategoryService(store, account_id)

    assert len(service.list_all(TransactionType.income)) == 3
    assert len(service.list_all(TransactionType.expense)) == 7

    created = service.create(
        CategoryIn(name="Pets", icon="Heart", type=TransactionType.expense)
    )
    assert created.color
    service.update(
        created.id,
        CategoryIn(name="Pet care", icon="Heart", type=TransactionType.expense),
    )
    assert [c.name for c in service.list_all() if c.id == created.id] == ["Pet care"]

    service.delete(created.id)
    assert all(c.id != created.id for c in service.list_all())
    with pytest.raises(ValueError, match="Category not found"):
        service.delete(created.id)


def test_category_type_change_does_not_reclassify_transactions(caplog) -> None:
    store, account_id = _setup()
    service = CategoryService(store, account_id)

    with caplog.at_level(logging.WARNING, logger="services"):
        service.update(
            "cat-4",
            CategoryIn(name="Food", icon="UtensilsCrossed", type=TransactionType.income),
        )

    assert "category_type_changed" in caplog.text
    food = TransactionService(store, account_id).list_all(category_id="cat-4")
    assert food
    assert all(t.type == TransactionType.expense for t in food)


def test_deleted_category_shows_as_other_in_reports() -> None:
    store, account_id = _setup()
    CategoryService(store, account_id).delete("cat-6")

    report = ReportService(store, account_id).build(PeriodFilter.this_month, today=TODAY)

    names = [b.name for b in report["category_breakdown"]]
    assert "Housing" not in names
    assert names[0] == "Other"
    assert sum(b.value_cents for b in report["category_breakdown"]) == report["summary"].expense_cents


def test_goal_applies_to_current_month() -> None:
    store, account_id = _setup()
    service = GoalService(store, account_id)

    goal = service.set(GoalIn(amount_cents=500_000), today=date(2024, 4, 2))

    assert goal.month == "2024-04"
    assert service.get().amount_cents == 500_000


def test_profile_update_avatar_and_theme() -> None:
    store, account_id = _setup()
    AccountService(store).register(
        RegisterIn(name="Bo", email="bo@example.com", password="secret"), today=TODAY
    )
    service = ProfileService(store, account_id)

    assert service.update(ProfileIn(name="Bo", email="BO@example.com")) == (
        "This email is already registered."
    )
    assert service.update(ProfileIn(name="Ana Maria", email="ana.maria@example.com")) is None
    assert service.get().email == "ana.maria@example.com"

    assert service.set_avatar(b"GIF89a", "text/plain") == "Avatar must be an image."
    assert service.set_avatar(b"GIF89a", "image/gif") is None
    assert service.get().avatar.startswith("data:image/gif;base64,")
    service.clear_avatar()
    assert service.get().avatar is None

    assert service.set_theme(Theme.dark) == Theme.dark
    assert store.load().find(account_id).theme == Theme.dark


def test_report_compares_with_previous_period() -> None:
    store, account_id = _setup()

    report = ReportService(store, account_id).build(PeriodFilter.this_month, today=TODAY)

    summary = report["summary"]
    assert summary.income_cents == 1_115_000
    assert summary.expense_cents == 571_200
    assert summary.balance_cents == 543_800
    assert report["previous_summary"].income_cents == 1_030_000
    assert report["previous_summary"].expense_cents == 603_000
    assert report["income_change"] == 8
    assert report["expense_change"] == -5
    assert report["savings_rate"] == 49
    assert [b.name for b in report["category_breakdown"][:2]] == ["Housing", "Food"]
    assert report["category_breakdown"][1].value_cents == 113_500
    assert len(report["series"]) == 15
    assert [m.month for m in report["monthly"]] == ["2024-03"]


def test_report_for_three_months_uses_weekly_series() -> None:
    store, account_id = _setup()

    report = ReportService(store, account_id).build(
        PeriodFilter.last_3_months, today=TODAY, category_id="cat-1"
    )

    assert report["series"][0].label == "31/12"
    assert [m.month for m in report["monthly"]] == ["2024-01", "2024-02", "2024-03"]
    assert [t.description for t in report["transactions"]] == ["Monthly salary"] * 3
    assert report["previous_summary"].income_cents == 0
    assert report["income_change"] == 0


def test_dashboard() -> None:
    store, account_id = _setup()

    dashboard = DashboardService(store, account_id).build(today=TODAY)

    assert dashboard["summary"].expense_cents == 571_200
    progress = dashboard["goal_progress"]
    assert progress.percent == 95
    assert progress.band == "warning"
    assert dashboard["series"][-1].balance_cents == 543_800
    assert [t.description for t in dashboard["recent"]] == [
        "Restaurant",
        "Website project",
        "Clothes",
        "Health insurance",
        "Cinema and dinner",
    ]


def test_unknown_account_is_rejected() -> None:
    store, _ = _setup()
    with pytest.raises(ValueError, match="Account not found"):
        TransactionService(store, "user-missing").list_all()
