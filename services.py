from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional
from uuid import uuid4

from rapidfuzz.distance import Levenshtein

from aggregation import (
    expenses_by_category,
    filter_by_period,
    goal_progress,
    monthly_comparison,
    percent_change,
    recent_transactions,
    running_series,
    savings_rate,
    summarize,
    transactions_for_display,
)
from config import get_settings
from csv_utils import export_transactions, parse_card_csv
from models import Theme, TransactionType
from periods import (
    Period,
    PeriodFilter,
    local_today,
    previous_period,
    resolve_period,
)
from schemas import (
    COLOR_OPTIONS,
    CardIn,
    Category,
    CategoryIn,
    CreditCard,
    GoalIn,
    LoginIn,
    MonthlyGoal,
    ProfileIn,
    RegisterIn,
    Transaction,
    TransactionIn,
    UserAccount,
    UserProfile,
)
from security import hash_password, verify_password
from seed import default_categories, default_goal, default_transactions
from spreadsheets import build_workbook
from store import AccountStore, StoreState

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12]}"


@dataclass
class AuthResult:
    account: Optional[UserAccount] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.account is not None


@dataclass
class ImportResult:
    imported: int = 0
    errors: list[str] = field(default_factory=list)


class AccountService:
    def __init__(self, store: AccountStore) -> None:
        self.store = store

    def register(self, data: RegisterIn, *, today: Optional[date] = None) -> AuthResult:
        today = today or local_today()
        state = self.store.load()
        if state.find_by_email(data.email):
            return AuthResult(error="This email is already registered.")
        account = UserAccount(
            id=_new_id("user"),
            name=data.name.strip(),
            email=data.email.strip(),
            password_hash=hash_password(data.password),
            transactions=default_transactions(today),
            categories=default_categories(),
            goal=default_goal(today),
            cards=[],
            theme=Theme.light,
        )
        state.accounts.append(account)
        state.active_account_id = account.id
        self.store.save(state)
        logger.info(f"account_registered: account_id={account.id}")
        return AuthResult(account=account)

    def login(self, data: LoginIn) -> AuthResult:
        state = self.store.load()
        account = state.find_by_email(data.email)
        if account is None:
            return AuthResult(error="User not found.")
        if not verify_password(data.password, account.password_hash):
            return AuthResult(error="Incorrect password.")
        state.active_account_id = account.id
        self.store.save(state)
        logger.info(f"account_login: account_id={account.id}")
        return AuthResult(account=account)

    def logout(self) -> None:
        """End the active session; account data is left untouched."""
        state = self.store.load()
        if state.active_account_id is None:
            return
        logger.info(f"account_logout: account_id={state.active_account_id}")
        state.active_account_id = None
        self.store.save(state)

    def current(self) -> Optional[UserAccount]:
        state = self.store.load()
        if state.active_account_id is None:
            return None
        return state.find(state.active_account_id)


class AccountScopedService:
    def __init__(self, store: AccountStore, account_id: str) -> None:
        self.store = store
        self.account_id = account_id

    def _load(self) -> tuple[StoreState, UserAccount]:
        state = self.store.load()
        account = state.find(self.account_id)
        if account is None:
            raise ValueError("Account not found")
        return state, account

    def _account(self) -> UserAccount:
        return self._load()[1]

    def _save(self, state: StoreState, account: UserAccount) -> None:
        state.replace(account)
        self.store.save(state)


def _find_category(account: UserAccount, category_id: str) -> Category:
    for category in account.categories:
        if category.id == category_id:
            return category
    raise ValueError("Category not found")


def _find_card(account: UserAccount, card_id: str) -> CreditCard:
    for card in account.cards:
        if card.id == card_id:
            return card
    raise ValueError("Card not found")


class TransactionService(AccountScopedService):
    def _validate(self, account: UserAccount, data: TransactionIn) -> None:
        category = _find_category(account, data.category_id)
        if category.type != data.type:
            raise ValueError("Category type mismatch")
        if data.card_id is not None:
            _find_card(account, data.card_id)

    def list_all(
        self,
        period: Optional[Period] = None,
        *,
        category_id: Optional[str] = None,
    ) -> list[Transaction]:
        transactions = self._account().transactions
        if period is not None:
            transactions = filter_by_period(transactions, period)
        return transactions_for_display(transactions, category_id)

    def get(self, transaction_id: str) -> Transaction:
        for txn in self._account().transactions:
            if txn.id == transaction_id:
                return txn
        raise ValueError("Transaction not found")

    def create(self, data: TransactionIn) -> Transaction:
        state, account = self._load()
        self._validate(account, data)
        txn = Transaction(id=_new_id("tx"), **data.model_dump())
        account.transactions.append(txn)
        self._save(state, account)
        return txn

    def update(self, transaction_id: str, data: TransactionIn) -> Transaction:
        state, account = self._load()
        self._validate(account, data)
        for idx, txn in enumerate(account.transactions):
            if txn.id == transaction_id:
                updated = Transaction(id=transaction_id, **data.model_dump())
                account.transactions[idx] = updated
                self._save(state, account)
                return updated
        raise ValueError("Transaction not found")

    def delete(self, transaction_id: str) -> None:
        state, account = self._load()
        remaining = [t for t in account.transactions if t.id != transaction_id]
        if len(remaining) == len(account.transactions):
            raise ValueError("Transaction not found")
        account.transactions = remaining
        self._save(state, account)


class CategoryService(AccountScopedService):
    def list_all(
        self, transaction_type: Optional[TransactionType] = None
    ) -> list[Category]:
        categories = self._account().categories
        if transaction_type is None:
            return list(categories)
        return [c for c in categories if c.type == transaction_type]

    def create(self, data: CategoryIn) -> Category:
        state, account = self._load()
        category = Category(id=_new_id("cat"), **data.model_dump())
        account.categories.append(category)
        self._save(state, account)
        return category

    def update(self, category_id: str, data: CategoryIn) -> Category:
        state, account = self._load()
        current = _find_category(account, category_id)
        if current.type != data.type:
            # Existing transactions keep their own type; they are not reclassified.
            referencing = sum(
                1 for t in account.transactions if t.category_id == category_id
            )
            if referencing:
                logger.warning(
                    f"category_type_changed: category_id={category_id} "
                    f"from={current.type.value} to={data.type.value} "
                    f"transactions_not_reclassified={referencing}"
                )
        updated = Category(id=category_id, **data.model_dump())
        account.categories = [
            updated if c.id == category_id else c for c in account.categories
        ]
        self._save(state, account)
        return updated

    def delete(self, category_id: str) -> None:
        state, account = self._load()
        _find_category(account, category_id)
        account.categories = [c for c in account.categories if c.id != category_id]
        self._save(state, account)


class CardService(AccountScopedService):
    def list_all(self) -> list[CreditCard]:
        return list(self._account().cards)

    def get(self, card_id: str) -> CreditCard:
        return _find_card(self._account(), card_id)

    def create(self, data: CardIn) -> CreditCard:
        state, account = self._load()
        card = CreditCard(id=_new_id("card"), **data.model_dump())
        account.cards.append(card)
        self._save(state, account)
        return card

    def update(self, card_id: str, data: CardIn) -> CreditCard:
        state, account = self._load()
        _find_card(account, card_id)
        updated = CreditCard(id=card_id, **data.model_dump())
        account.cards = [updated if c.id == card_id else c for c in account.cards]
        self._save(state, account)
        return updated

    def delete(self, card_id: str) -> int:
        """Remove the card and every transaction charged to it."""
        state, account = self._load()
        _find_card(account, card_id)
        account.cards = [c for c in account.cards if c.id != card_id]
        before = len(account.transactions)
        account.transactions = [t for t in account.transactions if t.card_id != card_id]
        removed = before - len(account.transactions)
        self._save(state, account)
        logger.info(f"card_deleted: card_id={card_id} transactions_removed={removed}")
        return removed

    def transactions(self, card_id: str) -> list[Transaction]:
        account = self._account()
        _find_card(account, card_id)
        return transactions_for_display(
            t for t in account.transactions if t.card_id == card_id
        )


class GoalService(AccountScopedService):
    def get(self) -> MonthlyGoal:
        return self._account().goal

    def set(self, data: GoalIn, *, today: Optional[date] = None) -> MonthlyGoal:
        today = today or local_today()
        state, account = self._load()
        account.goal = MonthlyGoal(
            month=today.strftime("%Y-%m"), amount_cents=data.amount_cents
        )
        self._save(state, account)
        return account.goal


class ProfileService(AccountScopedService):
    def get(self) -> UserProfile:
        return self._account().profile()

    def update(self, data: ProfileIn) -> Optional[str]:
        """Returns a rejection reason, or None once the profile is saved."""
        state, account = self._load()
        owner = state.find_by_email(data.email)
        if owner is not None and owner.id != account.id:
            return "This email is already registered."
        account.name = data.name.strip()
        account.email = data.email.strip()
        self._save(state, account)
        return None

    def set_avatar(self, content: bytes, content_type: Optional[str]) -> Optional[str]:
        if not content_type or not content_type.startswith("image/"):
            return "Avatar must be an image."
        max_bytes = get_settings().avatar_max_bytes
        if len(content) > max_bytes:
            return f"Avatar is larger than {max_bytes // 1024} KiB."
        state, account = self._load()
        encoded = base64.b64encode(content).decode("ascii")
        account.avatar = f"data:{content_type};base64,{encoded}"
        self._save(state, account)
        return None

    def clear_avatar(self) -> None:
        state, account = self._load()
        account.avatar = None
        self._save(state, account)

    def set_theme(self, theme: Theme) -> Theme:
        state, account = self._load()
        account.theme = theme
        self._save(state, account)
        return theme


class CategoryAmbiguous(ValueError):
    pass


class CardImportService(AccountScopedService):
    def _resolve_category(
        self, account: UserAccount, name: Optional[str], created: dict[str, Category]
    ) -> str:
        if not name:
            return ""
        input_lower = name.strip().lower()
        expense_categories = [
            c for c in account.categories if c.type == TransactionType.expense
        ]
        for category in expense_categories:
            if category.name.strip().lower() == input_lower:
                return category.id
        if input_lower in created:
            return created[input_lower].id

        best_distance: Optional[int] = None
        best: list[Category] = []
        for category in expense_categories:
            dist = int(Levenshtein.distance(input_lower, category.name.strip().lower()))
            if best_distance is None or dist < best_distance:
                best_distance = dist
                best = [category]
            elif dist == best_distance:
                best.append(category)

        if best_distance is not None and best_distance <= 1:
            if len(best) > 1:
                options = ", ".join(sorted({c.name for c in best}))
                raise CategoryAmbiguous(
                    f"Category '{name}' is ambiguous; matches: {options}"
                )
            return best[0].id

        category = Category(
            id=_new_id("cat"),
            name=name.strip(),
            color=COLOR_OPTIONS[
                (len(account.categories) + len(created)) % len(COLOR_OPTIONS)
            ],
            type=TransactionType.expense,
        )
        created[input_lower] = category
        return category.id

    def _prepare(
        self, account: UserAccount, card_id: str, content: str
    ) -> tuple[list[Transaction], dict[str, Category], list[str]]:
        _find_card(account, card_id)
        rows, errors = parse_card_csv(content)
        created: dict[str, Category] = {}
        transactions: list[Transaction] = []
        for row in rows:
            try:
                category_id = self._resolve_category(account, row.category, created)
            except CategoryAmbiguous as exc:
                errors.append(f"{row.date.isoformat()} {row.description}: {exc}")
                continue
            transactions.append(
                Transaction(
                    id=_new_id("tx"),
                    type=TransactionType.expense,
                    category_id=category_id,
                    description=row.description,
                    amount_cents=row.amount_cents,
                    date=row.date,
                    card_id=card_id,
                )
            )
        return transactions, created, errors

    def preview(
        self, card_id: str, content: str
    ) -> tuple[list[dict[str, object]], list[str]]:
        account = self._account()
        transactions, created, errors = self._prepare(account, card_id, content)
        names = {c.id: c.name for c in account.categories}
        names.update({c.id: c.name for c in created.values()})
        created_ids = {c.id for c in created.values()}
        preview_rows = [
            {
                "date": txn.date,
                "description": txn.description,
                "amount_cents": txn.amount_cents,
                "category_id": txn.category_id,
                "category": names.get(txn.category_id),
                "new_category": txn.category_id in created_ids,
            }
            for txn in transactions
        ]
        return preview_rows, errors

    def commit(self, card_id: str, content: str) -> ImportResult:
        state, account = self._load()
        try:
            transactions, created, errors = self._prepare(account, card_id, content)
        except ValueError as exc:
            return ImportResult(errors=[str(exc)])
        if errors:
            return ImportResult(errors=errors)
        account.categories.extend(created.values())
        account.transactions.extend(transactions)
        self._save(state, account)
        logger.info(
            f"card_import: card_id={card_id} imported={len(transactions)} "
            f"categories_created={len(created)}"
        )
        return ImportResult(imported=len(transactions))


class ReportService(AccountScopedService):
    def build(
        self,
        selector: PeriodFilter,
        *,
        today: Optional[date] = None,
        category_id: Optional[str] = None,
    ) -> dict[str, object]:
        today = today or local_today()
        account = self._account()
        period = resolve_period(selector, today=today)
        prev = previous_period(selector, today=today)

        in_period = filter_by_period(account.transactions, period)
        summary = summarize(in_period)
        prev_summary = summarize(filter_by_period(account.transactions, prev))

        return {
            "period": period,
            "previous_period": prev,
            "summary": summary,
            "previous_summary": prev_summary,
            "income_change": percent_change(
                summary.income_cents, prev_summary.income_cents
            ),
            "expense_change": percent_change(
                summary.expense_cents, prev_summary.expense_cents
            ),
            "savings_rate": savings_rate(summary),
            "category_breakdown": expenses_by_category(in_period, account.categories),
            "series": running_series(in_period, period, selector, today=today),
            "monthly": monthly_comparison(in_period),
            "transactions": transactions_for_display(in_period, category_id),
        }


class DashboardService(AccountScopedService):
    def build(self, *, today: Optional[date] = None) -> dict[str, object]:
        today = today or local_today()
        account = self._account()
        selector = PeriodFilter.this_month
        period = resolve_period(selector, today=today)
        in_period = filter_by_period(account.transactions, period)
        summary = summarize(in_period)
        return {
            "period": period,
            "summary": summary,
            "goal": account.goal,
            "goal_progress": goal_progress(
                summary.expense_cents, account.goal.amount_cents
            ),
            "series": running_series(in_period, period, selector, today=today),
            "category_breakdown": expenses_by_category(in_period, account.categories),
            "recent": recent_transactions(account.transactions),
        }


class ExportService(AccountScopedService):
    def csv(self, period: Optional[Period] = None) -> str:
        account = self._account()
        transactions = account.transactions
        if period is not None:
            transactions = filter_by_period(transactions, period)
        return export_transactions(
            transactions_for_display(transactions), account.categories, account.cards
        )

    def workbook(self, *, today: Optional[date] = None) -> bytes:
        today = today or local_today()
        account = self._account()
        period = resolve_period(PeriodFilter.this_month, today=today)
        summary = summarize(filter_by_period(account.transactions, period))
        return build_workbook(
            transactions_for_display(account.transactions),
            account.categories,
            summary,
            goal_progress(summary.expense_cents, account.goal.amount_cents),
            savings_rate(summary),
        )
