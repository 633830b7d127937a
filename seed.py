from datetime import date

from models import TransactionType
from periods import add_months
from schemas import Category, MonthlyGoal, Transaction

DEFAULT_GOAL_CENTS = 600_000

_CATEGORIES = [
    ("cat-1", "Salary", "Briefcase", "hsl(152, 60%, 42%)", TransactionType.income),
    ("cat-2", "Freelance", "Laptop", "hsl(170, 55%, 40%)", TransactionType.income),
    ("cat-3", "Investments", "TrendingUp", "hsl(200, 60%, 45%)", TransactionType.income),
    ("cat-4", "Food", "UtensilsCrossed", "hsl(0, 72%, 51%)", TransactionType.expense),
    ("cat-5", "Transport", "Car", "hsl(30, 80%, 50%)", TransactionType.expense),
    ("cat-6", "Housing", "Home", "hsl(260, 55%, 55%)", TransactionType.expense),
    ("cat-7", "Leisure", "Gamepad2", "hsl(320, 60%, 50%)", TransactionType.expense),
    ("cat-8", "Health", "Heart", "hsl(350, 70%, 55%)", TransactionType.expense),
    ("cat-9", "Education", "GraduationCap", "hsl(220, 70%, 50%)", TransactionType.expense),
    ("cat-10", "Shopping", "ShoppingBag", "hsl(38, 92%, 50%)", TransactionType.expense),
]

# (months back, day, type, category id, description, amount in cents)
_TRANSACTIONS = [
    (0, 5, TransactionType.income, "cat-1", "Monthly salary", 850_000),
    (0, 12, TransactionType.income, "cat-2", "Website project", 220_000),
    (0, 8, TransactionType.income, "cat-3", "Dividends", 45_000),
    (0, 1, TransactionType.expense, "cat-6", "Rent", 280_000),
    (0, 3, TransactionType.expense, "cat-4", "Supermarket", 89_000),
    (0, 6, TransactionType.expense, "cat-5", "Fuel", 32_000),
    (0, 9, TransactionType.expense, "cat-7", "Cinema and dinner", 18_000),
    (0, 10, TransactionType.expense, "cat-8", "Health insurance", 65_000),
    (0, 7, TransactionType.expense, "cat-9", "Online course", 19_700),
    (0, 11, TransactionType.expense, "cat-10", "Clothes", 43_000),
    (0, 13, TransactionType.expense, "cat-4", "Restaurant", 24_500),
    (1, 5, TransactionType.income, "cat-1", "Monthly salary", 850_000),
    (1, 15, TransactionType.income, "cat-2", "Consulting", 180_000),
    (1, 1, TransactionType.expense, "cat-6", "Rent", 280_000),
    (1, 4, TransactionType.expense, "cat-4", "Supermarket", 75_000),
    (1, 8, TransactionType.expense, "cat-5", "Taxi", 28_000),
    (1, 20, TransactionType.expense, "cat-7", "Concert", 35_000),
    (1, 10, TransactionType.expense, "cat-8", "Health insurance", 65_000),
    (1, 18, TransactionType.expense, "cat-10", "Electronics", 120_000),
    (2, 5, TransactionType.income, "cat-1", "Monthly salary", 820_000),
    (2, 12, TransactionType.income, "cat-3", "Interest", 38_000),
    (2, 1, TransactionType.expense, "cat-6", "Rent", 280_000),
    (2, 6, TransactionType.expense, "cat-4", "Supermarket", 68_000),
    (2, 10, TransactionType.expense, "cat-5", "Fuel", 35_000),
    (2, 14, TransactionType.expense, "cat-9", "Books", 12_000),
]


def default_categories() -> list[Category]:
    return [
        Category(id=cid, name=name, icon=icon, color=color, type=ctype)
        for cid, name, icon, color, ctype in _CATEGORIES
    ]


def default_transactions(today: date) -> list[Transaction]:
    transactions: list[Transaction] = []
    for idx, (back, day, ttype, category_id, description, cents) in enumerate(
        _TRANSACTIONS, start=1
    ):
        month_start = add_months(today, -back)
        transactions.append(
            Transaction(
                id=f"tx-{idx}",
                type=ttype,
                category_id=category_id,
                description=description,
                amount_cents=cents,
                date=month_start.replace(day=day),
            )
        )
    return transactions


def default_goal(today: date) -> MonthlyGoal:
    return MonthlyGoal(month=today.strftime("%Y-%m"), amount_cents=DEFAULT_GOAL_CENTS)
