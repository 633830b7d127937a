from io import BytesIO
from typing import Iterable, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font

from aggregation import GoalProgress, Summary, category_label, category_lookup
from models import TransactionType
from schemas import Category, Transaction

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _bold_header(sheet, headers: list[str]) -> None:
    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = Font(bold=True)


def build_workbook(
    transactions: Sequence[Transaction],
    categories: Iterable[Category],
    summary: Summary,
    goal: GoalProgress,
    savings_rate: int,
) -> bytes:
    """Two sheets: every transaction, and this month's headline figures."""
    lookup = category_lookup(categories)
    workbook = Workbook()

    txn_sheet = workbook.active
    txn_sheet.title = "Transactions"
    _bold_header(txn_sheet, ["Date", "Type", "Category", "Description", "Amount"])
    for txn in transactions:
        category_name, _color = category_label(txn.category_id, lookup)
        txn_sheet.append(
            [
                txn.date,
                "Income" if txn.type == TransactionType.income else "Expense",
                category_name,
                txn.description,
                txn.amount_cents / 100,
            ]
        )
    for row in txn_sheet.iter_rows(min_row=2, min_col=1, max_col=1):
        row[0].number_format = "DD/MM/YYYY"
    for row in txn_sheet.iter_rows(min_row=2, min_col=5, max_col=5):
        row[0].number_format = "#,##0.00"

    summary_sheet = workbook.create_sheet("Summary")
    _bold_header(summary_sheet, ["Indicator", "Value"])
    summary_sheet.append(["Total income", summary.income_cents / 100])
    summary_sheet.append(["Total expenses", summary.expense_cents / 100])
    summary_sheet.append(["Balance", summary.balance_cents / 100])
    summary_sheet.append(["Goal spent", f"{goal.percent}%"])
    summary_sheet.append(["Savings rate", f"{savings_rate}%"])

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
