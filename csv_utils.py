import csv
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from io import StringIO
from typing import Iterable, Optional, Sequence

from aggregation import category_label, category_lookup
from schemas import CardCSVRow, Category, CreditCard, Transaction


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def parse_date(value: str):
    value = value.strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d.%m.%Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date '{value}'")


def parse_amount(value: str, *, allow_negative: bool = False) -> int:
    clean = value.strip().replace("R$", "").replace("€", "").replace("$", "")
    clean = clean.replace(" ", "").replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    cents = int((amount * 100).quantize(Decimal("1")))
    if cents < 0 and not allow_negative:
        raise ValueError("Amount must be positive")
    return cents


def parse_card_csv(content: str) -> tuple[list[CardCSVRow], list[str]]:
    """Rows of a card statement with Date, Description, Amount and optional Category.

    Statements often list charges as negative numbers; only the magnitude is kept.
    """
    reader = csv.DictReader(StringIO(content))
    rows: list[CardCSVRow] = []
    errors: list[str] = []
    for idx, raw in enumerate(reader, start=1):
        try:
            date_value = parse_date(raw.get("Date") or "")
            description = (raw.get("Description") or "").strip()
            if not description:
                raise ValueError("Description is required")
            amount_value = abs(parse_amount(raw.get("Amount") or "", allow_negative=True))
            category_raw = (raw.get("Category") or "").strip()
            rows.append(
                CardCSVRow(
                    date=date_value,
                    description=description,
                    amount_cents=amount_value,
                    category=category_raw or None,
                )
            )
        except ValueError as exc:
            errors.append(f"Row {idx}: {exc}")
    return rows, errors


def export_transactions(
    transactions: Sequence[Transaction],
    categories: Iterable[Category],
    cards: Optional[Iterable[CreditCard]] = None,
) -> str:
    lookup = category_lookup(categories)
    card_names = {card.id: card.name for card in cards or []}
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["Date", "Type", "Category", "Description", "Amount", "Card"])
    for txn in transactions:
        category_name, _color = category_label(txn.category_id, lookup)
        writer.writerow(
            [
                txn.date.isoformat(),
                txn.type.value,
                sanitize_csv_value(category_name),
                sanitize_csv_value(txn.description),
                f"{txn.amount_cents / 100:.2f}",
                sanitize_csv_value(card_names.get(txn.card_id or "", "")),
            ]
        )
    return output.getvalue()
