"""Free-text expense detection for chat messages.

Messages such as "gastei 45,50 no mercado" or "30 reais na padaria" are
turned into an amount and a short description. Rules are tried in order and
the first one that matches decides the result.
"""

import re
from dataclasses import dataclass

MIN_AMOUNT = 0.01
MAX_AMOUNT = 1_000_000
MAX_DESCRIPTION_LENGTH = 200

_FORBIDDEN_CHARS = re.compile(r"[<>\"'&]")

_AMOUNT = r"(?:R\$\s*)?(\d+(?:[.,]\d{1,2})?)"
_TAIL = r"\s+(?:reais?\s+)?(?:no|na|em|de)\s+(.+)"

EXPENSE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("verb", re.compile(r"\b(?:gastei|paguei|comprei)\s+" + _AMOUNT + _TAIL, re.IGNORECASE)),
    ("bare", re.compile(r"(?<![\d.,])" + _AMOUNT + _TAIL, re.IGNORECASE)),
]


class InvalidExpenseError(ValueError):
    pass


class InvalidAmountError(InvalidExpenseError):
    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__("❌ Valor inválido. Use valores entre R$0,01 e R$1.000.000")


class InvalidDescriptionError(InvalidExpenseError):
    def __init__(self) -> None:
        super().__init__("❌ Descrição inválida. Informe onde você gastou.")


@dataclass(slots=True, frozen=True)
class ExpenseIntent:
    amount: float
    description: str
    pattern: str


def parse_amount(raw: str) -> float:
    try:
        amount = float(raw.strip().replace(",", "."))
    except ValueError:
        raise InvalidAmountError(raw) from None
    if not MIN_AMOUNT <= amount <= MAX_AMOUNT:
        raise InvalidAmountError(raw)
    return amount


def sanitize_description(raw: str) -> str:
    description = raw.strip()[:MAX_DESCRIPTION_LENGTH]
    description = _FORBIDDEN_CHARS.sub("", description).strip()
    if not description:
        raise InvalidDescriptionError()
    return description


def extract_expense(text: str) -> ExpenseIntent | None:
    """Return the expense described by ``text``, or None if no rule matches.

    Raises InvalidExpenseError when a rule matches but the amount is out of
    range or nothing is left of the description after sanitizing.
    """
    for name, pattern in EXPENSE_PATTERNS:
        match = pattern.search(text)
        if match:
            return ExpenseIntent(
                amount=parse_amount(match.group(1)),
                description=sanitize_description(match.group(2)),
                pattern=name,
            )
    return None
