from dataclasses import dataclass
from datetime import date


@dataclass(slots=True)
class Profile:
    user_id: str
    name: str | None = None
    telegram_chat_id: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or "amigo"


@dataclass(slots=True)
class LinkCode:
    id: int | None
    user_id: str
    code: str
    expires_at: str
    used: bool = False
    created_at: str | None = None


@dataclass(slots=True)
class Transaction:
    id: int | None
    user_id: str
    amount: float
    description: str
    type: str
    date: date


@dataclass(slots=True)
class LeisureBudget:
    id: int | None
    user_id: str
    monthly_amount: float
    spent_this_month: float = 0.0

    @property
    def remaining(self) -> float:
        return self.monthly_amount - self.spent_this_month


@dataclass(slots=True)
class Goal:
    id: int | None
    user_id: str
    name: str
    target_amount: float
    current_amount: float = 0.0
    is_achieved: bool = False

    @property
    def progress_pct(self) -> float:
        if not self.target_amount:
            return 0.0
        return self.current_amount / self.target_amount * 100


@dataclass(slots=True)
class Debt:
    id: int | None
    user_id: str
    name: str
    remaining_amount: float
    monthly_payment: float | None = None
    is_paid: bool = False


@dataclass(slots=True)
class IncomeSource:
    id: int | None
    user_id: str
    name: str
    amount: float
