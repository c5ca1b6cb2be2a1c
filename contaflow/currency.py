CURRENCY_SYMBOL = "R$"


def format_brl(amount: float) -> str:
    return f"{CURRENCY_SYMBOL} {amount:.2f}"


def format_pct(value: float) -> str:
    return f"{value:.0f}%"
