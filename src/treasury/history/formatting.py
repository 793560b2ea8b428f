"""Display helpers for balance series: date labels and fixed-point amounts."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, localcontext

# Wide enough for U128 amounts with any realistic decimals.
_AMOUNT_PRECISION = 80

_TWO_PLACES = Decimal("0.01")

HOURS_IN_MONTH = 24 * 30


def format_date(timestamp_ms: float, period_hours: float) -> str:
    """Label a sample according to how far apart samples are.

    Sub-hour steps show "3:10 PM", hourly steps "3 PM", up to monthly steps
    "Jan 05", monthly steps "Jan 25" (month and two-digit year), anything
    coarser just the year. All labels are UTC.
    """
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    if period_hours <= 1:
        hour = dt.strftime("%I").lstrip("0") or "12"
        if period_hours < 1:
            return f"{hour}:{dt:%M} {dt:%p}"
        return f"{hour} {dt:%p}"

    if period_hours < HOURS_IN_MONTH:
        return dt.strftime("%b %d")

    if period_hours == HOURS_IN_MONTH:
        return dt.strftime("%b %y")

    return dt.strftime("%Y")


def convert_ft_balance(value: str | int, decimals: int) -> str:
    """Scale a smallest-unit amount by 10^decimals and format with 2 decimals."""
    with localcontext() as ctx:
        ctx.prec = _AMOUNT_PRECISION
        amount = Decimal(str(value)).scaleb(-decimals)
        return str(amount.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def to_non_divisible_number(decimals: int | None, number: str) -> str:
    """Convert a human amount ("1.5") to an integer string in smallest units.

    Extra fractional digits beyond ``decimals`` are truncated.
    """
    if decimals is None:
        return number
    whole, _, frac = number.partition(".")
    digits = f"{whole}{frac.ljust(decimals, '0')[:decimals]}".lstrip("0")
    return digits or "0"


def from_non_divisible_number(decimals: int, amount: str | int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _AMOUNT_PRECISION
        return Decimal(str(amount)).scaleb(-decimals)
