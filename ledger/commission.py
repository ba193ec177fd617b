# ledger/commission.py
from dataclasses import dataclass
from decimal import Decimal

from utils import ZERO, quantize_money

HUNDRED = Decimal("100")


def _as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass(frozen=True)
class CommissionBreakdown:
    member_rebate: Decimal
    personal_share: Decimal
    personal_rebate: Decimal
    receivable: Decimal
    payable: Decimal
    profit: Decimal

    def to_dict(self):
        return {
            "memberRebate": float(self.member_rebate),
            "personalShare": float(self.personal_share),
            "personalRebate": float(self.personal_rebate),
            "receivable": float(self.receivable),
            "payable": float(self.payable),
            "profit": float(self.profit),
        }


def commission(win_loss, valid_bet, share_percent, rebate_percent) -> CommissionBreakdown:
    """
    Agent commission for one period.

    `win_loss` is signed from the members' side: positive means members won
    and the agent pays out, negative means members lost and the agent collects.
    Share and rebate are computed on magnitudes, so the agent's own cut does
    not depend on the sign. Percentage products are rounded to 0.01 with
    ROUND_HALF_UP.
    """
    win_loss = _as_decimal(win_loss)
    valid_bet = _as_decimal(valid_bet)
    share_percent = _as_decimal(share_percent)
    rebate_percent = _as_decimal(rebate_percent)

    member_rebate = quantize_money(valid_bet * rebate_percent / HUNDRED)
    personal_share = quantize_money(abs(win_loss) * share_percent / HUNDRED)
    personal_rebate = member_rebate

    receivable = quantize_money(abs(win_loss)) if win_loss < 0 else ZERO
    payable = quantize_money(win_loss + member_rebate) if win_loss > 0 else member_rebate
    profit = receivable - payable + personal_share + personal_rebate

    return CommissionBreakdown(
        member_rebate=member_rebate,
        personal_share=personal_share,
        personal_rebate=personal_rebate,
        receivable=receivable,
        payable=payable,
        profit=quantize_money(profit),
    )
