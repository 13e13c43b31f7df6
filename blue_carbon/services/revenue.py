"""
Revenue distributor.

Splits the market value of issued credits among the Panchayat, the
workers and NCCR using an injected policy. The total is rounded to the
currency precision first and only the last share absorbs rounding, so
the shares are never negative and always add up to the total.
"""
from decimal import Decimal, DecimalException, ROUND_DOWN, ROUND_HALF_UP, InvalidOperation, localcontext
from typing import Dict, List, Optional, Union

from blue_carbon.domains.certificates import Certificate
from blue_carbon.domains.config import RevenuePolicy
from blue_carbon.domains.projects import Worker, WorkerStatus
from blue_carbon.domains.revenue import RevenueSplit
from blue_carbon.exceptions import InvalidInputError

Number = Union[int, float, str, Decimal]

_HUNDRED = Decimal("100")


def _to_decimal(value: Number, name: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number, got {value!r}") from None
    if not number.is_finite() or number < 0:
        raise InvalidInputError(f"{name} must be a finite non-negative number, got {value}")
    return number


def _working_precision(*operands: Decimal, places: int = 0) -> int:
    """Digits needed to multiply the operands exactly and quantize to ``places``."""
    digits = 0
    for operand in operands:
        sign, coefficient, exponent = operand.as_tuple()
        digits += len(coefficient) + max(exponent, 0)
    return digits + places + 28


class RevenueDistributor:
    """Pure stakeholder revenue split."""

    def __init__(self, policy: Optional[RevenuePolicy] = None):
        self.policy = policy or RevenuePolicy()
        self._quantum = Decimal(1).scaleb(-self.policy.currency_precision)

    def _round(self, value: Decimal) -> Decimal:
        return value.quantize(self._quantum, rounding=ROUND_HALF_UP)

    def distribute(self, credit_quantity: Number, market_rate_per_credit: Number) -> RevenueSplit:
        """Split ``credit_quantity * market_rate_per_credit``.

        The total is rounded half up to the currency precision. The Panchayat
        and worker shares are rounded half up, the worker share never taking
        more than what the Panchayat share leaves, and NCCR receives the rest.

        Args:
            credit_quantity: Credits in tCO2e
            market_rate_per_credit: Price per credit

        Returns:
            Panchayat, worker and NCCR shares summing to the total value

        Raises:
            InvalidInputError: If an input is not a finite non-negative number
                or the total is beyond the representable range
        """
        quantity = _to_decimal(credit_quantity, "Credit quantity")
        rate = _to_decimal(market_rate_per_credit, "Market rate")
        policy = self.policy

        try:
            with localcontext() as ctx:
                ctx.prec = _working_precision(
                    quantity, rate, policy.panchayat_percent, policy.worker_percent,
                    places=policy.currency_precision,
                )
                total = self._round(quantity * rate)
                panchayat = self._round(total * policy.panchayat_percent / _HUNDRED)
                workers = min(self._round(total * policy.worker_percent / _HUNDRED), total - panchayat)
                nccr = total - panchayat - workers
        except DecimalException as e:
            raise InvalidInputError(
                f"Revenue for {credit_quantity} credits at {market_rate_per_credit} is out of range"
            ) from e

        return RevenueSplit(
            total_value=total,
            panchayat_share=panchayat,
            worker_share=workers,
            nccr_share=nccr,
        )

    def distribute_certificate(self, certificate: Certificate, market_rate_per_credit: Number) -> RevenueSplit:
        """Split the value of an issued certificate."""
        return self.distribute(certificate.credits_generated, market_rate_per_credit)

    def split_worker_share(self, worker_share: Number, workers: List[Worker]) -> Dict[str, Decimal]:
        """Divide the worker share among active workers in proportion to earned credits.

        Running totals are rounded down rather than individual payouts, so
        no payout is negative and the last eligible worker receives the
        remainder. If no active worker has earned credits, the share is
        divided evenly among active workers.
        """
        share = _to_decimal(worker_share, "Worker share")
        eligible = [worker for worker in workers if worker.status == WorkerStatus.ACTIVE]
        if not eligible:
            return {}

        weights = [Decimal(str(worker.earned_credits)) for worker in eligible]
        payouts: Dict[str, Decimal] = {}
        with localcontext() as ctx:
            ctx.prec = _working_precision(share, *weights, places=self.policy.currency_precision)
            total_weight = sum(weights)
            if total_weight == 0:
                weights = [Decimal(1)] * len(eligible)
                total_weight = Decimal(len(eligible))

            allocated = Decimal(0)
            running_weight = Decimal(0)
            for worker, weight in zip(eligible[:-1], weights[:-1]):
                running_weight += weight
                running_total = (share * running_weight / total_weight).quantize(
                    self._quantum, rounding=ROUND_DOWN)
                payouts[worker.id] = running_total - allocated
                allocated = running_total
            payouts[eligible[-1].id] = share - allocated
        return payouts
