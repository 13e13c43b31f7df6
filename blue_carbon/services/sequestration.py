"""
Sequestration calculator.

Converts restored area and ecosystem type into an estimated credit
quantity using an injected table of annual sequestration rates.
"""
import math
import re
from decimal import Decimal, ROUND_HALF_UP, localcontext
from numbers import Real
from typing import Dict, Optional, Tuple, Union

from blue_carbon.domains.config import SequestrationRates
from blue_carbon.domains.projects import EcosystemType
from blue_carbon.exceptions import InvalidInputError, UnknownEcosystemError

_ALIASES = {re.sub(r"[^a-z]", "", member.value.lower()): member for member in EcosystemType}


def _integer_digits(value: Decimal) -> int:
    sign, digits, exponent = value.as_tuple()
    return len(digits) + max(exponent, 0)


class SequestrationCalculator:
    """Pure, memoized credit estimator."""

    def __init__(self, rates: Optional[SequestrationRates] = None):
        self.rates = rates or SequestrationRates()
        self._cache: Dict[Tuple[EcosystemType, float], int] = {}

    def resolve_ecosystem(self, ecosystem_type: Union[EcosystemType, str]) -> EcosystemType:
        """Normalize an ecosystem name ("salt-marsh", "SaltMarsh", ...) to the enum."""
        if isinstance(ecosystem_type, EcosystemType):
            return ecosystem_type
        if isinstance(ecosystem_type, str):
            member = _ALIASES.get(re.sub(r"[^a-z]", "", ecosystem_type.lower()))
            if member is not None:
                return member
        raise UnknownEcosystemError(ecosystem_type)

    def annual_rate(self, ecosystem_type: Union[EcosystemType, str]) -> float:
        """Configured tCO2e per hectare per year."""
        ecosystem = self.resolve_ecosystem(ecosystem_type)
        if ecosystem not in self.rates.rates:
            raise UnknownEcosystemError(ecosystem.value)
        return self.rates.rates[ecosystem]

    def estimate_credits(self, ecosystem_type: Union[EcosystemType, str], hectares: float) -> int:
        """Estimate credits as hectares times the annual rate, rounded half up.

        Args:
            ecosystem_type: Ecosystem restored
            hectares: Restored area, must be >= 0

        Returns:
            Estimated credits in tCO2e

        Raises:
            InvalidInputError: If hectares is not a finite non-negative number
            UnknownEcosystemError: If the ecosystem has no configured rate
        """
        if isinstance(hectares, bool) or not isinstance(hectares, Real):
            raise InvalidInputError(f"Hectares must be a number, got {hectares!r}")
        try:
            finite = math.isfinite(hectares)
        except OverflowError:
            raise InvalidInputError(f"Hectares {hectares} is out of range") from None
        if not finite or hectares < 0:
            raise InvalidInputError(f"Hectares must be a finite non-negative number, got {hectares}")

        ecosystem = self.resolve_ecosystem(ecosystem_type)
        key = (ecosystem, float(hectares))
        if key not in self._cache:
            area = Decimal(str(hectares))
            rate = Decimal(str(self.annual_rate(ecosystem)))
            with localcontext() as ctx:
                # Exact product and integer quantize, however large the area
                ctx.prec = _integer_digits(area) + _integer_digits(rate) + 28
                credits = (area * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            self._cache[key] = int(credits)
        return self._cache[key]
