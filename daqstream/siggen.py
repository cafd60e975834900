"""Helpers of the signal generator: prime factorization of rates and duration parsing."""

from __future__ import annotations

import math
import re
from typing import Mapping

EPSILON = 0.000001

NANOSECONDS_PER_SECOND = 1_000_000_000

_DURATION_UNITS = {
    "s": NANOSECONDS_PER_SECOND,
    "ms": 1_000_000,
    "µs": 1_000,
    "ns": 1,
}

_DURATION = re.compile(r"\s*\+?(\d+)\s*(\S+)")

PrimeFactorExponents = dict[int, int]


def get_factor_for_factorization(number: float) -> int:
    """Factor that turns ``number`` into an integer fit for factorization.

    Returns 0 for 0, which can not be expanded.
    """
    if abs(number) < EPSILON:
        return 0
    multiplier = 1
    while abs(math.modf(number)[0]) > EPSILON:
        multiplier *= 10
        number *= 10
    if abs(number) - 1 < EPSILON:
        # 1 can not be factorized either.
        multiplier *= 2
    return multiplier


def get_prime_factor_exponents(value: int) -> PrimeFactorExponents:
    """Prime factors of ``value`` with their exponents; empty for 0 and 1."""
    if value < 0:
        raise ValueError("value must not be negative")
    exponents: PrimeFactorExponents = {}
    divisor = 2
    while divisor <= value:
        while value % divisor == 0:
            value //= divisor
            exponents[divisor] = exponents.get(divisor, 0) + 1
        divisor += 1
    return exponents


def compose_prime_factor_exponents(exponents: Mapping[int, int]) -> dict[str, int]:
    """Document form of prime factor exponents, keyed by the primes as text."""
    return dict(sorted((str(prime), exponent) for prime, exponent in exponents.items()))


def get_product(exponents: Mapping[int, int]) -> float:
    """Product of all primes raised to their exponents; 0.0 if there are none."""
    if not exponents:
        return 0.0
    return math.prod(float(prime) ** exponent for prime, exponent in exponents.items())


def change_signs(exponents: Mapping[int, int]) -> PrimeFactorExponents:
    """Negate every exponent, turning a frequency into a period and back."""
    return {prime: -exponent for prime, exponent in sorted(exponents.items())}


def duration_from_string(text: str, default: int) -> int:
    """Duration in nanoseconds from text like ``"10ms"``.

    Units are s, ms, µs and ns. ``default`` is returned for anything else.
    """
    match = _DURATION.match(text)
    if match is None:
        return default
    factor = _DURATION_UNITS.get(match.group(2))
    if factor is None:
        return default
    return int(match.group(1)) * factor