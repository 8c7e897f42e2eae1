"""
ElGamal on Baby Jubjub with the message in the exponent.

An EGCT (c1, c2) encrypts balance b to public key P as

    c1 = BASE8 * r
    c2 = BASE8 * b + P * r

so c2 - c1 * sk gives back BASE8 * b, not b itself (see discrete_log).
"""

from dataclasses import dataclass
from typing import Sequence

from jubjub import BASE8, ZERO_POINT, Point, random_scalar, validate_point


@dataclass(frozen=True)
class EGCT:
    c1: Point
    c2: Point

    @classmethod
    def from_array(cls, values: Sequence[Sequence[int]]) -> "EGCT":
        if len(values) != 2:
            raise ValueError("EGCT must be two points")
        return cls(Point.from_pair(values[0]), Point.from_pair(values[1]))

    def to_array(self) -> list:
        return [self.c1.to_pair(), self.c2.to_pair()]

    @property
    def is_empty(self) -> bool:
        return self.c1.is_zero and self.c2.is_zero


EMPTY_EGCT = EGCT(ZERO_POINT, ZERO_POINT)


def decrypt_point(private_key: int, c1: Point, c2: Point) -> Point:
    return c2 - c1 * private_key


def encrypt_balance(public_key: Point, amount: int, randomness: int = None) -> EGCT:
    if amount < 0:
        raise ValueError("amount must be non-negative")
    validate_point(public_key)
    if randomness is None:
        randomness = random_scalar()
    return EGCT(
        c1=BASE8 * randomness,
        c2=BASE8 * amount + public_key * randomness,
    )
