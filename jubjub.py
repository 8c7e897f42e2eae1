"""
Baby Jubjub: the twisted Edwards curve embedded in the BN254 scalar field.

    a*x^2 + y^2 = 1 + d*x^2*y^2   (mod p)

Only the prime-order subgroup generated by BASE8 is used. Points are kept
in affine coordinates so they can be compared directly against the (x, y)
pairs the contract stores.

The arithmetic here and the Poseidon permutation in poseidon.py are checked
against circomlib: BASE8 is in the subgroup, and poseidon([1, 2]) matches
circomlib's published value (see tests/test_poseidon.py).
"""

import secrets
from dataclasses import dataclass

from errors import InvalidPoint

# ---- Curve parameters -----------------------------------------------------------

p = 21888242871839275222246405745257275088548364400416034343698204186575808495617
A = 168700
D = 168696

# Order of the subgroup generated by BASE8
SUBGROUP_ORDER = 2736030358979909402780800718157159386076813972158567259200215660948447373041

BASE8_X = 5299619240641551281634865583518297030282874472190772894086521144482721001553
BASE8_Y = 16950150798460657717958625567821834550301663161624707787222815936182638968203


def mod_inverse(x: int, modulus: int = p) -> int:
    return pow(x % modulus, -1, modulus)


class Scalar(int):
    """Integer reduced modulo the subgroup order at construction."""

    def __new__(cls, value: int):
        return super().__new__(cls, int(value) % SUBGROUP_ORDER)

    def __repr__(self):
        return "Scalar(%d)" % int(self)


# ---- Points ---------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    x: int
    y: int

    @classmethod
    def from_pair(cls, pair) -> "Point":
        x, y = pair
        return cls(int(x) % p, int(y) % p)

    def to_pair(self) -> list:
        return [self.x, self.y]

    @property
    def is_zero(self) -> bool:
        # (0, 0) is not on the curve; the contract uses it for "no value"
        return self.x == 0 and self.y == 0

    @property
    def is_identity(self) -> bool:
        return self.x == 0 and self.y == 1

    def is_on_curve(self) -> bool:
        xx = self.x * self.x % p
        yy = self.y * self.y % p
        return (A * xx + yy) % p == (1 + D * xx * yy) % p

    def in_subgroup(self) -> bool:
        return scalar_mult(self, SUBGROUP_ORDER).is_identity

    def __add__(self, other: "Point") -> "Point":
        return point_add(self, other)

    def __neg__(self) -> "Point":
        return Point((-self.x) % p, self.y)

    def __sub__(self, other: "Point") -> "Point":
        return point_add(self, -other)

    def __mul__(self, k: int) -> "Point":
        return scalar_mult(self, int(k) % SUBGROUP_ORDER)

    __rmul__ = __mul__

    def __repr__(self):
        return "Point(x=%s..., y=%s...)" % (hex(self.x)[:12], hex(self.y)[:12])


IDENTITY = Point(0, 1)
ZERO_POINT = Point(0, 0)
BASE8 = Point(BASE8_X, BASE8_Y)


def point_add(P: Point, Q: Point) -> Point:
    # Unified twisted Edwards addition; complete on Baby Jubjub since d is a non-square
    x1, y1 = P.x, P.y
    x2, y2 = Q.x, Q.y
    t = D * x1 * x2 % p * y1 % p * y2 % p
    x3 = (x1 * y2 + y1 * x2) * mod_inverse(1 + t) % p
    y3 = (y1 * y2 - A * x1 * x2) * mod_inverse(1 - t) % p
    return Point(x3, y3)


def scalar_mult(P: Point, k: int) -> Point:
    """Double-and-add, MSB first. `k` is used as given (no reduction)."""
    if k < 0:
        return scalar_mult(-P, -k)
    result = IDENTITY
    for bit in bin(k)[2:]:
        result = point_add(result, result)
        if bit == "1":
            result = point_add(result, P)
    return result


def base_mult(k: int) -> Point:
    return BASE8 * k


def random_scalar() -> Scalar:
    return Scalar(secrets.randbelow(SUBGROUP_ORDER - 1) + 1)


def validate_point(point: Point) -> Point:
    """Returns `point` unchanged if it is a subgroup member, else raises InvalidPoint."""
    if not (0 <= point.x < p and 0 <= point.y < p):
        raise InvalidPoint("coordinates out of field range")
    if not point.is_on_curve():
        raise InvalidPoint("point is not on Baby Jubjub")
    if not point.in_subgroup():
        raise InvalidPoint("point is not in the prime-order subgroup")
    return point
