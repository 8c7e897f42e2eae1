"""
Poseidon permutation over the BN254 scalar field and the Poseidon duplex
cipher used for PCTs (Poseidon Cipher Texts).

Round constants and the MDS matrix are produced by the Grain LFSR parameter
generator of the Poseidon reference implementation (x^5 S-box, 8 full
rounds), once per state width, on first use.

A PCT is the 7-element array the contract stores:

    ciphertext[0..3] ++ auth_key.x ++ auth_key.y ++ nonce
"""

import functools
import secrets
from dataclasses import dataclass
from typing import List, Sequence

from errors import DecryptionFailed
from jubjub import BASE8, SUBGROUP_ORDER, Point, mod_inverse, p, random_scalar, validate_point

FIELD_BITS = 254
FULL_ROUNDS = 8
# width -> partial rounds (128-bit security, alpha = 5)
PARTIAL_ROUNDS = {2: 56, 3: 57, 4: 56, 5: 60, 6: 60}

CIPHER_RATE = 3
TWO_128 = 1 << 128

PCT_CIPHERTEXT_LENGTH = 4
PCT_LENGTH = 7


# ---- Parameter generation -------------------------------------------------------

def to_bits(value: int, width: int) -> List[int]:
    return [int(b) for b in bin(value)[2:].zfill(width)]


class GrainLFSR:
    """80-bit self-shrinking Grain LFSR seeded with the Poseidon instance."""

    def __init__(self, field_bits: int, width: int, full_rounds: int, partial_rounds: int):
        state = (
            to_bits(1, 2)  # prime field
            + to_bits(0, 4)  # x^alpha S-box
            + to_bits(field_bits, 12)
            + to_bits(width, 12)
            + to_bits(full_rounds, 10)
            + to_bits(partial_rounds, 10)
            + [1] * 30
        )
        self.state = state
        for _ in range(160):
            self.clock()

    def clock(self) -> int:
        s = self.state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.pop(0)
        s.append(bit)
        return bit

    def next_bit(self) -> int:
        # Self-shrinking: a 0 selector discards the following bit
        while self.clock() == 0:
            self.clock()
        return self.clock()

    def next_int(self, bits: int) -> int:
        value = 0
        for _ in range(bits):
            value = (value << 1) | self.next_bit()
        return value

    def next_field_element(self, bits: int = FIELD_BITS) -> int:
        value = self.next_int(bits)
        while value >= p:
            value = self.next_int(bits)
        return value


@functools.lru_cache(maxsize=None)
def poseidon_parameters(width: int):
    """Returns (round_constants, mds) for a state of `width` elements."""
    if width not in PARTIAL_ROUNDS:
        raise ValueError("unsupported Poseidon width %d" % width)
    partial_rounds = PARTIAL_ROUNDS[width]
    grain = GrainLFSR(FIELD_BITS, width, FULL_ROUNDS, partial_rounds)

    constants = tuple(
        grain.next_field_element()
        for _ in range((FULL_ROUNDS + partial_rounds) * width)
    )

    # Cauchy matrix 1 / (x_i + y_j) from 2*width distinct draws
    while True:
        draws = [grain.next_int(FIELD_BITS) % p for _ in range(2 * width)]
        if len(set(draws)) != 2 * width:
            continue
        xs, ys = draws[:width], draws[width:]
        if any((x + y) % p == 0 for x in xs for y in ys):
            continue
        break
    mds = tuple(tuple(mod_inverse(x + y) for y in ys) for x in xs)
    return constants, mds


def poseidon_permutation(state: Sequence[int]) -> List[int]:
    width = len(state)
    constants, mds = poseidon_parameters(width)
    partial_rounds = PARTIAL_ROUNDS[width]
    half = FULL_ROUNDS // 2

    state = [int(s) % p for s in state]
    for r in range(FULL_ROUNDS + partial_rounds):
        offset = r * width
        state = [(s + constants[offset + i]) % p for i, s in enumerate(state)]
        if r < half or r >= half + partial_rounds:
            state = [pow(s, 5, p) for s in state]
        else:
            state[0] = pow(state[0], 5, p)
        state = [sum(m * s for m, s in zip(row, state)) % p for row in mds]
    return state


# ---- Duplex cipher --------------------------------------------------------------

def ciphertext_length(length: int) -> int:
    return -(-length // CIPHER_RATE) * CIPHER_RATE + 1


def initial_state(key: Point, nonce: int, length: int) -> List[int]:
    return [0, key.x, key.y, (nonce + length * TWO_128) % p]


def poseidon_encrypt(message: Sequence[int], key: Point, nonce: int) -> List[int]:
    if not 0 <= nonce < TWO_128:
        raise ValueError("nonce must be below 2^128")
    padded = [int(m) % p for m in message]
    padded += [0] * (-len(padded) % CIPHER_RATE)

    state = initial_state(key, nonce, len(message))
    ciphertext = []
    for i in range(0, len(padded), CIPHER_RATE):
        state = poseidon_permutation(state)
        for j in range(CIPHER_RATE):
            state[j + 1] = (state[j + 1] + padded[i + j]) % p
            ciphertext.append(state[j + 1])
    state = poseidon_permutation(state)
    ciphertext.append(state[1])
    return ciphertext


def poseidon_decrypt(ciphertext: Sequence[int], key: Point, nonce: int, length: int) -> List[int]:
    if not 0 <= nonce < TWO_128:
        raise DecryptionFailed("nonce must be below 2^128")
    if len(ciphertext) != ciphertext_length(length):
        raise DecryptionFailed(
            "ciphertext of %d elements cannot hold %d values" % (len(ciphertext), length)
        )

    state = initial_state(key, nonce, length)
    message = []
    for i in range(0, len(ciphertext) - 1, CIPHER_RATE):
        state = poseidon_permutation(state)
        for j in range(CIPHER_RATE):
            c = int(ciphertext[i + j]) % p
            message.append((c - state[j + 1]) % p)
            state[j + 1] = c

    if any(message[length:]):
        raise DecryptionFailed("padding did not decrypt to zero")

    state = poseidon_permutation(state)
    if int(ciphertext[-1]) % p != state[1]:
        raise DecryptionFailed("authentication tag mismatch")
    return message[:length]


# ---- PCT ------------------------------------------------------------------------

@dataclass(frozen=True)
class PCT:
    ciphertext: tuple
    auth_key: Point
    nonce: int

    @classmethod
    def from_array(cls, values: Sequence[int]) -> "PCT":
        values = [int(v) for v in values]
        if len(values) != PCT_LENGTH:
            raise ValueError("PCT must have %d elements, got %d" % (PCT_LENGTH, len(values)))
        return cls(
            ciphertext=tuple(values[:4]),
            auth_key=Point(values[4], values[5]),
            nonce=values[6],
        )

    def to_array(self) -> List[int]:
        return list(self.ciphertext) + [self.auth_key.x, self.auth_key.y, self.nonce]

    @property
    def is_empty(self) -> bool:
        return not any(self.ciphertext) or self.auth_key.is_zero


@dataclass(frozen=True)
class PoseidonEncryption:
    ciphertext: List[int]
    nonce: int
    auth_key: Point
    shared_secret: Point

    def to_pct(self) -> PCT:
        if len(self.ciphertext) != PCT_CIPHERTEXT_LENGTH:
            raise ValueError("a PCT holds at most %d values" % CIPHER_RATE)
        return PCT(tuple(self.ciphertext), self.auth_key, self.nonce)


def random_nonce() -> int:
    return secrets.randbelow(TWO_128 - 1) + 1


def encrypt(plaintext: Sequence[int], public_key: Point,
            randomness: int = None, nonce: int = None) -> PoseidonEncryption:
    """
    Encrypts `plaintext` to the holder of `public_key`.

    shared_secret = public_key * r, auth_key = BASE8 * r; the recipient
    recovers the shared secret as auth_key * private_key.
    """
    validate_point(public_key)
    if randomness is None:
        randomness = random_scalar()
    if nonce is None:
        nonce = random_nonce()
    if not 0 < randomness < SUBGROUP_ORDER:
        raise ValueError("encryption randomness must be in [1, subgroup order)")

    shared_secret = public_key * randomness
    auth_key = BASE8 * randomness
    ciphertext = poseidon_encrypt(plaintext, shared_secret, nonce)
    return PoseidonEncryption(ciphertext, nonce, auth_key, shared_secret)


def decrypt(ciphertext: Sequence[int], auth_key: Point, nonce: int,
            private_key: int, length: int = 1) -> List[int]:
    if auth_key.is_zero or not any(ciphertext):
        raise DecryptionFailed("empty PCT slot")
    validate_point(auth_key)
    shared_secret = auth_key * private_key
    return poseidon_decrypt(ciphertext, shared_secret, nonce, length)


def encrypt_pct(plaintext: Sequence[int], public_key: Point) -> PCT:
    if len(plaintext) > CIPHER_RATE:
        raise ValueError("a PCT holds at most %d values" % CIPHER_RATE)
    return encrypt(plaintext, public_key).to_pct()


def decrypt_pct(private_key: int, pct: PCT, length: int = 1) -> List[int]:
    return decrypt(pct.ciphertext, pct.auth_key, pct.nonce, private_key, length)
