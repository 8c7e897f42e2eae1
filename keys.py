"""
Deterministic Baby Jubjub key pairs from wallet signatures.

The wallet signs a fixed message (see `registration_message`), so the same
account always gets the same keys back and nothing has to be stored.
"""

from dataclasses import dataclass, field

from Crypto.Hash import keccak

from config import DECRYPT_BALANCE_MESSAGE, REGISTRATION_MESSAGE, SIGNATURE_LENGTH
from errors import InvalidSignature
from jubjub import SUBGROUP_ORDER, Point, Scalar, base_mult


@dataclass(frozen=True)
class KeyPair:
    private_key: Scalar = field(repr=False)
    public_key: Point


def registration_message(address: str) -> str:
    return REGISTRATION_MESSAGE.format(address=address.lower())


def decrypt_balance_message(address: str) -> str:
    return DECRYPT_BALANCE_MESSAGE.format(address=address)


def signature_bytes(signature) -> bytes:
    if isinstance(signature, (bytes, bytearray)):
        raw = bytes(signature)
    elif isinstance(signature, str):
        text = signature[2:] if signature[:2] in ("0x", "0X") else signature
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise InvalidSignature("signature is not a hex string") from None
    else:
        raise InvalidSignature("signature must be bytes or a hex string")
    if len(raw) != SIGNATURE_LENGTH:
        raise InvalidSignature(
            "signature must be %d bytes, got %d" % (SIGNATURE_LENGTH, len(raw))
        )
    return raw


def derive_private_key(signature) -> Scalar:
    digest = bytearray(keccak.new(digest_bits=256, data=signature_bytes(signature)).digest())

    # Edwards clamping
    digest[0] &= 0b11111000
    digest[31] &= 0b01111111
    digest[31] |= 0b01000000

    sk = int.from_bytes(bytes(digest), "little") % SUBGROUP_ORDER
    if sk == 0:
        sk = 1
    return Scalar(sk)


def derive_key_pair(signature) -> KeyPair:
    private_key = derive_private_key(signature)
    return KeyPair(private_key=private_key, public_key=base_mult(private_key))
