from decimal import Decimal, InvalidOperation

from balances import AccountBalance, decrypt_account_balance
from config import DECIMALS
from discrete_log import DiscreteLogSolver
from elgamal import encrypt_balance
from keys import KeyPair, derive_key_pair
from jubjub import Point, validate_point
from poseidon import encrypt_pct

# ---- Display helpers ----------------------------------------------------------

def format_balance(value: int, decimals: int = DECIMALS) -> str:
    # 12345 -> "123.45"
    if value < 0:
        raise ValueError("balance cannot be negative")
    if decimals == 0:
        return str(value)
    whole, frac = divmod(value, 10 ** decimals)
    return "%d.%0*d" % (whole, decimals, frac)


def parse_amount(text: str, decimals: int = DECIMALS) -> int:
    # "1.5" -> 150; rejects amounts finer than `decimals`
    try:
        amount = Decimal(text.strip())
    except InvalidOperation:
        raise ValueError("not a number: %r" % text) from None
    scaled = amount * (10 ** decimals)
    if amount < 0 or scaled != scaled.to_integral_value():
        raise ValueError("amount must be non-negative with at most %d decimals" % decimals)
    return int(scaled)


def public_key_from_contract(pair) -> Point:
    # get_public_key returns [0, 0] for unregistered accounts, which fails here too
    return validate_point(Point.from_pair(pair))


# ---- High-level builders -----------------------------------------------------

def build_register(signature) -> dict:
    """
    Returns args for contract.register():
        (public_key)
    `signature` is the wallet's signature over keys.registration_message(address).
    """
    key_pair = derive_key_pair(signature)
    return {
        'public_key': key_pair.public_key.to_pair(),
    }


def build_deposit(amount: int,
                  public_key: Point,
                  next_nonce: int = 1):
    """
    Returns args for contract.deposit():
        (amount, amount_pct, nonce)
    The amount travels in clear next to its PCT so the contract can move the
    underlying tokens; the PCT lets the owner read it back later.
    """
    if amount <= 0:
        raise ValueError("Deposit amount must be positive")

    amount_pct = encrypt_pct([amount], public_key)
    return {
        'amount': int(amount),
        'amount_pct': amount_pct.to_array(),
        'nonce': next_nonce
    }


def build_consolidation(key_pair: KeyPair,
                        record,
                        next_nonce: int = 1,
                        solver: DiscreteLogSolver = None,
                        max_value: int = None):
    """
    Returns args for contract.update_balance():
        (egct, balance_pct, nonce)
    Replaces the record with a freshly randomized EGCT and balance PCT
    holding the current total; pending amount PCTs are folded in when no
    EGCT exists yet. Raises DiscreteLogNotFound if the existing EGCT cannot
    be read, rather than overwriting it with a wrong total.
    """
    if not isinstance(record, AccountBalance):
        record = AccountBalance.from_contract(record)

    total = decrypt_account_balance(key_pair.private_key, record, solver=solver, max_value=max_value)
    egct = encrypt_balance(key_pair.public_key, total)
    balance_pct = encrypt_pct([total], key_pair.public_key)
    return {
        'egct': egct.to_array(),
        'balance_pct': balance_pct.to_array(),
        'nonce': next_nonce,
        'total': total
    }


def read_balance(record, private_key: int,
                 solver: DiscreteLogSolver = None,
                 max_value: int = None) -> int:
    """Decrypts a contract.get_balance() result into the plaintext balance."""
    if not isinstance(record, AccountBalance):
        record = AccountBalance.from_contract(record)
    return decrypt_account_balance(private_key, record, solver=solver, max_value=max_value)
