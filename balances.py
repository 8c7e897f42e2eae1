"""
Reconciles the on-chain balance record into one plaintext balance.

The EGCT, once present, is authoritative. Until the contract (or the
owner) folds deposits into it, the balance is the sum of the pending
Poseidon-encrypted deltas.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from discrete_log import DiscreteLogSolver
from elgamal import EGCT, EMPTY_EGCT, decrypt_point
from errors import DecryptionFailed, InvalidPoint
from jubjub import validate_point
from poseidon import PCT, decrypt_pct

logger = logging.getLogger(__name__)

EMPTY_PCT = [0] * 7


@dataclass(frozen=True)
class AmountPCT:
    pct: PCT
    index: int

    @classmethod
    def from_contract(cls, raw) -> "AmountPCT":
        if isinstance(raw, dict):
            return cls(PCT.from_array(raw["pct"]), int(raw["index"]))
        pct, index = raw
        return cls(PCT.from_array(pct), int(index))


@dataclass(frozen=True)
class AccountBalance:
    egct: EGCT = EMPTY_EGCT
    nonce: int = 0
    amount_pcts: List[AmountPCT] = field(default_factory=list)
    balance_pct: PCT = field(default_factory=lambda: PCT.from_array(EMPTY_PCT))
    transaction_index: int = 0

    @classmethod
    def from_contract(cls, raw) -> "AccountBalance":
        """
        Accepts the contract getter output either as a dict
        (egct, nonce, amount_pcts, balance_pct, transaction_index) or as the
        positional tuple (eGCT, nonce, amountPCTs, balancePCT, transactionIndex).
        """
        if isinstance(raw, dict):
            egct = raw["egct"]
            nonce = raw["nonce"]
            amount_pcts = raw["amount_pcts"]
            balance_pct = raw["balance_pct"]
            transaction_index = raw["transaction_index"]
        else:
            egct, nonce, amount_pcts, balance_pct, transaction_index = raw
        return cls(
            egct=EGCT.from_array(egct),
            nonce=int(nonce),
            amount_pcts=[AmountPCT.from_contract(a) for a in amount_pcts or []],
            balance_pct=PCT.from_array(balance_pct),
            transaction_index=int(transaction_index),
        )


def decrypt_egct_balance(private_key: int, egct: EGCT,
                         solver: DiscreteLogSolver, max_value: int = None) -> int:
    """Raises InvalidPoint for a malformed EGCT and DiscreteLogNotFound past the bound."""
    c1 = validate_point(egct.c1)
    c2 = validate_point(egct.c2)
    return solver.recover_scalar(decrypt_point(private_key, c1, c2), max_value)


def sum_pcts(private_key: int, pcts: Sequence[PCT]) -> int:
    total = 0
    for slot, pct in enumerate(pcts):
        if pct.is_empty:
            continue
        try:
            total += decrypt_pct(private_key, pct)[0]
        except (DecryptionFailed, InvalidPoint) as e:
            logger.warning("skipping PCT slot %d: %s", slot, e)
    return total


def get_decrypted_balance(private_key: int, amount_pcts: Sequence[AmountPCT],
                          balance_pct: PCT, egct: EGCT,
                          solver: DiscreteLogSolver = None, max_value: int = None) -> int:
    if not egct.is_empty:
        if solver is None:
            solver = DiscreteLogSolver()
        return decrypt_egct_balance(private_key, egct, solver, max_value)

    pcts = [balance_pct] + [a.pct for a in amount_pcts]
    return sum_pcts(private_key, pcts)


def decrypt_account_balance(private_key: int, record: AccountBalance,
                            solver: DiscreteLogSolver = None, max_value: int = None) -> int:
    return get_decrypted_balance(
        private_key, record.amount_pcts, record.balance_pct, record.egct,
        solver=solver, max_value=max_value,
    )
