import pytest

from balances import AccountBalance
from elgamal import EGCT, decrypt_point
from errors import InvalidPoint
from jubjub import BASE8, Point, p
from keys import derive_key_pair
from poseidon import PCT, decrypt_pct

from conftest import ALICE_SIGNATURE


def test_format_balance(helper_module):
    assert helper_module.format_balance(12345) == "123.45"
    assert helper_module.format_balance(5) == "0.05"
    assert helper_module.format_balance(0) == "0.00"
    assert helper_module.format_balance(7, decimals=0) == "7"
    with pytest.raises(ValueError):
        helper_module.format_balance(-1)


def test_parse_amount(helper_module):
    assert helper_module.parse_amount("1.5") == 150
    assert helper_module.parse_amount(" 1000 ") == 100_000
    assert helper_module.parse_amount("0.01") == 1
    for bad in ("abc", "-1", "0.001"):
        with pytest.raises(ValueError):
            helper_module.parse_amount(bad)


def test_build_register_uses_derived_key(helper_module):
    plan = helper_module.build_register(ALICE_SIGNATURE)
    assert plan["public_key"] == derive_key_pair(ALICE_SIGNATURE).public_key.to_pair()


def test_build_deposit_is_readable_by_owner(helper_module, alice_keys):
    plan = helper_module.build_deposit(
        amount=250,
        public_key=alice_keys.public_key,
        next_nonce=3,
    )
    assert plan["amount"] == 250
    assert plan["nonce"] == 3
    assert len(plan["amount_pct"]) == 7
    pct = PCT.from_array(plan["amount_pct"])
    assert decrypt_pct(alice_keys.private_key, pct) == [250]


def test_build_deposit_rejects_non_positive(helper_module, alice_keys):
    with pytest.raises(ValueError):
        helper_module.build_deposit(amount=0, public_key=alice_keys.public_key)


def test_build_consolidation_folds_pending(helper_module, alice_keys, solver):
    raw = {
        'egct': [[0, 0], [0, 0]],
        'nonce': 2,
        'amount_pcts': [
            {'pct': helper_module.build_deposit(100, alice_keys.public_key)["amount_pct"], 'index': 0},
            {'pct': helper_module.build_deposit(150, alice_keys.public_key)["amount_pct"], 'index': 1},
        ],
        'balance_pct': [0] * 7,
        'transaction_index': 2,
    }
    plan = helper_module.build_consolidation(alice_keys, raw, next_nonce=3, solver=solver)
    assert plan["total"] == 250
    assert plan["nonce"] == 3

    egct = EGCT.from_array(plan["egct"])
    assert decrypt_point(alice_keys.private_key, egct.c1, egct.c2) == BASE8 * 250
    assert decrypt_pct(alice_keys.private_key, PCT.from_array(plan["balance_pct"])) == [250]


def test_read_balance_accepts_parsed_record(helper_module, alice_keys):
    record = AccountBalance()
    assert helper_module.read_balance(record, alice_keys.private_key) == 0


def test_public_key_from_contract(helper_module, alice_keys):
    pair = alice_keys.public_key.to_pair()
    assert helper_module.public_key_from_contract(pair) == alice_keys.public_key


@pytest.mark.parametrize("pair", [[1, 2], [0, p - 1], [0, 0]])
def test_public_key_from_contract_rejects_invalid_points(helper_module, pair):
    with pytest.raises(InvalidPoint):
        helper_module.public_key_from_contract(pair)


def test_build_deposit_rejects_off_curve_key(helper_module):
    with pytest.raises(InvalidPoint):
        helper_module.build_deposit(150, Point(1, 2))
