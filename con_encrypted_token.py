"""
ENCRYPTED-BALANCE TOKEN (eERC)

Each registered account holds a balance record:
  - egct: ElGamal ciphertext [[c1.x, c1.y], [c2.x, c2.y]] of the balance on Baby Jubjub
  - amount_pcts: Poseidon ciphertexts of deposits made before the first consolidation
  - balance_pct: Poseidon ciphertext of the balance at the last consolidation
  - nonce / transaction_index: counters bumped on every change

Deposits are public amounts. Once an account has an EGCT the contract adds
BASE8 * amount to c2 itself; before that the owner reads the sum of the
amount PCTs. Owners consolidate by submitting a fresh EGCT + balance PCT.
"""

# -----------------------------------------------------------------------------
# Parameters & Helpers
# -----------------------------------------------------------------------------

p = 21888242871839275222246405745257275088548364400416034343698204186575808495617
A = 168700
D = 168696
BASE8 = [
    5299619240641551281634865583518297030282874472190772894086521144482721001553,
    16950150798460657717958625567821834550301663161624707787222815936182638968203
]
IDENTITY = [0, 1]

# Order of the subgroup generated by BASE8
SUBGROUP_ORDER = 2736030358979909402780800718157159386076813972158567259200215660948447373041

PCT_LENGTH = 7

def mod_exp(base: int, exponent: int, modulus: int):
    if exponent == 0:
        return 1
    result = 1
    base = base % modulus
    while exponent > 0:
        if exponent % 2 == 1:
            result = (result * base) % modulus
        exponent = exponent >> 1
        base = (base * base) % modulus
    return result

def mod_inverse(x: int, modulus: int):
    # Fermat since p is prime
    return mod_exp(x, modulus - 2, modulus)

def point_add(a: list, b: list):
    t = D * a[0] * b[0] * a[1] * b[1] % p
    x = (a[0] * b[1] + a[1] * b[0]) * mod_inverse((1 + t) % p, p) % p
    y = (a[1] * b[1] - A * a[0] * b[0]) * mod_inverse((1 - t) % p, p) % p
    return [x, y]

def scalar_mult(point: list, k: int):
    result = IDENTITY
    addend = point
    while k > 0:
        if k % 2 == 1:
            result = point_add(result, addend)
        addend = point_add(addend, addend)
        k = k >> 1
    return result

def base_mult(k: int):
    return scalar_mult(BASE8, k)

def zero_pct():
    return [0, 0, 0, 0, 0, 0, 0]

def empty_egct():
    return [[0, 0], [0, 0]]

def is_empty_egct(egct: list):
    return egct[0][0] == 0 and egct[0][1] == 0 and egct[1][0] == 0 and egct[1][1] == 0

def check_pct(pct: list):
    assert isinstance(pct, list) and len(pct) == PCT_LENGTH, 'PCT must have 7 elements'
    for v in pct:
        assert isinstance(v, int) and 0 <= v < p, 'PCT element out of field'

def check_egct(egct: list):
    assert isinstance(egct, list) and len(egct) == 2, 'EGCT must be two points'
    for point in egct:
        assert isinstance(point, list) and len(point) == 2, 'EGCT point must be a pair'
        for v in point:
            assert isinstance(v, int) and 0 <= v < p, 'EGCT coordinate out of field'

# -----------------------------------------------------------------------------
# State
# -----------------------------------------------------------------------------

# address -> [x, y]
public_keys = Hash()

# address -> {'egct', 'nonce', 'amount_pcts', 'balance_pct', 'transaction_index', 'last_updated'}
balances = Hash()

# contract metadata / config
metadata = Hash()
# address -> int (monotonic)
nonces = Hash()

# counter for events
next_tx_id = Variable()

# Events
RegisterEvent = LogEvent('Register', {
    'user': {'type': str, 'idx': True},
    'public_key_x': {'type': str},
    'public_key_y': {'type': str}
})

DepositEvent = LogEvent('Deposit', {
    'to': {'type': str, 'idx': True},
    'amount': {'type': int},
    'index': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

BalanceUpdateEvent = LogEvent('BalanceUpdate', {
    'user': {'type': str, 'idx': True},
    'transaction_index': {'type': int},
    'tx_id': {'type': int, 'idx': True}
})

# -----------------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------------

@construct
def seed():
    metadata['name'] = "Encrypted ERC Token"
    metadata['symbol'] = "eERC"
    metadata['decimals'] = 2
    metadata['operator'] = ctx.caller

    # Public: deposits are made in clear
    metadata['total_supply'] = 0

    next_tx_id.set(1)

# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------

@export
def get_metadata():
    return {
        'name': metadata['name'],
        'symbol': metadata['symbol'],
        'decimals': metadata['decimals'],
        'operator': metadata['operator'],
        'total_supply': metadata['total_supply']
    }

@export
def get_public_key(address: str):
    key = public_keys[address]
    if key is None:
        return [0, 0]
    return key

@export
def get_balance(address: str):
    data = balances[address]
    if data is None:
        return {
            'egct': empty_egct(),
            'nonce': 0,
            'amount_pcts': [],
            'balance_pct': zero_pct(),
            'transaction_index': 0
        }
    return {
        'egct': data['egct'],
        'nonce': data['nonce'],
        'amount_pcts': data['amount_pcts'],
        'balance_pct': data['balance_pct'],
        'transaction_index': data['transaction_index']
    }

@export
def get_nonce(address: str):
    n = nonces[address]
    return n if n is not None else 0

# -----------------------------------------------------------------------------
# Core
# -----------------------------------------------------------------------------

def bump_nonce(addr: str, provided: int):
    current = nonces[addr]
    if current is None:
        current = 0
    assert provided == current + 1, 'Bad nonce'
    nonces[addr] = provided

def next_tx():
    tid = next_tx_id.get()
    next_tx_id.set(tid + 1)
    return tid

def load_record(addr: str):
    data = balances[addr]
    if data is None:
        return {
            'egct': empty_egct(),
            'nonce': 0,
            'amount_pcts': [],
            'balance_pct': zero_pct(),
            'transaction_index': 0,
            'last_updated': 0
        }
    return data

@export
def register(public_key: list):
    assert public_keys[ctx.caller] is None, 'Already registered'
    assert isinstance(public_key, list) and len(public_key) == 2, 'Public key must be a pair'
    x = public_key[0]
    y = public_key[1]
    assert isinstance(x, int) and isinstance(y, int), 'Public key must be integers'
    assert 0 <= x < p and 0 <= y < p, 'Public key out of field'
    assert not (x == 0 and y == 0), 'Public key cannot be zero'
    assert (A * x * x + y * y) % p == (1 + D * x * x * y * y) % p, 'Public key not on curve'
    assert scalar_mult([x, y], SUBGROUP_ORDER) == IDENTITY, 'Public key not in subgroup'

    public_keys[ctx.caller] = [x, y]

    RegisterEvent({
        'user': ctx.caller,
        'public_key_x': hex(x),
        'public_key_y': hex(y)
    })

@export
def deposit(amount: int, amount_pct: list, nonce: int):
    assert public_keys[ctx.caller] is not None, 'User not registered'
    assert isinstance(amount, int) and amount > 0, 'Amount must be positive'
    check_pct(amount_pct)

    # replay protection
    bump_nonce(ctx.caller, nonce)

    record = load_record(ctx.caller)

    # Fold the clear amount into an existing EGCT: (c1, c2 + BASE8 * amount).
    # Amount PCTs are only recorded while the account has no EGCT.
    index = record['transaction_index']
    egct = record['egct']
    if is_empty_egct(egct):
        pcts = record['amount_pcts']
        pcts.append({'pct': amount_pct, 'index': index})
        record['amount_pcts'] = pcts
    else:
        record['egct'] = [egct[0], point_add(egct[1], base_mult(amount))]

    record['transaction_index'] = index + 1
    record['nonce'] = record['nonce'] + 1
    record['last_updated'] = block_num
    balances[ctx.caller] = record

    metadata['total_supply'] = (metadata['total_supply'] or 0) + amount

    tx_id = next_tx()
    DepositEvent({
        'to': ctx.caller,
        'amount': amount,
        'index': index,
        'tx_id': tx_id
    })

@export
def update_balance(egct: list, balance_pct: list, nonce: int):
    # Owner-side consolidation: pending amount PCTs are folded into the new EGCT
    assert public_keys[ctx.caller] is not None, 'User not registered'
    check_egct(egct)
    check_pct(balance_pct)
    assert not is_empty_egct(egct), 'EGCT cannot be empty'

    bump_nonce(ctx.caller, nonce)

    record = load_record(ctx.caller)
    record['egct'] = egct
    record['balance_pct'] = balance_pct
    record['amount_pcts'] = []
    record['transaction_index'] = record['transaction_index'] + 1
    record['nonce'] = record['nonce'] + 1
    record['last_updated'] = block_num
    balances[ctx.caller] = record

    tx_id = next_tx()
    BalanceUpdateEvent({
        'user': ctx.caller,
        'transaction_index': record['transaction_index'],
        'tx_id': tx_id
    })
