import importlib.util
from pathlib import Path

import pytest

from discrete_log import DiscreteLogSolver, SearchConfig
from keys import derive_key_pair

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONTRACT_PATH = PROJECT_ROOT / "con_encrypted_token.py"
HELPER_PATH = PROJECT_ROOT / "client_helper.py"


def _submission_path():
    import contracting

    return (
        Path(contracting.__file__).resolve().parent / "contracts" / "submission.s.py"
    )

# 65-byte signature placeholders, as a wallet would return them
ALICE_SIGNATURE = "0x" + "aa" * 65
BOB_SIGNATURE = "0x" + "bb" * 65


@pytest.fixture(scope="session")
def helper_module():
    spec = importlib.util.spec_from_file_location("client_helper_tests", HELPER_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="session")
def alice_keys():
    return derive_key_pair(ALICE_SIGNATURE)


@pytest.fixture(scope="session")
def bob_keys():
    return derive_key_pair(BOB_SIGNATURE)


@pytest.fixture
def small_config():
    return SearchConfig(max_value=3000, deadline_seconds=None)


@pytest.fixture
def solver(small_config):
    with DiscreteLogSolver(config=small_config) as s:
        yield s


@pytest.fixture
def client():
    from contracting.client import ContractingClient

    client = ContractingClient(signer="operator", metering=False)
    client.flush()
    client.set_submission_contract(str(_submission_path()))
    return client


@pytest.fixture
def contract(client):
    code = CONTRACT_PATH.read_text()
    client.submit(code, name="con_encrypted_token", owner=None)
    return client.get_contract("con_encrypted_token")
