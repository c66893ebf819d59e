import pytest

from nitrolite_client.services import CustodyService, Erc20Service
from nitrolite_libs.types import Address
from tests.mocks.web3 import ContractMock, Web3Mock, make_address


@pytest.fixture
def custody_address() -> Address:
    return make_address()


@pytest.fixture
def web3_mock() -> Web3Mock:
    return Web3Mock()


@pytest.fixture
def custody_service(web3_mock, custody_address, user_signer) -> CustodyService:
    custody = CustodyService(web3_mock, custody_address, user_signer.address)
    custody.contract = ContractMock(address=custody_address)
    custody.legacy_contract = ContractMock(address=custody_address)
    return custody


@pytest.fixture
def erc20_service(web3_mock, user_signer) -> Erc20Service:
    return Erc20Service(web3_mock, user_signer.address)
