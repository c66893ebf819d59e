import os
from typing import Any, Dict, List, Optional
from unittest.mock import Mock

from eth_utils import to_checksum_address

from nitrolite_libs.types import Address


def make_address() -> Address:
    return to_checksum_address(os.urandom(20))


class ContractFunctionMock(Mock):
    """A bound contract function

    `call` is the simulation, `build_transaction` returns a dict naming the
    function and its arguments so tests can inspect what was prepared.
    """

    def __init__(self, function_name: str, args: tuple, call_result: Any = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.function_name = function_name
        self.args = args
        self.call.return_value = call_result
        self.build_transaction.side_effect = lambda tx_params: {
            "function": function_name,
            "args": args,
            **tx_params,
        }

    def _get_child_mock(self, **kwargs: Any) -> Mock:
        return Mock(**kwargs)


class FunctionsMock:
    def __init__(self, contract: "ContractMock"):
        self._contract = contract
        self.calls: Dict[str, List[ContractFunctionMock]] = {}

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        def bind(*args: Any) -> ContractFunctionMock:
            function = ContractFunctionMock(
                function_name=name, args=args, call_result=self._contract.results.get(name)
            )
            error = self._contract.errors.get(name)
            if error is not None:
                function.call.side_effect = error
            self.calls.setdefault(name, []).append(function)
            return function

        return bind


class ContractMock(Mock):
    """Records bound functions in `functions.calls`

    `results` maps function names to the value `.call()` returns, `errors`
    maps function names to an exception raised by `.call()`.
    """

    def __init__(
        self,
        results: Optional[Dict[str, Any]] = None,
        errors: Optional[Dict[str, Exception]] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        if "address" not in kwargs:
            self.address = make_address()
        self.results = results or {}
        self.errors = errors or {}
        self.functions = FunctionsMock(self)

    def _get_child_mock(self, **kwargs: Any) -> Mock:
        return Mock(**kwargs)


class Web3Mock(Mock):
    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        self.eth.chain_id = 61
        self.eth.block_number = 100

    def _get_child_mock(self, **kwargs: Any) -> Mock:
        return Mock(**kwargs)
