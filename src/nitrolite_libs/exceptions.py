from typing import Any, Dict, Optional


class NitroliteError(Exception):
    """Base class for all errors raised by the channel client"""

    msg: str = "Unknown Error"
    error_details: Optional[Dict[str, Any]] = None

    def __init__(self, msg: Optional[str] = None, **details: Any):
        super().__init__(msg)
        if msg:
            self.msg = msg
        self.error_details = details

    def __str__(self) -> str:
        if self.error_details:
            return f"{self.__class__.__name__}({self.msg}, {self.error_details})"
        return f"{self.__class__.__name__}({self.msg})"


class MissingParameterError(NitroliteError):
    """A required dependency or field is absent at call time"""

    msg = "Required parameter is missing."


class InvalidParameterError(NitroliteError):
    """A value is present but violates a structural invariant"""

    msg = "Parameter failed validation."


class SignatureError(NitroliteError):
    """The signing backend failed to produce a signature"""

    msg = "Could not sign the message."


class InvalidSignatureError(NitroliteError):
    msg = "The signature did not match the signed content."


class ContractOperationError(NitroliteError):
    """An error which occurred while talking to a contract

    Keeps the name of the failing operation, the original exception and the
    inputs of the call, so the caller can decide how to retry.
    """

    def __init__(self, operation: str, cause: Optional[BaseException] = None, **details: Any):
        reason = f": {cause}" if cause is not None else ""
        super().__init__(f"{self.msg} Operation `{operation}` failed{reason}", **details)
        self.operation = operation
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class ContractCallError(ContractOperationError):
    """Simulating or preparing a contract call failed"""

    msg = "Contract call could not be prepared."


class TransactionError(ContractOperationError):
    """Sending a transaction failed after a successful simulation"""

    msg = "Transaction failed."


class ContractReadError(ContractOperationError):
    """A view call failed"""

    msg = "Contract read failed."
