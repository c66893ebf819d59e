from contextlib import contextmanager
from enum import Enum, unique
from typing import Dict, Generator, Tuple

from prometheus_client import CollectorRegistry, Counter, Histogram, Metric
from prometheus_client.context_managers import ExceptionCounter, Timer

from nitrolite_libs.utils import camel_to_snake

REGISTRY = CollectorRegistry(auto_describe=True)


MetricsGenerator = Generator[Tuple[Timer, ExceptionCounter], None, None]


@unique
class MetricsEnum(Enum):
    def __str__(self) -> str:
        return str(self.value)

    @classmethod
    def label_name(cls) -> str:
        return camel_to_snake(cls.__name__)

    def to_label_dict(self) -> Dict[str, str]:
        return {self.label_name(): str(self)}


class ErrorCategory(MetricsEnum):
    CONTRACT_CALL = "contract_call"
    CONTRACT_READ = "contract_read"
    TRANSACTION = "transaction"


class TransactionStatus(MetricsEnum):
    SUCCESSFUL = "successful"
    FAILED = "failed"


CONTRACT_ERRORS = Counter(
    "contract_errors_total",
    "The number of failed contract interactions.",
    labelnames=[ErrorCategory.label_name()],
    registry=REGISTRY,
)


TRANSACTIONS_PREPARED = Counter(
    "transactions_prepared_total",
    "The number of simulated and prepared transactions",
    labelnames=["operation"],
    registry=REGISTRY,
)


TRANSACTIONS_MINED = Counter(
    "transactions_mined_total",
    "The number of sent transactions which were mined, by receipt status",
    labelnames=[TransactionStatus.label_name()],
    registry=REGISTRY,
)


OPERATION_EXCEPTIONS_RAISED = Counter(
    "operations_exceptions_total",
    "The number of exceptions that were raised while talking to contracts",
    labelnames=["operation"],
    registry=REGISTRY,
)


OPERATION_PROCESSING_TIME = Histogram(
    "operations_processing_duration_seconds",
    "The time it takes for a contract interaction to finish",
    labelnames=["operation"],
    registry=REGISTRY,
)


@contextmanager
def collect_operation_metrics(operation: str) -> MetricsGenerator:
    with OPERATION_PROCESSING_TIME.labels(
        operation=operation
    ).time() as timer, OPERATION_EXCEPTIONS_RAISED.labels(
        operation=operation
    ).count_exceptions() as exception_counter:
        yield (timer, exception_counter)


def get_metrics_for_label(metric: Metric, enum: MetricsEnum) -> Metric:
    return metric.labels(**enum.to_label_dict())


def report_error(error_category: ErrorCategory) -> None:
    """Convenience method to increase the error counter for a certain error category"""
    get_metrics_for_label(CONTRACT_ERRORS, error_category).inc()
