from typing import List

import pytest
from prometheus_client.metrics import MetricWrapperBase

from nitrolite_libs import metrics


@pytest.fixture
def prometheus_client_collectors() -> List[MetricWrapperBase]:
    return [
        metrics.CONTRACT_ERRORS,
        metrics.TRANSACTIONS_PREPARED,
        metrics.TRANSACTIONS_MINED,
        metrics.OPERATION_EXCEPTIONS_RAISED,
        metrics.OPERATION_PROCESSING_TIME,
    ]


@pytest.fixture
def prometheus_client_teardown(prometheus_client_collectors) -> None:
    for collector in prometheus_client_collectors:
        # HACK access private attr. in order to easily delete the samples
        for vals in list(collector._metrics.keys()):  # pylint: disable=protected-access
            collector.remove(*vals)
