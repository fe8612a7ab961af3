import time

import pytest
from shared.deadline import run_with_timeout
from shared.errors import OperationTimeout


def test_returns_the_result():
    assert run_with_timeout("add", 1, lambda a, b: a + b, 1, 2) == 3


def test_propagates_errors():
    def fail():
        raise ValueError("bad")

    with pytest.raises(ValueError):
        run_with_timeout("fail", 1, fail)


def test_slow_work_times_out():
    with pytest.raises(OperationTimeout) as exc:
        run_with_timeout("sleep", 0.05, time.sleep, 0.3)

    assert exc.value.operation == "sleep"
    assert exc.value.seconds == 0.05
