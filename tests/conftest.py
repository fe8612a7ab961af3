import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Initialize both domains and push the ordering domain_context. The activated domain can then be referred to elsewhere as `current_domain`
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from bootstrap import init_domains
    from ordering.domain import ordering

    init_domains()
    ordering.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session", autouse=True)
def setup_db():
    from order_views.domain import order_views
    from ordering.domain import ordering
    from shared.db import drop_db, setup_db

    setup_db(ordering)
    setup_db(order_views)

    yield

    drop_db(order_views)
    drop_db(ordering)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from order_views.domain import order_views
    from ordering.domain import ordering
    from shared.db import reset_data

    reset_data(ordering)
    reset_data(order_views)


@pytest.fixture()
def no_sleep():
    """Records backoff delays instead of sleeping."""
    delays = []
    return delays.append, delays


@pytest.fixture()
def container(no_sleep):
    from bootstrap import build_container
    from shared.settings import Settings

    sleep, _ = no_sleep
    return build_container(settings=Settings(), sleep=sleep)


@pytest.fixture()
def commands(container):
    return container.command_service


@pytest.fixture()
def queries(container):
    return container.query_handler


@pytest.fixture()
def sample_items():
    return [
        {"product_id": "p1", "quantity": 2, "unit_price": "10.00"},
        {"product_id": "p2", "quantity": 1, "unit_price": "5.00"},
    ]


@pytest.fixture()
def place_order(commands, sample_items):
    """Create an order through the command service and return its CommandResult."""

    def _place(user_id="u1", items=None, **overrides):
        kwargs = {
            "user_id": user_id,
            "items": items if items is not None else sample_items,
            "shipping_address": "1 Main St, Springfield",
            "billing_address": "1 Main St, Springfield",
        }
        kwargs.update(overrides)
        return commands.create_order(**kwargs)

    return _place
