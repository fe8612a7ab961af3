"""Schema and data management for the two domains' providers.

Only RDBMS providers have a schema. Event-sourced aggregates (and entities
inside them) live in the event store and get no table.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

RDBMS_PROVIDERS = ("sqlite", "postgresql")


def _rdbms_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in RDBMS_PROVIDERS:
            yield provider


def _event_sourced(cls) -> bool:
    owner = getattr(cls.meta_, "part_of", None) or cls
    return bool(getattr(owner.meta_, "is_event_sourced", False))


def _register_tables(domain: Domain, provider) -> None:
    """Touch each repository's ``_dao`` so its model is registered with SQLAlchemy."""
    registry = domain.registry
    records = [
        *registry.aggregates.values(),
        *registry.entities.values(),
        *registry.projections.values(),
    ]
    for record in records:
        cls = record.cls
        if cls.meta_.provider == provider.name and not _event_sourced(cls):
            domain.repository_for(cls)._dao  # noqa: B018


def setup_db(domain: Domain):
    """Create tables for every RDBMS provider of ``domain``."""
    with domain.domain_context():
        for provider in _rdbms_providers(domain):
            _register_tables(domain, provider)
            provider._metadata.create_all(create_engine(provider.conn_info["database_uri"]))


def drop_db(domain: Domain):
    with domain.domain_context():
        for provider in _rdbms_providers(domain):
            provider._metadata.drop_all(create_engine(provider.conn_info["database_uri"]))


def reset_data(domain: Domain):
    """Empty every provider, broker and the event store of ``domain``."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            provider._data_reset()

        for _, broker in domain.brokers.items():
            broker._data_reset()

        domain.event_store.store._data_reset()
