"""Order subsystem management CLI.

Usage:
    python src/manage.py setup-db                      # Create all tables
    python src/manage.py drop-db --domain order_views  # Drop read-side tables
    python src/manage.py dispatch                      # Publish pending outbox records now
    python src/manage.py replay ORDER_ID --from-sequence 3
"""

import argparse
import sys

DOMAIN_NAMES = ["ordering", "order_views"]


def _domains(names=None):
    from bootstrap import init_domains
    from order_views.domain import order_views
    from ordering.domain import ordering

    init_domains()
    all_domains = {"ordering": ordering, "order_views": order_views}
    return {name: all_domains[name] for name in names} if names else all_domains


def setup_databases(domains=None):
    """Create database schemas for the specified (or all) domains."""
    from shared.db import setup_db

    for name, domain in _domains(domains).items():
        print(f"Creating {name} database schema...")
        setup_db(domain)
        print(f"  {name} schema ready.")

    print("Done.")


def drop_databases(domains=None):
    """Drop database schemas for the specified (or all) domains."""
    from shared.db import drop_db

    for name, domain in _domains(domains).items():
        print(f"Dropping {name} database schema...")
        drop_db(domain)
        print(f"  {name} schema dropped.")

    print("Done.")


def dispatch_outbox():
    from bootstrap import get_container

    report = get_container().dispatcher.dispatch_pending()
    print(f"Published {report.published}, replayed {report.replayed}, failed orders: {report.failed_orders or 'none'}")
    return 1 if report.failed_orders else 0


def replay_order(order_id, from_sequence):
    from bootstrap import get_container

    report = get_container().dispatcher.replay(order_id, from_sequence)
    print(f"Replayed {report.replayed} event(s) of order {order_id}")
    return 1 if report.failed_orders else 0


def main():
    parser = argparse.ArgumentParser(description="Order subsystem management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    setup_parser = subparsers.add_parser("setup-db", help="Create all database tables")
    setup_parser.add_argument(
        "--domain",
        choices=DOMAIN_NAMES,
        nargs="*",
        help="Specific domain(s) to set up (default: all)",
    )

    drop_parser = subparsers.add_parser("drop-db", help="Drop all database tables")
    drop_parser.add_argument(
        "--domain",
        choices=DOMAIN_NAMES,
        nargs="*",
        help="Specific domain(s) to drop (default: all)",
    )

    subparsers.add_parser("dispatch", help="Publish pending outbox records")

    replay_parser = subparsers.add_parser("replay", help="Re-publish an order's events")
    replay_parser.add_argument("order_id")
    replay_parser.add_argument("--from-sequence", type=int, default=1)

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases(args.domain)
    elif args.command == "drop-db":
        drop_databases(args.domain)
    elif args.command == "dispatch":
        sys.exit(dispatch_outbox())
    elif args.command == "replay":
        sys.exit(replay_order(args.order_id, args.from_sequence))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
