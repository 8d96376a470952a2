#!/usr/bin/env python3
"""Sample job harness for end-to-end validation.

Seeds a throwaway SQLite database with one customer, a pet overdue for
grooming, an appointment tomorrow and a waitlist entry, then runs the
reminder, retention, waitlist and retry jobs against mock transports and
prints a summary. No email or SMS leaves the machine.

Usage:
    python scripts/run_sample_jobs.py

    # Simulate a flaky provider so the retry job has work to do
    python scripts/run_sample_jobs.py --failure-rate 0.5

    # Custom database path
    python scripts/run_sample_jobs.py --database /tmp/sample.db
"""

import argparse
import random
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from app.config.environment import EnvironmentConfig
from app.config.loader import load_app_config
from app.domain.models import AppointmentStatus
from app.logging.config import configure_logging
from app.notifications import MockEmailTransport, MockSMSTransport
from app.persistence.database import close_database, get_session, init_database
from app.runtime import build_services
from app.utils.timestamps import utc_now
from tests.helpers import (
    add_appointment,
    add_breed,
    add_customer,
    add_pet,
    add_service,
    add_waitlist_entry,
)


def print_header(title: str):
    """Print a formatted section header."""
    width = 80
    print("\n" + "=" * width)
    print(f" {title}")
    print("=" * width + "\n")


def print_summary_table(rows):
    """Print job results as a two-column table."""
    max_label_width = max(len(label) for label, _ in rows)

    print("┌" + "─" * (max_label_width + 2) + "┬" + "─" * 52 + "┐")
    print(f"│ {'Job':<{max_label_width}} │ {'Result':<50} │")
    print("├" + "─" * (max_label_width + 2) + "┼" + "─" * 52 + "┤")

    for label, value in rows:
        print(f"│ {label:<{max_label_width}} │ {str(value)[:50]:<50} │")

    print("└" + "─" * (max_label_width + 2) + "┴" + "─" * 52 + "┘")


def seed(now):
    """Insert the sample entities and return the waitlist service id."""
    with get_session() as session:
        customer_id = add_customer(session, first_name="Sample", last_name="Owner", email="owner@example.com")
        breed_id = add_breed(session, name="Goldendoodle", grooming_frequency_weeks=6)
        pet_id = add_pet(session, customer_id, name="Biscuit", breed_id=breed_id)
        service_id = add_service(session, name="Bath & Brush")

        add_appointment(
            session,
            customer_id,
            now - timedelta(weeks=8),
            pet_id=pet_id,
            service_id=service_id,
            status=AppointmentStatus.COMPLETED,
        )
        add_appointment(session, customer_id, now + timedelta(hours=24), pet_id=pet_id, service_id=service_id)
        add_waitlist_entry(session, customer_id, service_id, now - timedelta(days=3), pet_id=pet_id)
        return service_id


def main():
    """Main entry point for the sample job harness."""
    parser = argparse.ArgumentParser(
        description="Run the notification jobs against sample data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "--database",
        type=Path,
        default=Path("data/sample_jobs.db"),
        help="Path to SQLite database (default: data/sample_jobs.db)",
    )
    parser.add_argument(
        "--failure-rate",
        type=float,
        default=0.0,
        help="Simulated provider failure rate between 0 and 1 (default: 0)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: INFO)",
    )

    args = parser.parse_args()
    load_dotenv()

    print_header("Puppy Day Notifications - Sample Job Harness")
    print(f"Database: {args.database}")
    print(f"Simulated failure rate: {args.failure_rate}")

    if args.database.exists():
        print(f"\n❌ Error: {args.database} already exists; remove it or pick another --database")
        return 1

    try:
        app_config = load_app_config(args.config)
        database_url = f"sqlite:///{args.database.absolute()}"
        env_config = EnvironmentConfig(database_url=database_url, use_mocks=True, environment="validation")

        configure_logging(level=args.log_level, format_type=app_config.logging.format, environment="validation")
        init_database(database_url)

        rng = random.Random(42)
        services = build_services(
            app_config,
            env_config,
            email_transport=MockEmailTransport(args.failure_rate, 0, 0, rng=rng),
            sms_transport=MockSMSTransport(args.failure_rate, 0, 0, rng=rng),
        )

        now = utc_now()
        service_id = seed(now)
        print("✓ Sample data seeded")

        reminders = services.runner.run_reminders(now)
        retention = services.runner.run_retention(now)
        waitlist = services.runner.notify_waitlist(service_id, (now + timedelta(days=2)).date(), "10:00 AM")
        retry = services.retry_processor.run(now + timedelta(hours=1))

        print_header("Job Summary")
        print_summary_table(
            [
                ("reminders", f"processed={reminders.processed} sent={reminders.sent} failed={reminders.failed}"),
                ("retention", f"processed={retention.processed} sent={retention.sent} failed={retention.failed}"),
                ("waitlist", f"processed={waitlist.processed} sent={waitlist.sent} failed={waitlist.failed}"),
                ("retry", f"processed={retry.processed} succeeded={retry.succeeded} failed={retry.failed}"),
            ]
        )

        print_header("Messages Delivered")
        for label, transport in (("email", services.email_transport), ("sms", services.sms_transport)):
            for message in transport.sent_messages:
                status = "ok" if message.success else f"failed: {message.error}"
                print(f"[{label}] {message.params.to} ({status})")

        print("\n" + "-" * 80)
        print(f"To inspect: sqlite3 {args.database.absolute()} 'SELECT type, channel, status FROM notification_logs;'")
        print(f"To clean up: rm {args.database.absolute()}")
        print("-" * 80 + "\n")

        close_database()
        return 0

    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
