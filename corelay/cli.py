"""
Flask CLI commands: schema creation, demo data, guest code housekeeping.

    flask --app corelay.app init-db
    flask --app corelay.app seed-demo
    flask --app corelay.app cleanup-guest-codes
"""

from datetime import timedelta

import click
from flask import current_app

from corelay.extensions import db
from corelay.services.errors import OrderExistsError
from corelay.services.lifecycle import PICKED_UP, READY_FOR_PICKUP
from corelay.services.store import OrderRecord

DEMO_USER = "demo@corelay.pl"


def demo_orders(now, return_window_days=14):
    """Three orders of one customer: two awaiting pickup, one inside its return window."""
    return [
        OrderRecord(
            order_id="ORD-1001",
            user_id=DEMO_USER,
            store_id="MODIVO",
            status=READY_FOR_PICKUP,
            products=[{"name": "Blue Sweater M", "price": 199}],
            pickup_deadline=(now + timedelta(hours=48)).date(),
            created_at=now,
        ),
        OrderRecord(
            order_id="ORD-1002",
            user_id=DEMO_USER,
            store_id="LPP",
            status=PICKED_UP,
            products=[{"name": "Denim Jacket L", "price": 299}],
            created_at=now - timedelta(days=2),
            pickup_time=now - timedelta(days=1),
            max_time=now - timedelta(days=1) + timedelta(days=return_window_days),
        ),
        OrderRecord(
            order_id="ORD-1003",
            user_id=DEMO_USER,
            store_id="INPOST",
            status=READY_FOR_PICKUP,
            products=[{"name": "Summer Dress", "price": 149}],
            pickup_deadline=(now + timedelta(days=7)).date(),
            created_at=now,
        ),
    ]


def register_commands(app):

    @app.cli.command("init-db")
    def init_db():
        """Create the orders and guest_codes tables."""
        db.create_all()
        click.echo("Tables created.")

    @app.cli.command("seed-demo")
    def seed_demo():
        """Load the demo customer's orders, skipping ones already present."""
        store = current_app.extensions["corelay_store"]
        now = current_app.config["CLOCK"]()
        created = 0
        for record in demo_orders(now, current_app.config["RETURN_WINDOW_DAYS"]):
            try:
                store.create_order(record)
                created += 1
            except OrderExistsError:
                click.echo(f"{record.order_id} already exists, skipped.")
        click.echo(f"Seeded {created} orders for {DEMO_USER}.")

    @app.cli.command("cleanup-guest-codes")
    def cleanup_guest_codes():
        """Delete guest codes past their expiry."""
        store = current_app.extensions["corelay_store"]
        removed = store.cleanup_expired_credentials(current_app.config["CLOCK"]())
        click.echo(f"Removed {removed} expired guest codes.")
