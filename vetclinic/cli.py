from __future__ import annotations

import argparse
import logging
from datetime import datetime

from sqlalchemy import select

from . import config
from .auth_models import User, UserRole
from .db import configure_engine, db_session, init_db
from .errors import ValidationError, VetClinicError
from .seed import seed_base
from .services import appointments, billing, clients, employees, notifications, pets
from .services.access import Actor

logger = logging.getLogger(__name__)


def operator() -> Actor:
    """CLI commands act as the oldest active admin account."""
    with db_session() as s:
        uid = s.scalar(
            select(User.id)
            .where(User.role == UserRole.ADMIN, User.deleted_at.is_(None))
            .order_by(User.created_at)
        )
    if uid is None:
        raise ValidationError("No admin account found; run `vetclinic init` first.")
    return Actor(user_id=uid, role=UserRole.ADMIN)


def cmd_init(args: argparse.Namespace) -> None:
    seed_base()
    print("Database initialised and seed loaded.")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "vets":
        for v in appointments.list_veterinarians():
            print(f"{v['id']} | Dr. {v['last_name']}, {v['first_name']} | {', '.join(v['specializations']) or '-'}")
    elif args.entity == "clients":
        for c in clients.list_clients():
            print(f"{c['id']} | {c['last_name']}, {c['first_name']} | {c['email']} | pets: {c['pet_count']}")
    elif args.entity == "pets":
        for p in pets.list_pets(operator(), limit=100)["data"]:
            owner = p.get("owner") or {}
            print(f"{p['id']} | {p['name']} ({p['species']}) | owner: {owner.get('last_name', '-')}")
    elif args.entity == "services":
        for sv in appointments.list_services():
            print(f"{sv['code']} | {sv['name']} ({sv['duration_minutes']} min) | {sv['price']}")
    elif args.entity == "products":
        for pr in billing.list_products():
            print(f"{pr['sku']} | {pr['product_name']} | stock {pr['stock_quantity']} | {pr['price']}")


def cmd_create_admin(args: argparse.Namespace) -> None:
    e = employees.create_employee(
        role="admin",
        email=args.email,
        password=args.password,
        first_name=args.first_name,
        last_name=args.last_name,
        phone=args.phone,
        employee_id=args.employee_id,
    )
    print(f"Admin created: {e['user_id']} ({e['email']})")


def cmd_book(args: argparse.Namespace) -> None:
    start = datetime.fromisoformat(args.start)  # e.g. 2026-01-14T10:30
    a = appointments.book_appointment(
        operator(),
        pet_id=args.pet_id,
        service_code=args.service,
        scheduled_start=start,
        veterinarian_id=args.vet_id,
        reason_for_visit=args.reason,
    )
    print(f"Booked {a['appointment_number']} ({a['scheduled_start']} - {a['scheduled_end']})")
    print(f"Appointment ID: {a['id']}")


def cmd_cancel(args: argparse.Namespace) -> None:
    a = appointments.change_status(operator(), args.appointment_id, "cancelled", cancellation_reason=args.reason)
    print(f"Cancelled {a['appointment_number']}.")


def cmd_mark_no_shows(args: argparse.Namespace) -> None:
    res = appointments.mark_no_shows(grace_minutes=args.grace)
    print(res.message)
    for row in res.appointments:
        print(f"  {row['appointment_number']} | {row['scheduled_start']}")


def cmd_send_reminders(args: argparse.Namespace) -> None:
    n = appointments.send_reminders()
    print(f"Queued {n} reminder(s).")


def cmd_notifications(args: argparse.Namespace) -> None:
    """
    Stand-in for the outbound mail/SMS gateway:
    - read pending notifications
    - print them
    - optionally mark them as sent
    """
    pending = notifications.pending_notifications(limit=args.limit)
    if not pending:
        print("No pending notifications.")
        return

    for n in pending:
        print(f"[{n['id']}] {n['notification_type']} | {n['sent_at']} | {n['content']}")
        if args.mark_sent:
            notifications.mark_sent(n["id"])

    if args.mark_sent:
        print("Notifications marked as sent.")


def cmd_low_stock(args: argparse.Namespace) -> None:
    items = billing.low_stock()
    if not items:
        print("All products above threshold.")
    for p in items:
        print(f"{p['sku']} | {p['product_name']} | {p['stock_quantity']} left (threshold {p['low_stock_threshold']})")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vetclinic", description="Veterinary clinic operator commands")
    p.add_argument("--db", default=None, help="Database URL (defaults to DATABASE_URL)")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Create tables and load seed data")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="List entities")
    p_list.add_argument("entity", choices=["vets", "clients", "pets", "services", "products"])
    p_list.set_defaults(func=cmd_list)

    p_admin = sub.add_parser("create-admin", help="Create an admin account")
    p_admin.add_argument("--email", required=True)
    p_admin.add_argument("--password", required=True)
    p_admin.add_argument("--first-name", required=True)
    p_admin.add_argument("--last-name", required=True)
    p_admin.add_argument("--phone", required=True)
    p_admin.add_argument("--employee-id", required=True)
    p_admin.set_defaults(func=cmd_create_admin)

    p_book = sub.add_parser("book", help="Book an appointment")
    p_book.add_argument("--pet-id", required=True)
    p_book.add_argument("--service", required=True, help="Service code, e.g. consultation")
    p_book.add_argument("--start", required=True, help="ISO datetime, e.g. 2026-01-14T10:30")
    p_book.add_argument("--vet-id", default=None)
    p_book.add_argument("--reason", default=None)
    p_book.set_defaults(func=cmd_book)

    p_cancel = sub.add_parser("cancel", help="Cancel an appointment")
    p_cancel.add_argument("--appointment-id", required=True)
    p_cancel.add_argument("--reason", required=True)
    p_cancel.set_defaults(func=cmd_cancel)

    p_ns = sub.add_parser("mark-no-shows", help="Flag missed appointments as no-show")
    p_ns.add_argument("--grace", type=int, default=None, help="Minutes after start (default from config)")
    p_ns.set_defaults(func=cmd_mark_no_shows)

    p_rem = sub.add_parser("send-reminders", help="Queue reminders for the next 24 hours")
    p_rem.set_defaults(func=cmd_send_reminders)

    p_not = sub.add_parser("notifications", help="Print pending notifications")
    p_not.add_argument("--limit", type=int, default=50)
    p_not.add_argument("--mark-sent", action="store_true", help="Mark them as sent after printing")
    p_not.set_defaults(func=cmd_notifications)

    p_low = sub.add_parser("low-stock", help="Products at or below their threshold")
    p_low.set_defaults(func=cmd_low_stock)

    return p


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.db:
        configure_engine(args.db)
    init_db()  # tables always exist
    try:
        args.func(args)
    except VetClinicError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
