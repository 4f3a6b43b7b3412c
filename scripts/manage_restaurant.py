"""CLI for restaurant bootstrap and administration.

Creating a restaurant over HTTP needs an ``admin`` user, and users are
registered inside a restaurant, so the first restaurant and its admin
are created here.

Usage::

    python -m scripts.manage_restaurant <command> [options]

Commands:
    seed-permissions    Create the default permissions if missing
    create-restaurant   Create a new restaurant
    create-admin        Create a user with the admin permission
    list-restaurants    List restaurants with user and dish counts
"""

from __future__ import annotations

import argparse
import getpass
import sys
import uuid
from collections.abc import Callable

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from dancing_pony.auth.context import Permission as PermissionName
from dancing_pony.auth.passwords import hash_password
from dancing_pony.config import settings
from dancing_pony.storage.orm import Dish, Permission, Restaurant, User


def get_sync_session() -> Session:
    """Create sync session for CLI operations.

    Uses the same database URL as the async app (psycopg v3
    handles both sync and async natively).
    """
    engine = create_engine(settings.database_url)
    return Session(engine)


def _ensure_permissions(session: Session) -> list[str]:
    existing = set(session.execute(select(Permission.name)).scalars().all())
    created = [p.value for p in PermissionName if p.value not in existing]
    for name in created:
        session.add(Permission(name=name))
    session.flush()
    return created


def seed_permissions(_args: argparse.Namespace) -> None:
    """Create any missing default permissions."""
    with get_sync_session() as session:
        created = _ensure_permissions(session)
        session.commit()
    if created:
        print(f"Permissions created: {', '.join(created)}")
    else:
        print("Permissions already present.")


def create_restaurant(args: argparse.Namespace) -> None:
    """Create a new restaurant."""
    with get_sync_session() as session:
        restaurant = Restaurant(
            name=args.name,
            description=args.description,
            location=args.location,
            image_url=args.image_url,
        )
        session.add(restaurant)
        session.commit()
        print(f"Restaurant created: {args.name} (id: {restaurant.id})")


def create_admin(args: argparse.Namespace) -> None:
    """Create an admin user inside an existing restaurant."""
    try:
        restaurant_id = uuid.UUID(args.restaurant_id)
    except ValueError:
        print(f"Invalid restaurant id: {args.restaurant_id}", file=sys.stderr)
        sys.exit(1)

    password = args.password or getpass.getpass("Password: ")
    if not password:
        print("Password must not be empty", file=sys.stderr)
        sys.exit(1)

    with get_sync_session() as session:
        restaurant = session.execute(
            select(Restaurant).where(
                Restaurant.id == restaurant_id,
                Restaurant.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if restaurant is None:
            print(f"Restaurant not found: {restaurant_id}", file=sys.stderr)
            sys.exit(1)

        existing = session.execute(
            select(User).where(
                User.restaurant_id == restaurant_id,
                User.email == args.email.strip().lower(),
            )
        ).scalar_one_or_none()
        if existing is not None:
            print(f"User already exists: {args.email}", file=sys.stderr)
            sys.exit(1)

        _ensure_permissions(session)
        admin = session.execute(
            select(Permission).where(Permission.name == PermissionName.ADMIN.value)
        ).scalar_one()

        user = User(
            restaurant_id=restaurant_id,
            name=args.name,
            email=args.email,
            password_hash=hash_password(password),
            permissions=[admin],
        )
        session.add(user)
        session.commit()
        print(f'Admin created in "{restaurant.name}": {args.email} (id: {user.id})')


def list_restaurants(_args: argparse.Namespace) -> None:
    """List live restaurants with user and dish counts."""
    with get_sync_session() as session:
        users = (
            select(func.count(User.id))
            .where(User.restaurant_id == Restaurant.id)
            .scalar_subquery()
        )
        dishes = (
            select(func.count(Dish.id))
            .where(Dish.restaurant_id == Restaurant.id, Dish.deleted_at.is_(None))
            .scalar_subquery()
        )
        stmt = (
            select(
                Restaurant.id,
                Restaurant.name,
                users.label("user_count"),
                dishes.label("dish_count"),
            )
            .where(Restaurant.deleted_at.is_(None))
            .order_by(Restaurant.name)
        )
        rows = session.execute(stmt).all()

        if not rows:
            print("No restaurants found.")
            return

        print("Restaurants:")
        for i, row in enumerate(rows, 1):
            print(
                f"  {i}. {row.name} (id: {row.id}, "
                f"{row.user_count} users, {row.dish_count} dishes)"
            )


def main() -> None:
    """Parse arguments and dispatch to command handler."""
    parser = argparse.ArgumentParser(description="Restaurant management CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed-permissions", help="Create default permissions")

    p = sub.add_parser("create-restaurant", help="Create a new restaurant")
    p.add_argument("--name", required=True, help="Restaurant name")
    p.add_argument("--description", required=True, help="Short description")
    p.add_argument("--location", required=True, help="Address or city")
    p.add_argument("--image-url", required=True, help="Public image URL")

    p = sub.add_parser("create-admin", help="Create an admin user")
    p.add_argument("--restaurant-id", required=True, help="Restaurant UUID")
    p.add_argument("--name", required=True, help="Display name")
    p.add_argument("--email", required=True, help="Login email")
    p.add_argument("--password", help="Password (prompted if omitted)")

    sub.add_parser("list-restaurants", help="List all restaurants")

    args = parser.parse_args()
    commands: dict[str, Callable[[argparse.Namespace], None]] = {
        "seed-permissions": seed_permissions,
        "create-restaurant": create_restaurant,
        "create-admin": create_admin,
        "list-restaurants": list_restaurants,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
