#!/usr/bin/env python3

import click
import sys
import os


sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@click.command()
@click.argument('username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True,
              help='Password for the admin account (at least 8 characters)')
@click.option('--reset', is_flag=True, default=False,
              help='Reset the password and promote the user if the username already exists')
def create_admin(username, password, reset):
    """Create an admin account, or with --reset promote and re-key an existing one."""
    from settings.database import get_db
    from models.auth import UserRole
    from services.auth import create_user, hash_password
    from api.s3.infra.db.uow import unit_of_work

    if len(username) < 3 or len(username) > 50:
        raise click.BadParameter('Username must be 3-50 characters', param_hint='USERNAME')
    if len(password) < 8:
        raise click.BadParameter('Password must be at least 8 characters', param_hint='--password')

    db = next(get_db())

    try:
        with unit_of_work(db) as uow:
            existing_user = uow.users.get_by_username(username)

            if existing_user and not reset:
                click.echo(f"❌ User {username} already exists (use --reset to update it)")
                sys.exit(1)

            if existing_user:
                existing_user.role = UserRole.ADMIN
                uow.users.update_password(existing_user, hash_password(password))
                click.echo(f"🔄 Updated {username}: role=admin, password reset")
            else:
                user = create_user(uow, username, password, UserRole.ADMIN)
                click.echo(f"✅ Created admin {user.username} (ID: {user.id})")
    finally:
        db.close()


if __name__ == '__main__':
    create_admin()
