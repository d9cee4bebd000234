# Overview: Flask CLI command groups for bootstrap, users, and reports.

# backend/posboard/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin and cashier users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username kasir2 --email kasir2@injapanpos.local --password "Password123!" --role cashier
#
# Reports:
# - python -m flask reports monthly --month 2026-10
#   Print monthly sales and the financial estimate for a month.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .money import format_yen
from .services.auth_service import create_user, PasswordValidationError
from .services import reporting_service
from .validation import ConflictError


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and default users.

    Users: admin/admin@injapanpos.local, cashier/cashier@injapanpos.local
    Passwords default to "Password123!". Change them in production.
    """
    click.echo("START Initializing posboard...")
    db.create_all()
    click.echo("PASS Tables ready")

    default_users = [
        ("admin", "admin@injapanpos.local", "admin", "Admin"),
        ("cashier", "cashier@injapanpos.local", "cashier", None),
    ]

    for username, email, role, display_name in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(
                username=username,
                email=email,
                password=DEFAULT_PASSWORD,
                role=role,
                display_name=display_name,
            )
        except (PasswordValidationError, ConflictError, ValueError) as e:
            click.echo(f"FAIL Failed to create user '{username}': {e}")
            continue
        click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")

    click.echo("DONE posboard initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping all data')
@with_appcontext
def reset_db(yes):
    """Drop and recreate all tables."""
    if not yes:
        click.echo("Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection/bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<16} {user.email:<32} {user.role:<8} {status}")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(['admin', 'cashier']), default='cashier', show_default=True)
@click.option('--display-name', default=None)
@with_appcontext
def create_user_cli(username, email, password, role, display_name):
    try:
        user = create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            display_name=display_name,
        )
    except (PasswordValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@click.group('reports')
def reports_group():
    """Back-office report printouts."""


@reports_group.command('monthly')
@click.option('--month', default=None, help='YYYY-MM (defaults to the current month)')
@with_appcontext
def monthly_report(month):
    try:
        sales = reporting_service.sales_report(month=month)
        financial = reporting_service.financial_report(month=month)
    except reporting_service.ReportError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    summary = financial["summary"]
    click.echo(f"Report for {sales['label']}")
    click.echo(f"  Orders:          {sales['summary']['order_count']}")
    click.echo(f"  Revenue:         {format_yen(summary['revenue'])}")
    click.echo(f"  Avg order value: {format_yen(sales['summary']['average_order_value'])}")
    click.echo(f"  Shipping fees:   {format_yen(summary['shipping_fees'])}")
    click.echo(f"  Product cost*:   {format_yen(summary['product_cost'])}")
    click.echo(f"  Gross profit*:   {format_yen(summary['gross_profit'])}")
    click.echo(f"  Expenses*:       {format_yen(summary['expenses'])}")
    click.echo(f"  Net profit*:     {format_yen(summary['net_profit'])}")
    click.echo("  * estimate")
    click.echo("")
    click.echo("Last 6 months:")
    for bucket in sales["series"]:
        click.echo(f"  {bucket['month']} {bucket['name']:<4} {bucket['order_count']:>5} orders  {format_yen(bucket['revenue_sum'])}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(reports_group)
