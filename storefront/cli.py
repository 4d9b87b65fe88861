# storefront/cli.py
import click
from flask.cli import with_appcontext

from .extensions import db
from .model import Customer
from .services.export_service import products_frame


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
@with_appcontext
def create_admin(email, password, name):
    email = email.strip().lower()
    if Customer.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = Customer(email=email, name=name, role="admin", status="active", is_verified=True)
    u.set_password(password)
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


@click.command("export-products")
@click.option("--out", "out_path", default="products_export.csv", show_default=True)
@with_appcontext
def export_products(out_path):
    """Write every product to a CSV file."""
    df = products_frame()
    df.to_csv(out_path, index=False)
    click.echo(f"Exported {len(df)} products to {out_path}")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(export_products)
