"""`flask` sub-commands for back-office batch work."""
import click
from flask import Flask

from .services.invoice_service import InvoiceService
from .utils.context import business_today, current_store
from .utils.filters import fmt_local_date
from .utils.money import ZERO


def register_cli(app: Flask):
    @app.cli.command("overdue-invoices")
    @click.option("--as-of", "as_of", type=click.DateTime(formats=["%Y-%m-%d"]),
                  help="Evaluate as of this date instead of today (YYYY-MM-DD).")
    def overdue_invoices(as_of):
        """List open invoices that are past their due date."""
        today = as_of.date() if as_of else business_today()
        with current_store().reading() as uow:
            rows = InvoiceService.overdue(uow, today)

        if not rows:
            click.echo(f"No overdue invoices as of {fmt_local_date(today)}.")
            return
        outstanding = sum((inv.remaining_amount for inv in rows), ZERO)
        for inv in rows:
            days = (today - inv.due_date).days
            click.echo(f"{inv.invoice_number}  due {fmt_local_date(inv.due_date)}  "
                       f"{days:>3} day(s) late  remaining {inv.remaining_amount:,.2f}")
        click.echo(f"{len(rows)} overdue invoice(s), {outstanding:,.2f} outstanding.")
