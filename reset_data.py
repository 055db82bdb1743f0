"""
reset_data.py
-------------
Clear every table (accounts, vehicles, orders, invoices, payments) from the
data file configured by DATA_PATH (default: data.pkl at the repository root).

Usage:
    $ python reset_data.py

Repopulate demo data afterwards with:
    $ python seeds.py
"""

from drivenow import create_app
from drivenow.utils.context import current_store


def main():
    app = create_app()
    with app.app_context():
        store = current_store()
        store.clear()
        print(f"{store.path or 'in-memory store'} has been cleared.")
        print("Tip: run `python seeds.py` to regenerate demo data.")


if __name__ == "__main__":
    main()
