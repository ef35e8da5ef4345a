"""
reset_data.py
-------------
Utility script to clear all stored orders from the local orders.pkl file.

This script is designed for development and testing purposes.

Usage:
    $ python reset_data.py

After running this script, you can repopulate sample orders by executing:
    $ python seeds.py
"""

from rentflow.config import current_config
from rentflow.models.store import OrderStore


def main():
    """Remove every order from the persistent store and save the empty file."""
    store = OrderStore.instance(current_config().data_path)
    count = len(store.orders)
    store.clear()

    print(f"Removed {count} order(s) from {store.path}.")
    print("Tip: Run `python seeds.py` to regenerate demo orders.")


if __name__ == "__main__":
    main()
