from datetime import date, timedelta

from rentflow import create_app
from rentflow.models.store import OrderStore
from rentflow.services.order_service import OrderService


def main():
    app = create_app()
    with app.app_context():
        store = OrderStore.instance()

        # ---- Demo orders (create only if none exist) ----
        if not store.orders:
            today = date.today()
            demos = [
                {
                    "client": "Acacia Events",
                    "items": [
                        {"product_id": "tent-10x10", "quantity": 2, "unit_price": 1500},
                        {"product_id": "chair-white", "quantity": 100, "unit_price": 20},
                    ],
                    "start": today + timedelta(days=3),
                    "end": today + timedelta(days=5),
                    "deposit_amount": "suggested",
                },
                {
                    "client": "Baobab Weddings",
                    "items": [{"product_id": "stage-6m", "quantity": 1, "unit_price": 8000}],
                    "start": today - timedelta(days=6),
                    "end": today - timedelta(days=2),
                    "deposit_amount": 5000,
                },
            ]
            for d in demos:
                result = OrderService.create_order(
                    items=d["items"], start=d["start"], end=d["end"],
                    deposit_amount=d["deposit_amount"], client=d["client"], store=store,
                )
                if not result.ok:
                    print(f"Seed failed for {d['client']}: {result.message}")
                    continue
                print(f"Order {result.value.id} for {d['client']}: {result.value.total_amount:.2f}")

        store.save()
        print("Seed complete.")


if __name__ == "__main__":
    main()
