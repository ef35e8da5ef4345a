import atexit
import copy
import logging
import os
import pickle
import threading
import uuid
from typing import Optional

from rentflow.config import current_config
from rentflow.exceptions import ConflictError, OrderNotFoundError
from rentflow.models.order import RentalOrder

logger = logging.getLogger(__name__)


class OrderStore:
    """
    Order-storage collaborator.

    Orders are kept as plain dicts (the pickle format) and handed out as
    RentalOrder snapshots. Writes go through ``commit_order`` which
    compares the caller's version with the stored one before replacing.
    """

    _inst = None
    _inst_lock = threading.Lock()
    _atexit_registered = False

    def __init__(self, path: str | os.PathLike | None = None):
        self.path = str(path or current_config().data_path)
        self.orders: dict[str, dict] = {}
        self._rw = threading.RLock()

        logger.info("Using order file: %s", self.path)
        self._load()

        # Automatically save on exit (skipped in test environments)
        if not OrderStore._atexit_registered and os.getenv("APP_ENV") != "test":
            atexit.register(self.save)
            OrderStore._atexit_registered = True

    # ---------- Singleton ----------
    @classmethod
    def instance(cls, path: str | os.PathLike | None = None):
        """Return the global singleton instance of OrderStore."""
        with cls._inst_lock:
            if cls._inst is None:
                cls._inst = OrderStore(path)
        return cls._inst

    @classmethod
    def reset_instance(cls):
        with cls._inst_lock:
            cls._inst = None

    # ---------- Persistence ----------
    def _load(self):
        """Load orders from the pickle file, or start empty if unavailable or invalid."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "rb") as f:
                data = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as e:
            logger.warning("Load failed (%s); starting empty.", e)
            return

        if isinstance(data, dict) and isinstance(data.get("orders"), dict):
            self.orders = data["orders"]
            logger.info("Loaded: orders=%d", len(self.orders))
        else:
            # Incompatible data format: back up the old file and start empty
            bak = self.path + ".bak"
            os.replace(self.path, bak)
            logger.warning("Incompatible store (%s); backed up to %s. Starting empty.",
                           type(data).__name__, bak)

    def _dump(self):
        """Write the in-memory data to the pickle file safely (atomic replace)."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "wb") as f:
            pickle.dump({"orders": self.orders}, f, protocol=pickle.HIGHEST_PROTOCOL)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

    def save(self):
        """Thread-safe save method."""
        with self._rw:
            logger.debug("Saving to %s ...", self.path)
            self._dump()

    def clear(self):
        with self._rw:
            self.orders.clear()
            self._dump()

    # ---------- Orders ----------
    def create_order(self, order: RentalOrder) -> RentalOrder:
        """Store a new order under a fresh ID at version 1 and return the stored snapshot."""
        with self._rw:
            oid = str(uuid.uuid4())
            stored = copy.deepcopy(order)
            stored.id = oid
            stored.version = 1
            self.orders[oid] = stored.to_dict()
            self._dump()
            return RentalOrder.from_dict(self.orders[oid])

    def get_order(self, order_id: str) -> RentalOrder:
        """Return a detached snapshot of the order; edits to it do not touch the store."""
        with self._rw:
            d = self.orders.get(str(order_id))
            if d is None:
                raise OrderNotFoundError(f"Error: order '{order_id}' not found")
            return RentalOrder.from_dict(d)

    def find_order(self, order_id: str) -> Optional[RentalOrder]:
        try:
            return self.get_order(order_id)
        except OrderNotFoundError:
            return None

    def list_orders(self) -> list[RentalOrder]:
        with self._rw:
            return [RentalOrder.from_dict(d) for d in self.orders.values()]

    def commit_order(self, order: RentalOrder, expected_version: int) -> RentalOrder:
        """
        Compare-and-swap write.

        Replaces the stored order only if its version still equals
        ``expected_version``; otherwise raises ConflictError and leaves the
        stored record untouched.
        """
        with self._rw:
            current = self.orders.get(str(order.id))
            if current is None:
                raise OrderNotFoundError(f"Error: order '{order.id}' not found")
            stored_version = int(current.get("version") or 0)
            if stored_version != expected_version:
                raise ConflictError(
                    f"Error: order '{order.id}' is at version {stored_version}, "
                    f"expected {expected_version}; reload and retry"
                )
            committed = copy.deepcopy(order)
            committed.version = stored_version + 1
            self.orders[str(order.id)] = committed.to_dict()
            self._dump()
            return RentalOrder.from_dict(self.orders[str(order.id)])
