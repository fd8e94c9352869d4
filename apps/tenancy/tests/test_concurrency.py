"""
Concurrent placement on one vacant unit.

PostgreSQL serialises the writers with row locks, SQLite with IMMEDIATE
transactions on a file database (see config/database.py). Either way the
losers must see the unit occupied and fail with ConflictError.
"""
import threading
from datetime import date

from django.db import connection
from django.test import TransactionTestCase

from apps.identity.context import Actor
from apps.registry.models import HousingUnit
from apps.tenancy import ledger
from apps.tenancy.models import Occupier
from .test_ledger import make_unit


class ConcurrentPlacementTest(TransactionTestCase):
    WORKERS = 5

    def setUp(self):
        if connection.vendor == 'sqlite' and connection.is_in_memory_db():
            self.skipTest('needs a file-backed SQLite test database')

    def test_exactly_one_placement_wins(self):
        unit = make_unit("201")
        actor = Actor.system()
        barrier = threading.Barrier(self.WORKERS)
        results = []
        lock = threading.Lock()

        def worker(n):
            outcome = None
            try:
                barrier.wait()
                ledger.place_occupier(
                    unit.id,
                    {"name": f"Tenant {n}", "move_in_date": date(2024, 1, 1)},
                    actor=actor,
                )
                outcome = "ok"
            except Exception as exc:
                outcome = type(exc).__name__
            finally:
                connection.close()
                with lock:
                    results.append(outcome)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(self.WORKERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(
            sorted(results),
            sorted(["ok"] + ["ConflictError"] * (self.WORKERS - 1)),
        )
        self.assertEqual(Occupier.objects.current().filter(housing_unit=unit).count(), 1)
        self.assertTrue(HousingUnit.objects.get(id=unit.id).occupied)
