from dataclasses import replace
from datetime import datetime
from itertools import count

from .models import COLLECTIONS, Budget, Category, Transaction


class MemoryStorage:
    """In-process store with the same interface as Storage.

    Used when no MongoDB URI is configured and as the fallback once the
    database fails. Contents live only as long as the process.
    """

    name = 'memory'

    def __init__(self):
        self.reset()

    def reset(self):
        self._transactions = []
        self._categories = []
        self._budgets = []
        self._ids = count(1)

    def _next_id(self, kind):
        return f'memory_{kind}_{next(self._ids)}'

    def ping(self):
        return True

    def list_collections(self):
        return sorted(COLLECTIONS)

    # Transaction methods
    def add_transaction(self, transaction: Transaction):
        now = datetime.now()
        stored = replace(transaction, id=self._next_id('txn'), created_at=now, updated_at=now)
        self._transactions.append(stored)
        return replace(stored)

    def get_transactions(self):
        ordered = sorted(self._transactions, key=lambda t: t.date, reverse=True)
        return [replace(t) for t in ordered]

    def get_transaction(self, transaction_id):
        found = self._find(self._transactions, transaction_id)
        return replace(found) if found else None

    def update_transaction(self, transaction_id, updates):
        return self._update(self._transactions, transaction_id, updates, stamp=True)

    def delete_transaction(self, transaction_id):
        return self._delete(self._transactions, transaction_id)

    # Category methods
    def get_categories(self):
        return [replace(c) for c in self._categories]

    def get_category(self, category_id):
        found = self._find(self._categories, category_id)
        return replace(found) if found else None

    def add_category(self, category: Category):
        stored = replace(category, id=self._next_id('cat'))
        self._categories.append(stored)
        return replace(stored)

    def seed_categories(self, categories):
        return [self.add_category(c) for c in categories]

    def update_category(self, category_id, updates):
        return self._update(self._categories, category_id, updates)

    def delete_category(self, category_id):
        return self._delete(self._categories, category_id)

    # Budget methods
    def add_budget(self, budget: Budget):
        now = datetime.now()
        stored = replace(budget, id=self._next_id('budget'), created_at=now, updated_at=now)
        self._budgets.append(stored)
        return replace(stored)

    def get_budgets(self, month=None, year=None):
        return [
            replace(b) for b in self._budgets
            if (month is None or b.month == month) and (year is None or b.year == year)
        ]

    def get_budget(self, budget_id):
        found = self._find(self._budgets, budget_id)
        return replace(found) if found else None

    def update_budget(self, budget_id, updates):
        return self._update(self._budgets, budget_id, updates, stamp=True)

    def delete_budget(self, budget_id):
        return self._delete(self._budgets, budget_id)

    # Shared helpers
    @staticmethod
    def _find(items, item_id):
        return next((item for item in items if item.id == item_id), None)

    def _update(self, items, item_id, updates, stamp=False):
        for index, item in enumerate(items):
            if item.id == item_id:
                changes = {k: v for k, v in updates.items() if k not in ('id', '_id', 'created_at')}
                if stamp:
                    changes['updated_at'] = datetime.now()
                items[index] = replace(item, **changes)
                return replace(items[index])
        return None

    def _delete(self, items, item_id):
        found = self._find(items, item_id)
        if found is None:
            return False
        items.remove(found)
        return True
