import logging
import math

from . import insights
from .memory_storage import MemoryStorage
from .models import (DEFAULT_COLOR, PREDEFINED_CATEGORIES, TRANSACTION_TYPES, Budget,
                     Category, Transaction, parse_date)
from .storage import Storage, StorageError

logger = logging.getLogger(__name__)


def _amount(value):
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError(f'Invalid amount: {value!r}')
    if not math.isfinite(amount):
        raise ValueError(f'Invalid amount: {value!r}')
    return amount


def _nonzero_amount(value):
    amount = _amount(value)
    if amount == 0:
        raise ValueError('Amount must not be zero')
    return amount


def _text(value, field):
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f'{field} must be a non-empty string')
    return value


def _month(value):
    try:
        month = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'Invalid month: {value!r}')
    if not 1 <= month <= 12:
        raise ValueError(f'Invalid month: {value!r}')
    return f'{month:02d}'


def _year(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f'Invalid year: {value!r}')


def _tx_type(value):
    if value not in TRANSACTION_TYPES:
        raise ValueError('Type must be "income" or "expense"')
    return value


def _date(value):
    try:
        return parse_date(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f'Invalid date: {value!r}')


def predefined_categories():
    return [Category(name=c['name'], color=c['color']) for c in PREDEFINED_CATEGORIES]


class FinanceManager:
    """Service layer between the HTTP routes and the document store.

    When ``fallback`` is given, the first StorageError from the primary
    store switches this manager over to the fallback for every later call.
    """

    def __init__(self, storage, fallback=None):
        self.storage = storage
        self.fallback = fallback
        self.fallback_active = False

    @classmethod
    def from_config(cls, config):
        if not config.get('MONGODB_URI'):
            logger.warning("MONGODB_URI is not set, using in-memory storage")
            return cls(MemoryStorage())
        storage = Storage(config['MONGODB_URI'], config.get('DB_NAME', 'personal_finance'))
        fallback = MemoryStorage() if config.get('STORAGE_FALLBACK', True) else None
        return cls(storage, fallback=fallback)

    @property
    def active_storage(self):
        return self.fallback if self.fallback_active else self.storage

    def reset_fallback(self):
        self.fallback_active = False

    def _call(self, method, *args, **kwargs):
        if self.fallback_active:
            return getattr(self.fallback, method)(*args, **kwargs)
        try:
            return getattr(self.storage, method)(*args, **kwargs)
        except StorageError as e:
            if self.fallback is None:
                raise
            logger.warning("Storage failure (%s), switching to %s storage", e, self.fallback.name)
            self.fallback_active = True
            return getattr(self.fallback, method)(*args, **kwargs)

    def test_connection(self):
        """Ping the primary store and list its collections; raises StorageError on failure"""
        self.storage.ping()
        return self.storage.list_collections()

    # Transactions
    def get_transactions(self):
        return self._call('get_transactions')

    def get_transaction(self, transaction_id):
        return self._call('get_transaction', transaction_id)

    def create_transaction(self, data):
        if not data.get('amount') or not data.get('date') or not data.get('description') or not data.get('category'):
            raise ValueError('Missing required fields')
        transaction = Transaction(
            amount=_nonzero_amount(data['amount']),
            date=_date(data['date']),
            description=_text(data['description'], 'Description'),
            category=_text(data['category'], 'Category'),
            type=_tx_type(data.get('type') or 'expense'),
        )
        return self._call('add_transaction', transaction)

    def update_transaction(self, transaction_id, data):
        """Apply only the supplied fields; returns None when the transaction does not exist"""
        updates = {}
        if data.get('amount') is not None:
            updates['amount'] = _nonzero_amount(data['amount'])
        if data.get('date') is not None:
            updates['date'] = _date(data['date'])
        if data.get('description') is not None:
            updates['description'] = _text(data['description'], 'Description')
        if data.get('category') is not None:
            updates['category'] = _text(data['category'], 'Category')
        if data.get('type') is not None:
            updates['type'] = _tx_type(data['type'])
        return self._call('update_transaction', transaction_id, updates)

    def delete_transaction(self, transaction_id):
        return self._call('delete_transaction', transaction_id)

    # Categories
    def get_categories(self):
        """All categories, seeding the predefined list into an empty store"""
        categories = self._call('get_categories')
        if not categories:
            categories = self._call('seed_categories', predefined_categories())
        return categories

    def get_category(self, category_id):
        return self._call('get_category', category_id)

    def create_category(self, data):
        if not data.get('name'):
            raise ValueError('Missing required fields')
        budget = data.get('budget')
        category = Category(
            name=_text(data['name'], 'Name'),
            color=data.get('color') or DEFAULT_COLOR,
            budget=_amount(budget) if budget not in (None, '') else None,
        )
        return self._call('add_category', category)

    def update_category(self, category_id, data):
        updates = {}
        if data.get('name') is not None:
            updates['name'] = _text(data['name'], 'Name')
        if data.get('color'):
            updates['color'] = data['color']
        if 'budget' in data:
            budget = data['budget']
            updates['budget'] = _amount(budget) if budget not in (None, '') else None
        return self._call('update_category', category_id, updates)

    def delete_category(self, category_id):
        return self._call('delete_category', category_id)

    # Budgets
    def get_budgets(self, month=None, year=None):
        return self._call(
            'get_budgets',
            month=_month(month) if month else None,
            year=_year(year) if year else None,
        )

    def get_budget(self, budget_id):
        return self._call('get_budget', budget_id)

    def create_budget(self, data):
        if not data.get('category') or not data.get('amount') or not data.get('month') or not data.get('year'):
            raise ValueError('Missing required fields')
        budget = Budget(
            category=_text(data['category'], 'Category'),
            amount=_nonzero_amount(data['amount']),
            month=_month(data['month']),
            year=_year(data['year']),
        )
        return self._call('add_budget', budget)

    def update_budget(self, budget_id, data):
        updates = {}
        if data.get('category') is not None:
            updates['category'] = _text(data['category'], 'Category')
        if data.get('amount') is not None:
            updates['amount'] = _nonzero_amount(data['amount'])
        if data.get('month'):
            updates['month'] = _month(data['month'])
        if data.get('year'):
            updates['year'] = _year(data['year'])
        return self._call('update_budget', budget_id, updates)

    def delete_budget(self, budget_id):
        return self._call('delete_budget', budget_id)

    # Reporting
    def analyze(self, ai_service, now=None):
        return ai_service.analyze_finances(self.get_transactions(), self.get_budgets(), now=now)

    def get_summary_cards(self, now=None):
        return insights.summary_cards(self.get_transactions(), now=now)

    def get_monthly_expenses(self):
        return insights.monthly_expenses(self.get_transactions())

    def get_category_expenses(self):
        return insights.category_expenses(self.get_transactions())

    def get_budget_vs_actual(self, now=None):
        return insights.budget_vs_actual(self.get_transactions(), self.get_budgets(), now=now)

    def get_spending_insights(self, now=None):
        return insights.spending_insights(self.get_transactions(), self.get_budgets(), now=now)
