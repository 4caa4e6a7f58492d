import logging
from contextlib import contextmanager
from datetime import datetime

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from .models import Budget, Category, Transaction

logger = logging.getLogger(__name__)

SINGULAR = {'transactions': 'transaction', 'categories': 'category', 'budgets': 'budget'}


class StorageError(Exception):
    """Raised when the document store fails an operation"""

    def __init__(self, operation, cause=None):
        self.operation = operation
        self.cause = cause
        message = f'Failed to {operation}'
        if cause is not None:
            message += f': {cause}'
        super().__init__(message)


def _object_id(value):
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class Storage:
    """MongoDB-backed store for transactions, categories and budgets"""

    name = 'mongodb'

    def __init__(self, uri, db_name='personal_finance', client=None):
        self.db_name = db_name
        self.client = client or MongoClient(uri, maxPoolSize=10, serverSelectionTimeoutMS=5000)
        self.db = self.client[db_name]

    @contextmanager
    def _collection(self, name, operation):
        try:
            yield self.db[name]
        except PyMongoError as e:
            logger.error("Database error while trying to %s: %s", operation, e)
            raise StorageError(operation, e) from e

    # Diagnostics
    def ping(self):
        try:
            self.client.admin.command('ping')
        except PyMongoError as e:
            raise StorageError('reach the database', e) from e
        return True

    def list_collections(self):
        try:
            return sorted(self.db.list_collection_names())
        except PyMongoError as e:
            raise StorageError('list collections', e) from e

    # Transaction methods
    def add_transaction(self, transaction: Transaction):
        now = datetime.now()
        transaction.created_at = now
        transaction.updated_at = now
        with self._collection('transactions', 'create transaction') as coll:
            result = coll.insert_one(transaction.to_document())
        transaction.id = str(result.inserted_id)
        return transaction

    def get_transactions(self):
        with self._collection('transactions', 'fetch transactions') as coll:
            docs = list(coll.find({}).sort('date', DESCENDING))
        return [Transaction.from_document(doc) for doc in docs]

    def get_transaction(self, transaction_id):
        oid = _object_id(transaction_id)
        if oid is None:
            return None
        with self._collection('transactions', f'fetch transaction {transaction_id}') as coll:
            doc = coll.find_one({'_id': oid})
        return Transaction.from_document(doc) if doc else None

    def update_transaction(self, transaction_id, updates):
        return self._update('transactions', transaction_id, updates, Transaction, stamp=True)

    def delete_transaction(self, transaction_id):
        return self._delete('transactions', transaction_id)

    # Category methods
    def get_categories(self):
        with self._collection('categories', 'fetch categories') as coll:
            docs = list(coll.find({}))
        return [Category.from_document(doc) for doc in docs]

    def get_category(self, category_id):
        oid = _object_id(category_id)
        if oid is None:
            return None
        with self._collection('categories', f'fetch category {category_id}') as coll:
            doc = coll.find_one({'_id': oid})
        return Category.from_document(doc) if doc else None

    def add_category(self, category: Category):
        with self._collection('categories', 'create category') as coll:
            result = coll.insert_one(category.to_document())
        category.id = str(result.inserted_id)
        return category

    def seed_categories(self, categories):
        if not categories:
            return []
        with self._collection('categories', 'seed categories') as coll:
            result = coll.insert_many([c.to_document() for c in categories])
        for category, inserted_id in zip(categories, result.inserted_ids):
            category.id = str(inserted_id)
        return categories

    def update_category(self, category_id, updates):
        return self._update('categories', category_id, updates, Category)

    def delete_category(self, category_id):
        return self._delete('categories', category_id)

    # Budget methods
    def add_budget(self, budget: Budget):
        now = datetime.now()
        budget.created_at = now
        budget.updated_at = now
        with self._collection('budgets', 'create budget') as coll:
            result = coll.insert_one(budget.to_document())
        budget.id = str(result.inserted_id)
        return budget

    def get_budgets(self, month=None, year=None):
        query = {}
        if month is not None:
            query['month'] = month
        if year is not None:
            query['year'] = year
        with self._collection('budgets', 'fetch budgets') as coll:
            docs = list(coll.find(query))
        return [Budget.from_document(doc) for doc in docs]

    def get_budget(self, budget_id):
        oid = _object_id(budget_id)
        if oid is None:
            return None
        with self._collection('budgets', f'fetch budget {budget_id}') as coll:
            doc = coll.find_one({'_id': oid})
        return Budget.from_document(doc) if doc else None

    def update_budget(self, budget_id, updates):
        return self._update('budgets', budget_id, updates, Budget, stamp=True)

    def delete_budget(self, budget_id):
        return self._delete('budgets', budget_id)

    # Shared helpers
    def _update(self, name, item_id, updates, model, stamp=False):
        oid = _object_id(item_id)
        if oid is None:
            return None
        changes = {k: v for k, v in updates.items() if k not in ('id', '_id', 'created_at')}
        if stamp:
            changes['updated_at'] = datetime.now()
        with self._collection(name, f'update {SINGULAR[name]} {item_id}') as coll:
            if not changes:
                doc = coll.find_one({'_id': oid})
            else:
                doc = coll.find_one_and_update(
                    {'_id': oid},
                    {'$set': changes},
                    return_document=ReturnDocument.AFTER,
                )
        return model.from_document(doc) if doc else None

    def _delete(self, name, item_id):
        oid = _object_id(item_id)
        if oid is None:
            return False
        with self._collection(name, f'delete {SINGULAR[name]} {item_id}') as coll:
            result = coll.delete_one({'_id': oid})
        return result.deleted_count == 1