from datetime import datetime
from types import SimpleNamespace

import pytest

from finance_tracker.backend.ai_service import AIService
from finance_tracker.backend.manager import FinanceManager
from finance_tracker.backend.memory_storage import MemoryStorage
from finance_tracker.backend.models import Budget, Transaction
from finance_tracker.backend.storage import StorageError
from finance_tracker.web.app import create_app

NOW = datetime(2026, 3, 15, 12, 0)

TEST_CONFIG = {
    'MONGODB_URI': None,
    'DB_NAME': 'personal_finance_test',
    'AI_PROVIDER': 'gemini',
    'OPENAI_API_KEY': None,
    'GEMINI_API_KEY': None,
    'STORAGE_FALLBACK': True,
    'APP_ENV': 'test',
    'HOST': '127.0.0.1',
    'PORT': 5000,
}


class StubGeminiModel:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def generate_content(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.text)


class StubOpenAIClient:
    def __init__(self, content):
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))
        self.content = content

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class BrokenStorage:
    """Every operation fails the way an unreachable database does"""

    name = 'mongodb'

    def __getattr__(self, operation):
        def fail(*args, **kwargs):
            raise StorageError(operation)
        return fail


def tx(amount, date, category='Food & Dining', type='expense', description='item'):
    return Transaction(amount=amount, date=date, description=description, category=category, type=type)


@pytest.fixture(autouse=True)
def no_ai_keys(monkeypatch):
    monkeypatch.delenv('OPENAI_API_KEY', raising=False)
    monkeypatch.delenv('GEMINI_API_KEY', raising=False)
    monkeypatch.delenv('AI_PROVIDER', raising=False)


@pytest.fixture
def sample_transactions():
    return [
        tx(3000.00, datetime(2026, 3, 1), category='Salary', type='income', description='Monthly salary'),
        tx(25.99, datetime(2026, 3, 12), description='Lunch at restaurant'),
        tx(89.50, datetime(2026, 3, 10), description='Grocery shopping'),
        tx(45.00, datetime(2026, 3, 8), category='Transportation', description='Gas for car'),
        tx(120.00, datetime(2026, 2, 25), category='Bills & Utilities', description='Electricity bill'),
        tx(60.00, datetime(2026, 2, 14), description='Dinner'),
        tx(2800.00, datetime(2026, 2, 1), category='Salary', type='income', description='Monthly salary'),
        tx(300.00, datetime(2026, 1, 20), category='Shopping', description='Winter coat'),
        tx(75.25, datetime(2025, 12, 24), category='Travel', description='Train tickets'),
    ]


@pytest.fixture
def sample_budgets():
    return [
        Budget(category='Food & Dining', amount=100.0, month='03', year=2026),
        Budget(category='Transportation', amount=200.0, month='03', year=2026),
        Budget(category='Shopping', amount=150.0, month='02', year=2026),
        Budget(category='Food & Dining', amount=90.0, month='03', year=2025),
    ]


@pytest.fixture
def manager():
    return FinanceManager(MemoryStorage())


@pytest.fixture
def gemini_model():
    return StubGeminiModel(error=RuntimeError('service unavailable'))


@pytest.fixture
def ai_service(gemini_model):
    return AIService(provider='gemini', gemini_model=gemini_model)


@pytest.fixture
def app(manager, ai_service):
    return create_app(dict(TEST_CONFIG), manager=manager, ai_service=ai_service)


@pytest.fixture
def client(app):
    return app.test_client()
