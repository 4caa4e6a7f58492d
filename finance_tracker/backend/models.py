from dataclasses import dataclass
from datetime import datetime

DEFAULT_COLOR = '#AED6F1'

PREDEFINED_CATEGORIES = [
    {'name': 'Food & Dining', 'color': '#FF6B6B'},
    {'name': 'Transportation', 'color': '#4ECDC4'},
    {'name': 'Shopping', 'color': '#45B7D1'},
    {'name': 'Entertainment', 'color': '#96CEB4'},
    {'name': 'Bills & Utilities', 'color': '#FFEAA7'},
    {'name': 'Healthcare', 'color': '#DDA0DD'},
    {'name': 'Education', 'color': '#98D8C8'},
    {'name': 'Travel', 'color': '#F7DC6F'},
    {'name': 'Investment', 'color': '#BB8FCE'},
    {'name': 'Other', 'color': DEFAULT_COLOR},
]

TRANSACTION_TYPES = ('income', 'expense')

COLLECTIONS = ('transactions', 'categories', 'budgets')


def category_color(name):
    """Display color for a category name, falling back to the default"""
    for cat in PREDEFINED_CATEGORIES:
        if cat['name'] == name:
            return cat['color']
    return DEFAULT_COLOR


def parse_date(value):
    """Accepts a datetime, 'YYYY-MM-DD' or a full ISO-8601 string"""
    if isinstance(value, datetime):
        return value
    if not value:
        raise ValueError('Date is required')
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    # Stored dates are naive local times
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _iso(value):
    return value.isoformat() if value else None


@dataclass
class Transaction:
    amount: float
    date: datetime
    description: str
    category: str
    type: str = 'expense'  # 'income' or 'expense'
    id: str = None
    created_at: datetime = None
    updated_at: datetime = None

    def to_document(self):
        return {
            'amount': self.amount,
            'date': self.date,
            'description': self.description,
            'category': self.category,
            'type': self.type,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    def to_dict(self):
        data = self.to_document()
        data['id'] = self.id
        data['date'] = _iso(self.date)
        data['created_at'] = _iso(self.created_at)
        data['updated_at'] = _iso(self.updated_at)
        return data

    @classmethod
    def from_document(cls, doc):
        return cls(
            id=str(doc['_id']),
            amount=doc['amount'],
            date=doc['date'],
            description=doc.get('description', ''),
            category=doc['category'],
            type=doc.get('type', 'expense'),
            created_at=doc.get('created_at'),
            updated_at=doc.get('updated_at'),
        )


@dataclass
class Category:
    name: str
    color: str = DEFAULT_COLOR
    budget: float = None
    id: str = None

    def to_document(self):
        return {'name': self.name, 'color': self.color, 'budget': self.budget}

    def to_dict(self):
        data = self.to_document()
        data['id'] = self.id
        return data

    @classmethod
    def from_document(cls, doc):
        return cls(
            id=str(doc['_id']),
            name=doc['name'],
            color=doc.get('color', DEFAULT_COLOR),
            budget=doc.get('budget'),
        )


@dataclass
class Budget:
    category: str
    amount: float
    month: str  # Format: MM
    year: int
    id: str = None
    created_at: datetime = None
    updated_at: datetime = None

    def to_document(self):
        return {
            'category': self.category,
            'amount': self.amount,
            'month': self.month,
            'year': self.year,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    def to_dict(self):
        data = self.to_document()
        data['id'] = self.id
        data['created_at'] = _iso(self.created_at)
        data['updated_at'] = _iso(self.updated_at)
        return data

    @classmethod
    def from_document(cls, doc):
        return cls(
            id=str(doc['_id']),
            category=doc['category'],
            amount=doc['amount'],
            month=doc['month'],
            year=doc['year'],
            created_at=doc.get('created_at'),
            updated_at=doc.get('updated_at'),
        )

