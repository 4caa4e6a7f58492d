"""
Aggregations over transactions and budgets.

Everything here is a pure function of its inputs. ``now`` defaults to the
current local time and only decides which month counts as "current".
Totals are rounded to cents so sums of currency amounts compare exactly.
"""

from datetime import datetime

from .models import category_color


def _money(value):
    return round(value, 2)


def _shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _in_month(transaction, year, month):
    return transaction.date.year == year and transaction.date.month == month


def _month_transactions(transactions, year, month):
    return [t for t in transactions if _in_month(t, year, month)]


def _total(transactions, tx_type):
    return _money(sum(t.amount for t in transactions if t.type == tx_type))


def _spending_by_category(transactions):
    spending = {}
    for t in transactions:
        if t.type == 'expense':
            spending[t.category] = spending.get(t.category, 0) + t.amount
    return {category: _money(amount) for category, amount in spending.items()}


def _current_budgets(budgets, now):
    month = f'{now.month:02d}'
    return [b for b in budgets if b.month == month and b.year == now.year]


def savings_rate(income, expenses):
    if income <= 0:
        return 0
    return (income - expenses) / income * 100


def prepare_summary(transactions, budgets, now=None):
    """Condense transactions and budgets into the figures the analysis prompt needs"""
    now = now or datetime.now()
    current = _month_transactions(transactions, now.year, now.month)

    income = _total(current, 'income')
    expenses = _total(current, 'expense')
    category_expenses = _spending_by_category(current)

    current_budgets = _current_budgets(budgets, now)
    budget_vs_actual = []
    for budget in current_budgets:
        spent = category_expenses.get(budget.category, 0)
        budget_vs_actual.append({
            'category': budget.category,
            'budgeted': budget.amount,
            'spent': spent,
            'over_budget': spent > budget.amount,
        })

    monthly_trends = []
    for offset in range(3):
        year, month = _shift_month(now.year, now.month, -offset)
        month_txs = _month_transactions(transactions, year, month)
        monthly_trends.append({
            'month': datetime(year, month, 1).strftime('%B %Y'),
            'income': _total(month_txs, 'income'),
            'expenses': _total(month_txs, 'expense'),
        })

    count = len(transactions)
    return {
        'current_month_income': income,
        'current_month_expenses': expenses,
        'savings_rate': savings_rate(income, expenses),
        'total_budget': _money(sum(b.amount for b in current_budgets)),
        'category_expenses': category_expenses,
        'budget_vs_actual': budget_vs_actual,
        'monthly_trends': monthly_trends,
        'transaction_count': count,
        'avg_transaction_amount': _money(sum(t.amount for t in transactions) / count) if count else 0,
    }


def summary_cards(transactions, now=None):
    now = now or datetime.now()
    current = _month_transactions(transactions, now.year, now.month)
    income = _total(current, 'income')
    expenses = _total(current, 'expense')

    recent = sorted(transactions, key=lambda t: t.date, reverse=True)[:5]

    spending = _spending_by_category(current)
    top = max(spending.items(), key=lambda item: item[1]) if spending else None

    return {
        'total_income': income,
        'total_expenses': expenses,
        'net_income': _money(income - expenses),
        'recent_transactions': [t.to_dict() for t in recent],
        'top_category': {'name': top[0], 'amount': top[1]} if top else None,
    }


def monthly_expenses(transactions, months=6):
    """Expense totals per calendar month, oldest first, limited to the latest ``months``"""
    totals = {}
    for t in transactions:
        if t.type != 'expense':
            continue
        key = (t.date.year, t.date.month)
        totals[key] = totals.get(key, 0) + t.amount

    rows = []
    for year, month in sorted(totals)[-months:]:
        rows.append({
            'month': datetime(year, month, 1).strftime('%b %Y'),
            'amount': _money(totals[(year, month)]),
        })
    return rows


def category_expenses(transactions):
    spending = _spending_by_category(transactions)
    rows = [
        {'category': category, 'amount': amount, 'color': category_color(category)}
        for category, amount in spending.items()
    ]
    rows.sort(key=lambda row: row['amount'], reverse=True)
    return {
        'categories': rows,
        'total': _money(sum(row['amount'] for row in rows)),
    }


def budget_vs_actual(transactions, budgets, now=None):
    now = now or datetime.now()
    current_budgets = _current_budgets(budgets, now)
    actual_by_category = _spending_by_category(
        _month_transactions(transactions, now.year, now.month)
    )

    categories = []
    for name in [b.category for b in current_budgets] + list(actual_by_category):
        if name not in categories:
            categories.append(name)

    rows = []
    for category in categories:
        budget = next((b for b in current_budgets if b.category == category), None)
        budget_amount = budget.amount if budget else 0
        actual = actual_by_category.get(category, 0)
        if budget_amount <= 0 and actual <= 0:
            continue
        rows.append({
            'category': category,
            'budget': budget_amount,
            'actual': actual,
            'remaining': _money(max(0, budget_amount - actual)),
            'overbudget': _money(max(0, actual - budget_amount)),
            'color': category_color(category),
        })

    total_budget = _money(sum(row['budget'] for row in rows))
    total_actual = _money(sum(row['actual'] for row in rows))
    return {
        'month': f'{now.month:02d}',
        'year': now.year,
        'items': rows,
        'total_budget': total_budget,
        'total_actual': total_actual,
        'total_remaining': _money(total_budget - total_actual),
    }


def _budget_status(percentage):
    if percentage > 100:
        return 'over'
    if percentage > 80:
        return 'warning'
    return 'good'


def _trend(change):
    if change > 10:
        return 'up'
    if change < -10:
        return 'down'
    return 'stable'


def _change(current, previous):
    return (current - previous) / previous * 100 if previous > 0 else 0


def spending_insights(transactions, budgets, now=None):
    """Month-over-month spending comparison and budget health"""
    now = now or datetime.now()
    last_year, last_month = _shift_month(now.year, now.month, -1)

    current_spending = _spending_by_category(_month_transactions(transactions, now.year, now.month))
    last_spending = _spending_by_category(_month_transactions(transactions, last_year, last_month))

    current_total = _money(sum(current_spending.values()))
    last_total = _money(sum(last_spending.values()))

    budget_analysis = []
    for budget in _current_budgets(budgets, now):
        spent = current_spending.get(budget.category, 0)
        percentage = spent / budget.amount * 100 if budget.amount > 0 else 0
        budget_analysis.append({
            'category': budget.category,
            'budget': budget.amount,
            'spent': spent,
            'remaining': _money(budget.amount - spent),
            'percentage': percentage,
            'status': _budget_status(percentage),
        })

    top_categories = [
        {'category': category, 'amount': amount}
        for category, amount in sorted(current_spending.items(), key=lambda item: item[1], reverse=True)[:3]
    ]

    category_trends = []
    for category, current in current_spending.items():
        change = _change(current, last_spending.get(category, 0))
        category_trends.append({
            'category': category,
            'current': current,
            'change': change,
            'trend': _trend(change),
        })
    category_trends.sort(key=lambda row: abs(row['change']), reverse=True)

    return {
        'current_total': current_total,
        'last_total': last_total,
        'spending_change': _change(current_total, last_total),
        'budget_analysis': budget_analysis,
        'top_categories': top_categories,
        'category_trends': category_trends[:5],
        'over_budget_count': sum(1 for b in budget_analysis if b['status'] == 'over'),
        'warning_count': sum(1 for b in budget_analysis if b['status'] == 'warning'),
    }
