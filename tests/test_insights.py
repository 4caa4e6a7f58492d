from datetime import datetime

import pytest

from finance_tracker.backend import insights
from finance_tracker.backend.models import Budget

from conftest import NOW, tx


def test_current_month_totals_match_sum_of_transactions(sample_transactions, sample_budgets):
    summary = insights.prepare_summary(sample_transactions, sample_budgets, now=NOW)

    assert summary['current_month_income'] == 3000.00
    assert summary['current_month_expenses'] == 160.49


def test_totals_have_no_float_drift():
    transactions = [tx(0.1, NOW), tx(0.2, NOW), tx(19.99, NOW), tx(0.01, NOW)]
    summary = insights.prepare_summary(transactions, [], now=NOW)

    assert summary['current_month_expenses'] == 20.30


def test_savings_rate_is_zero_without_income():
    transactions = [tx(50.0, NOW), tx(10.0, NOW)]
    summary = insights.prepare_summary(transactions, [], now=NOW)

    assert summary['current_month_income'] == 0
    assert summary['savings_rate'] == 0


def test_savings_rate_formula(sample_transactions):
    summary = insights.prepare_summary(sample_transactions, [], now=NOW)

    assert summary['savings_rate'] == pytest.approx((3000.00 - 160.49) / 3000.00 * 100)


def test_savings_rate_can_be_negative():
    assert insights.savings_rate(100.0, 150.0) == pytest.approx(-50.0)


def test_category_expenses_and_budget_vs_actual(sample_transactions, sample_budgets):
    summary = insights.prepare_summary(sample_transactions, sample_budgets, now=NOW)

    assert summary['category_expenses'] == {'Food & Dining': 115.49, 'Transportation': 45.0}
    assert summary['total_budget'] == 300.0
    assert summary['budget_vs_actual'] == [
        {'category': 'Food & Dining', 'budgeted': 100.0, 'spent': 115.49, 'over_budget': True},
        {'category': 'Transportation', 'budgeted': 200.0, 'spent': 45.0, 'over_budget': False},
    ]


def test_monthly_trends_cover_three_months(sample_transactions):
    summary = insights.prepare_summary(sample_transactions, [], now=NOW)

    assert summary['monthly_trends'] == [
        {'month': 'March 2026', 'income': 3000.0, 'expenses': 160.49},
        {'month': 'February 2026', 'income': 2800.0, 'expenses': 180.0},
        {'month': 'January 2026', 'income': 0, 'expenses': 300.0},
    ]


def test_monthly_trends_cross_year_boundary(sample_transactions):
    summary = insights.prepare_summary(sample_transactions, [], now=datetime(2026, 1, 5))

    months = [row['month'] for row in summary['monthly_trends']]
    assert months == ['January 2026', 'December 2025', 'November 2025']
    assert summary['monthly_trends'][1]['expenses'] == 75.25


def test_count_and_average(sample_transactions):
    summary = insights.prepare_summary(sample_transactions, [], now=NOW)

    assert summary['transaction_count'] == 9
    assert summary['avg_transaction_amount'] == 723.97


def test_empty_inputs():
    summary = insights.prepare_summary([], [], now=NOW)

    assert summary['current_month_income'] == 0
    assert summary['current_month_expenses'] == 0
    assert summary['savings_rate'] == 0
    assert summary['avg_transaction_amount'] == 0
    assert summary['budget_vs_actual'] == []


def test_summary_cards(sample_transactions):
    cards = insights.summary_cards(sample_transactions, now=NOW)

    assert cards['total_income'] == 3000.0
    assert cards['total_expenses'] == 160.49
    assert cards['net_income'] == 2839.51
    assert [t['description'] for t in cards['recent_transactions']] == [
        'Lunch at restaurant', 'Grocery shopping', 'Gas for car', 'Monthly salary', 'Electricity bill',
    ]
    assert cards['top_category'] == {'name': 'Food & Dining', 'amount': 115.49}


def test_summary_cards_without_expenses():
    cards = insights.summary_cards([], now=NOW)

    assert cards['top_category'] is None
    assert cards['recent_transactions'] == []


def test_monthly_expenses_sorted_and_limited(sample_transactions):
    rows = insights.monthly_expenses(sample_transactions)

    assert rows == [
        {'month': 'Dec 2025', 'amount': 75.25},
        {'month': 'Jan 2026', 'amount': 300.0},
        {'month': 'Feb 2026', 'amount': 180.0},
        {'month': 'Mar 2026', 'amount': 160.49},
    ]
    assert [r['month'] for r in insights.monthly_expenses(sample_transactions, months=2)] == ['Feb 2026', 'Mar 2026']


def test_category_expenses(sample_transactions):
    result = insights.category_expenses(sample_transactions)

    assert [row['category'] for row in result['categories']] == [
        'Shopping', 'Food & Dining', 'Bills & Utilities', 'Travel', 'Transportation',
    ]
    assert result['categories'][0]['color'] == '#45B7D1'
    assert result['total'] == 715.74


def test_unknown_category_gets_default_color():
    result = insights.category_expenses([tx(10.0, NOW, category='Pets')])

    assert result['categories'][0]['color'] == '#AED6F1'


def test_budget_vs_actual(sample_transactions, sample_budgets):
    result = insights.budget_vs_actual(sample_transactions, sample_budgets, now=NOW)

    food, transport = result['items']
    assert food['category'] == 'Food & Dining'
    assert food['remaining'] == 0
    assert food['overbudget'] == 15.49
    assert transport['remaining'] == 155.0
    assert transport['overbudget'] == 0
    assert result['total_budget'] == 300.0
    assert result['total_actual'] == 160.49
    assert result['total_remaining'] == 139.51


def test_budget_vs_actual_includes_unbudgeted_spending():
    result = insights.budget_vs_actual([tx(12.0, NOW, category='Travel')], [], now=NOW)

    assert result['items'][0]['category'] == 'Travel'
    assert result['items'][0]['budget'] == 0
    assert result['items'][0]['overbudget'] == 12.0


def test_spending_insights(sample_transactions, sample_budgets):
    result = insights.spending_insights(sample_transactions, sample_budgets, now=NOW)

    assert result['current_total'] == 160.49
    assert result['last_total'] == 180.0
    assert result['spending_change'] == pytest.approx((160.49 - 180.0) / 180.0 * 100)
    assert [b['status'] for b in result['budget_analysis']] == ['over', 'good']
    assert result['over_budget_count'] == 1
    assert result['warning_count'] == 0
    assert result['top_categories'][0] == {'category': 'Food & Dining', 'amount': 115.49}

    food_trend = result['category_trends'][0]
    assert food_trend['category'] == 'Food & Dining'
    assert food_trend['trend'] == 'up'
    assert result['category_trends'][1]['trend'] == 'stable'


def test_spending_insights_warning_status():
    budgets = [Budget(category='Food & Dining', amount=100.0, month='03', year=2026)]
    result = insights.spending_insights([tx(85.0, NOW)], budgets, now=NOW)

    assert result['budget_analysis'][0]['status'] == 'warning'
    assert result['warning_count'] == 1
    assert result['spending_change'] == 0
