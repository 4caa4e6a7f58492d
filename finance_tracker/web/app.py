import logging
from datetime import datetime

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_socketio import SocketIO

from finance_tracker.backend.ai_service import AIService
from finance_tracker.backend.config import load_config
from finance_tracker.backend.manager import FinanceManager, predefined_categories
from finance_tracker.backend.storage import StorageError

logger = logging.getLogger(__name__)

socketio = SocketIO(cors_allowed_origins="*")
api = Blueprint('api', __name__, url_prefix='/api')


def create_app(config=None, manager=None, ai_service=None):
    app = Flask(__name__)
    config = config if config is not None else load_config()
    app.config.update(config)

    if manager is None:
        manager = FinanceManager.from_config(config)
    if ai_service is None:
        ai_service = AIService(
            provider=config.get('AI_PROVIDER'),
            openai_key=config.get('OPENAI_API_KEY'),
            gemini_key=config.get('GEMINI_API_KEY'),
        )
    app.extensions['finance_manager'] = manager
    app.extensions['ai_service'] = ai_service

    app.register_blueprint(api)
    socketio.init_app(app)
    return app


def _manager() -> FinanceManager:
    return current_app.extensions['finance_manager']


def _ai() -> AIService:
    return current_app.extensions['ai_service']


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _notify(kind, action):
    socketio.emit('data_updated', {'type': kind, 'action': action})


def _not_found(kind):
    return jsonify({'error': f'{kind} not found'}), 404


def _server_error(message, error):
    return jsonify({'error': message, 'details': str(error)}), 500


def _reference_time():
    """Dashboard month from ?month=MM&year=YYYY, defaulting to now"""
    month = request.args.get('month', type=int)
    year = request.args.get('year', type=int)
    now = datetime.now()
    if not month and not year:
        return now
    return datetime(year or now.year, month or now.month, 1)


# Transaction endpoints
@api.route('/transactions', methods=['GET'])
def list_transactions():
    try:
        transactions = _manager().get_transactions()
        logger.info("Fetched %d transactions", len(transactions))
        return jsonify([t.to_dict() for t in transactions])
    except StorageError as e:
        return _server_error('Failed to fetch transactions', e)


@api.route('/transactions', methods=['POST'])
def create_transaction():
    try:
        transaction = _manager().create_transaction(_json_body())
        _notify('transaction', 'add')
        return jsonify(transaction.to_dict()), 201
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        return _server_error('Failed to create transaction', e)
    except Exception as e:
        logger.exception("Unexpected error in create_transaction")
        return _server_error('Internal server error', e)


@api.route('/transactions/<transaction_id>', methods=['GET'])
def get_transaction(transaction_id):
    try:
        transaction = _manager().get_transaction(transaction_id)
        if not transaction:
            return _not_found('Transaction')
        return jsonify(transaction.to_dict())
    except StorageError as e:
        return _server_error('Failed to fetch transaction', e)


@api.route('/transactions/<transaction_id>', methods=['PUT'])
def update_transaction(transaction_id):
    try:
        transaction = _manager().update_transaction(transaction_id, _json_body())
        if not transaction:
            return _not_found('Transaction')
        _notify('transaction', 'update')
        return jsonify(transaction.to_dict())
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        return _server_error('Failed to update transaction', e)
    except Exception as e:
        logger.exception("Unexpected error in update_transaction")
        return _server_error('Internal server error', e)


@api.route('/transactions/<transaction_id>', methods=['DELETE'])
def delete_transaction(transaction_id):
    try:
        if not _manager().delete_transaction(transaction_id):
            return _not_found('Transaction')
        _notify('transaction', 'delete')
        return jsonify({'message': 'Transaction deleted successfully'})
    except StorageError as e:
        return _server_error('Failed to delete transaction', e)


# Budget endpoints
@api.route('/budgets', methods=['GET'])
def list_budgets():
    try:
        budgets = _manager().get_budgets(request.args.get('month'), request.args.get('year'))
        return jsonify([b.to_dict() for b in budgets])
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        logger.error("Error fetching budgets, falling back to empty list: %s", e)
        return jsonify([])


@api.route('/budgets', methods=['POST'])
def create_budget():
    try:
        budget = _manager().create_budget(_json_body())
        _notify('budget', 'add')
        return jsonify(budget.to_dict()), 201
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        return _server_error('Failed to create budget', e)
    except Exception as e:
        logger.exception("Unexpected error in create_budget")
        return _server_error('Internal server error', e)


@api.route('/budgets/<budget_id>', methods=['GET'])
def get_budget(budget_id):
    try:
        budget = _manager().get_budget(budget_id)
        if not budget:
            return _not_found('Budget')
        return jsonify(budget.to_dict())
    except StorageError as e:
        return _server_error('Failed to fetch budget', e)


@api.route('/budgets/<budget_id>', methods=['PUT'])
def update_budget(budget_id):
    try:
        budget = _manager().update_budget(budget_id, _json_body())
        if not budget:
            return _not_found('Budget')
        _notify('budget', 'update')
        return jsonify(budget.to_dict())
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        return _server_error('Failed to update budget', e)
    except Exception as e:
        logger.exception("Unexpected error in update_budget")
        return _server_error('Internal server error', e)


@api.route('/budgets/<budget_id>', methods=['DELETE'])
def delete_budget(budget_id):
    try:
        if not _manager().delete_budget(budget_id):
            return _not_found('Budget')
        _notify('budget', 'delete')
        return jsonify({'message': 'Budget deleted successfully'})
    except StorageError as e:
        return _server_error('Failed to delete budget', e)


# Category endpoints
@api.route('/categories', methods=['GET'])
def list_categories():
    try:
        categories = _manager().get_categories()
        return jsonify([c.to_dict() for c in categories])
    except StorageError as e:
        logger.error("Error fetching categories, serving predefined list: %s", e)
        return jsonify([c.to_dict() for c in predefined_categories()])


@api.route('/categories', methods=['POST'])
def create_category():
    try:
        category = _manager().create_category(_json_body())
        _notify('category', 'add')
        return jsonify(category.to_dict()), 201
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        return _server_error('Failed to create category', e)
    except Exception as e:
        logger.exception("Unexpected error in create_category")
        return _server_error('Internal server error', e)


@api.route('/categories/<category_id>', methods=['GET'])
def get_category(category_id):
    try:
        category = _manager().get_category(category_id)
        if not category:
            return _not_found('Category')
        return jsonify(category.to_dict())
    except StorageError as e:
        return _server_error('Failed to fetch category', e)


@api.route('/categories/<category_id>', methods=['PUT'])
def update_category(category_id):
    try:
        category = _manager().update_category(category_id, _json_body())
        if not category:
            return _not_found('Category')
        _notify('category', 'update')
        return jsonify(category.to_dict())
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        return _server_error('Failed to update category', e)
    except Exception as e:
        logger.exception("Unexpected error in update_category")
        return _server_error('Internal server error', e)


@api.route('/categories/<category_id>', methods=['DELETE'])
def delete_category(category_id):
    try:
        if not _manager().delete_category(category_id):
            return _not_found('Category')
        _notify('category', 'delete')
        return jsonify({'message': 'Category deleted successfully'})
    except StorageError as e:
        return _server_error('Failed to delete category', e)


# AI endpoints
@api.route('/ai-analysis', methods=['POST'])
def ai_analysis():
    try:
        return jsonify(_manager().analyze(_ai()))
    except Exception as e:
        logger.exception("AI analysis request failed")
        return _server_error('Failed to analyze finances. Please try again.', e)


@api.route('/ai-info')
def get_ai_info():
    return jsonify(_ai().get_model_info())


@api.route('/switch-model', methods=['POST'])
def switch_model():
    provider = _json_body().get('provider')
    if not provider:
        return jsonify({'error': 'No provider specified'}), 400
    if _ai().set_provider(provider):
        return jsonify({'success': True, 'provider': _ai().get_active_provider()})
    return jsonify({'error': 'Invalid provider'}), 400


# Dashboard endpoints
@api.route('/dashboard/summary')
def dashboard_summary():
    try:
        return jsonify(_manager().get_summary_cards(now=_reference_time()))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        return _server_error('Failed to build summary', e)
    except Exception as e:
        logger.exception("Unexpected error in dashboard_summary")
        return _server_error('Internal server error', e)


@api.route('/dashboard/monthly-expenses')
def dashboard_monthly_expenses():
    try:
        return jsonify(_manager().get_monthly_expenses())
    except StorageError as e:
        return _server_error('Failed to build monthly expenses', e)
    except Exception as e:
        logger.exception("Unexpected error in dashboard_monthly_expenses")
        return _server_error('Internal server error', e)


@api.route('/dashboard/category-expenses')
def dashboard_category_expenses():
    try:
        return jsonify(_manager().get_category_expenses())
    except StorageError as e:
        return _server_error('Failed to build category expenses', e)
    except Exception as e:
        logger.exception("Unexpected error in dashboard_category_expenses")
        return _server_error('Internal server error', e)


@api.route('/dashboard/budget-vs-actual')
def dashboard_budget_vs_actual():
    try:
        return jsonify(_manager().get_budget_vs_actual(now=_reference_time()))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        return _server_error('Failed to compare budgets', e)
    except Exception as e:
        logger.exception("Unexpected error in dashboard_budget_vs_actual")
        return _server_error('Internal server error', e)


@api.route('/dashboard/insights')
def dashboard_insights():
    try:
        return jsonify(_manager().get_spending_insights(now=_reference_time()))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except StorageError as e:
        return _server_error('Failed to build spending insights', e)
    except Exception as e:
        logger.exception("Unexpected error in dashboard_insights")
        return _server_error('Internal server error', e)


# Diagnostics
@api.route('/health')
def health():
    manager = _manager()
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.now().isoformat(),
        'environment': current_app.config.get('APP_ENV'),
        'has_mongo_uri': bool(current_app.config.get('MONGODB_URI')),
        'has_gemini_key': bool(current_app.config.get('GEMINI_API_KEY')),
        'has_openai_key': bool(current_app.config.get('OPENAI_API_KEY')),
        'db_name': current_app.config.get('DB_NAME') or 'personal_finance',
        'storage': manager.active_storage.name,
        'fallback_active': manager.fallback_active,
    })


@api.route('/debug-env')
def debug_env():
    uri = current_app.config.get('MONGODB_URI') or ''
    info = {
        'app_env': current_app.config.get('APP_ENV'),
        'mongodb_uri_exists': bool(uri),
        'mongodb_uri_length': len(uri),
        'db_name': current_app.config.get('DB_NAME'),
        'gemini_api_key_exists': bool(current_app.config.get('GEMINI_API_KEY')),
        'openai_api_key_exists': bool(current_app.config.get('OPENAI_API_KEY')),
        'ai_provider': _ai().get_active_provider(),
    }
    logger.info("Environment debug info: %s", info)
    return jsonify(info)


@api.route('/test-connection')
def test_connection():
    if not current_app.config.get('MONGODB_URI'):
        return jsonify({'error': 'MongoDB URI not found in environment variables'}), 500
    try:
        collections = _manager().test_connection()
    except StorageError as e:
        logger.error("Connection test failed: %s", e)
        return jsonify({
            'error': 'Connection test failed',
            'details': str(e),
            'has_mongo_uri': True,
            'has_db_name': bool(current_app.config.get('DB_NAME')),
        }), 500
    return jsonify({
        'success': True,
        'message': 'MongoDB connection successful',
        'collections_count': len(collections),
        'collections': collections,
    })
