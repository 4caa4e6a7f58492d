import os
from dotenv import load_dotenv

load_dotenv()


def _flag(value, default):
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_config():
    """Read settings from the environment (and a .env file if present)"""
    return {
        'MONGODB_URI': os.getenv('MONGODB_URI'),
        'DB_NAME': os.getenv('DB_NAME') or 'personal_finance',
        'AI_PROVIDER': (os.getenv('AI_PROVIDER') or 'gemini').lower(),
        'OPENAI_API_KEY': os.getenv('OPENAI_API_KEY'),
        'GEMINI_API_KEY': os.getenv('GEMINI_API_KEY'),
        'STORAGE_FALLBACK': _flag(os.getenv('STORAGE_FALLBACK'), True),
        'APP_ENV': os.getenv('APP_ENV') or 'development',
        'HOST': os.getenv('HOST') or '0.0.0.0',
        'PORT': int(os.getenv('PORT') or 5000),
    }


def server_options(config):
    """Keyword arguments for socketio.run; the Werkzeug dev server is only allowed in development"""
    development = config.get('APP_ENV') == 'development'
    return {
        'host': config['HOST'],
        'port': config['PORT'],
        'debug': development,
        'allow_unsafe_werkzeug': development,
    }
