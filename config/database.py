"""
Database configuration for HMS.

Supports:
- DATABASE_URL (postgres://... or sqlite:///path)
- Individual env vars: DB_HOST, DB_NAME, DB_USER, DB_PASSWORD, DB_PORT
- Fallback to a local SQLite file for development and tests
"""
import os
import re
from pathlib import Path

POSTGRES_URL_PATTERN = re.compile(
    r'postgres(?:ql)?://(?P<user>[^:]+):(?P<password>[^@]+)@(?P<host>[^:/]+)(?::(?P<port>\d+))?/(?P<name>.+)'
)

ISOLATION_LEVELS = {
    'read_committed': 1,
    'repeatable_read': 2,
    'serializable': 3,
}


def get_database_config(base_dir: Path) -> dict:
    """
    Returns the default database configuration based on environment.

    Occupancy writes lock the affected rows explicitly, so READ COMMITTED
    is enough on PostgreSQL. DB_ISOLATION_LEVEL can raise it.
    """
    database_url = os.getenv('DATABASE_URL', '')

    if database_url.startswith('postgres'):
        return _with_postgres_options(_parse_database_url(database_url))

    if database_url.startswith('sqlite:///'):
        return _sqlite_config(base_dir, database_url[len('sqlite:///'):] or base_dir / 'db.sqlite3')

    if os.getenv('DB_HOST'):
        return _with_postgres_options(_get_env_config())

    return _sqlite_config(base_dir, base_dir / 'db.sqlite3')


def _sqlite_config(base_dir: Path, name) -> dict:
    """
    SQLite with IMMEDIATE transactions: a ledger transaction takes the write
    lock when it begins, so concurrent writers queue (up to the busy timeout)
    and then re-read occupancy instead of failing on a lock upgrade.

    Tests use a file database; the shared-cache in-memory one reports lock
    conflicts immediately instead of waiting.
    """
    return {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': name,
        'OPTIONS': {
            'transaction_mode': 'IMMEDIATE',
            'timeout': int(os.getenv('SQLITE_BUSY_TIMEOUT', '20')),
        },
        'TEST': {
            'NAME': str(base_dir / 'test_db.sqlite3'),
        },
    }


def _parse_database_url(url: str) -> dict:
    """Parse a PostgreSQL DATABASE_URL into Django config."""
    match = POSTGRES_URL_PATTERN.match(url)
    if not match:
        raise ValueError(f"Invalid DATABASE_URL format: {url}")

    return {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': match.group('name'),
        'USER': match.group('user'),
        'PASSWORD': match.group('password'),
        'HOST': match.group('host'),
        'PORT': match.group('port') or '5432',
    }


def _get_env_config() -> dict:
    """Build config from individual environment variables."""
    config = {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('DB_NAME', 'hms'),
        'USER': os.getenv('DB_USER', 'postgres'),
        'HOST': os.getenv('DB_HOST', 'localhost'),
        'PORT': os.getenv('DB_PORT', '5432'),
    }

    password = os.getenv('DB_PASSWORD')
    if password:
        config['PASSWORD'] = password

    return config


def _with_postgres_options(config: dict) -> dict:
    options = {}

    level = os.getenv('DB_ISOLATION_LEVEL', '').lower()
    if level:
        if level not in ISOLATION_LEVELS:
            raise ValueError(f"Unsupported DB_ISOLATION_LEVEL: {level}")
        options['isolation_level'] = ISOLATION_LEVELS[level]

    # Lambda: RDS Proxy handles pooling
    if os.getenv('AWS_LAMBDA_FUNCTION_NAME'):
        config['CONN_MAX_AGE'] = 0
        options['connect_timeout'] = 5
        options['options'] = '-c statement_timeout=30000'
    else:
        config['CONN_MAX_AGE'] = int(os.getenv('DB_CONN_MAX_AGE', '60'))

    if options:
        config['OPTIONS'] = options
    return config
