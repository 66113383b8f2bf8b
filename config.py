"""
Configuration module for Linear Kanban Metrics
Contains all configurable constants and the runtime configuration object
built once at process start and passed to the client, cache, and console.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional


# ============================================================================
# LINEAR API
# ============================================================================

LINEAR_API_BASE_URL: str = 'https://api.linear.app'
LINEAR_GRAPHQL_PATH: str = '/graphql'

# Linear rejects page sizes above 250
MAX_PAGE_SIZE: int = 250
MIN_PAGE_SIZE: int = 1
DEFAULT_PAGE_SIZE: int = MAX_PAGE_SIZE

# Hard ceiling on pages fetched in one run
MAX_PAGES: int = 100

# History entries requested per issue
HISTORY_LIMIT: int = 50


# ============================================================================
# WORKFLOW STATE TYPES
# ============================================================================

VALID_STATE_TYPES: List[str] = [
    'backlog', 'unstarted', 'started', 'completed', 'canceled'
]

# Origin state types counted as active work in flow efficiency
ACTIVE_STATE_TYPES: List[str] = ['started', 'unstarted']

CANCELED_STATE_TYPES: List[str] = ['canceled', 'cancelled']

DEFAULT_TEAM_NAME: str = 'Unknown Team'


# ============================================================================
# CACHE SETTINGS
# ============================================================================

DEFAULT_CACHE_DIR: str = 'tmp/.linear_cache'

# One directory per environment so test runs never read production data
ENVIRONMENT_CACHE_DIRS: Dict[str, str] = {
    'test': 'tmp/.linear_cache_test',
    'development': 'tmp/.linear_cache_development',
    'production': 'tmp/.linear_cache_production',
}

DEFAULT_ENVIRONMENT: str = 'development'


# ============================================================================
# REPORT FORMATTING
# ============================================================================

VALID_FORMATS: List[str] = ['table', 'json', 'csv']
DEFAULT_FORMAT: str = 'table'


# ============================================================================
# ENVIRONMENT VARIABLE KEYS
# ============================================================================

API_TOKEN_ENV_KEY: str = 'LINEAR_API_TOKEN'
TEAM_ID_ENV_KEY: str = 'LINEAR_TEAM_ID'
START_DATE_ENV_KEY: str = 'METRICS_START_DATE'
END_DATE_ENV_KEY: str = 'METRICS_END_DATE'
CACHE_DIR_ENV_KEY: str = 'LINEAR_CACHE_DIR'
ENVIRONMENT_ENV_KEY: str = 'APP_ENV'


class ConfigurationError(Exception):
    """Raised when required configuration is missing"""
    pass


@dataclass(frozen=True)
class MetricsConfig:
    """Runtime configuration, constructed once per invocation"""
    api_token: str
    environment: str = DEFAULT_ENVIRONMENT
    debug: bool = False
    quiet: bool = False
    cache_dir: Optional[str] = None
    team_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    request_timeout: Optional[float] = None

    def resolve_cache_dir(self) -> str:
        return resolve_cache_dir(self.cache_dir, self.environment)


def resolve_cache_dir(cache_dir: Optional[str], environment: Optional[str]) -> str:
    """Explicit override first, then the environment-scoped directory."""
    if cache_dir:
        return cache_dir
    return ENVIRONMENT_CACHE_DIRS.get(environment, DEFAULT_CACHE_DIR)


# ============================================================================
# ENVIRONMENT VARIABLE HELPERS
# ============================================================================

def _flag(value: Optional[str]) -> bool:
    """Treat any non-empty value other than an explicit false as set."""
    if value is None:
        return False
    return value.strip().lower() not in ('', '0', 'false', 'no', 'off')


def get_linear_token(environ: Optional[Mapping[str, str]] = None) -> str:
    """Get Linear API token from environment variables."""
    environ = os.environ if environ is None else environ
    return environ.get(API_TOKEN_ENV_KEY, '')


def cache_dir_from_env(environ: Optional[Mapping[str, str]] = None) -> str:
    """Cache directory for the current environment; needs no API token."""
    environ = os.environ if environ is None else environ
    return resolve_cache_dir(environ.get(CACHE_DIR_ENV_KEY), environ.get(ENVIRONMENT_ENV_KEY))


def load_config(environ: Optional[Mapping[str, str]] = None) -> MetricsConfig:
    """
    Build the runtime configuration from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        MetricsConfig instance

    Raises:
        ConfigurationError: If the API token is not set
    """
    environ = os.environ if environ is None else environ

    api_token = get_linear_token(environ)
    if not api_token:
        raise ConfigurationError(f'{API_TOKEN_ENV_KEY} environment variable not set')

    return MetricsConfig(
        api_token=api_token,
        environment=environ.get(ENVIRONMENT_ENV_KEY) or DEFAULT_ENVIRONMENT,
        debug=_flag(environ.get('DEBUG')),
        quiet=_flag(environ.get('QUIET')),
        cache_dir=environ.get(CACHE_DIR_ENV_KEY) or None,
        team_id=environ.get(TEAM_ID_ENV_KEY) or None,
        start_date=environ.get(START_DATE_ENV_KEY) or None,
        end_date=environ.get(END_DATE_ENV_KEY) or None,
    )


# ============================================================================
# CONFIGURATION VALIDATION
# ============================================================================

def validate_configuration(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Validate configuration and return status."""
    environ = os.environ if environ is None else environ
    environment = environ.get(ENVIRONMENT_ENV_KEY) or DEFAULT_ENVIRONMENT

    config_status = {
        'linear_api_token': bool(get_linear_token(environ)),
        'environment': environment,
        'issues': []
    }

    if not config_status['linear_api_token']:
        config_status['issues'].append(f'{API_TOKEN_ENV_KEY} environment variable not set')

    if environment not in ENVIRONMENT_CACHE_DIRS:
        config_status['issues'].append(
            f'Unknown {ENVIRONMENT_ENV_KEY} "{environment}" - using default cache directory'
        )

    return config_status


__all__ = [
    'LINEAR_API_BASE_URL',
    'LINEAR_GRAPHQL_PATH',
    'MAX_PAGE_SIZE',
    'MIN_PAGE_SIZE',
    'DEFAULT_PAGE_SIZE',
    'MAX_PAGES',
    'HISTORY_LIMIT',
    'VALID_STATE_TYPES',
    'ACTIVE_STATE_TYPES',
    'CANCELED_STATE_TYPES',
    'DEFAULT_TEAM_NAME',
    'DEFAULT_CACHE_DIR',
    'ENVIRONMENT_CACHE_DIRS',
    'DEFAULT_ENVIRONMENT',
    'VALID_FORMATS',
    'DEFAULT_FORMAT',
    'API_TOKEN_ENV_KEY',
    'TEAM_ID_ENV_KEY',
    'START_DATE_ENV_KEY',
    'END_DATE_ENV_KEY',
    'CACHE_DIR_ENV_KEY',
    'ENVIRONMENT_ENV_KEY',
    'ConfigurationError',
    'MetricsConfig',
    'resolve_cache_dir',
    'cache_dir_from_env',
    'get_linear_token',
    'load_config',
    'validate_configuration'
]
