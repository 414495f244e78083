import os
import pkgutil
import tomllib
import functools

from moka.exceptions import MokaError

DEFAULTS_FILE = "defaults.toml"

def env_truthy(key, default=False):
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")

def env_float(key, default = 0.0):
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise MokaError(f"{key} must be a number, got {value!r}") from None

def load_defaults(filename = DEFAULTS_FILE):
    data = pkgutil.get_data("moka", filename)
    assert data is not None
    return tomllib.loads(data.decode("utf-8"))

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

def log_level(value):
    value = value.strip().upper()
    if not value:
        return None
    if value not in LOG_LEVELS:
        raise MokaError(f"unknown log level {value!r}")
    return value

class Settings:
    def __init__(self, call_timeout, log_level, verbose):
        self.call_timeout = call_timeout
        self.log_level = log_level
        self.verbose = verbose

    def __repr__(self):
        return (f"Settings(call_timeout={self.call_timeout!r}, "
                f"log_level={self.log_level!r}, verbose={self.verbose!r})")

def from_config(config):
    server = config.get('server', {})
    logging = config.get('logging', {})

    call_timeout = env_float('MOKA_CALL_TIMEOUT', float(server.get('call_timeout', 5.0)))
    if call_timeout <= 0:
        raise MokaError(f"call timeout must be positive, got {call_timeout}")

    return Settings(
        call_timeout = call_timeout,
        log_level = log_level(os.getenv('MOKA_LOG_LEVEL', logging.get('level', ''))),
        verbose = env_truthy('MOKA_VERBOSE', logging.get('verbose', False)))

@functools.cache
def settings():
    """Settings from the packaged defaults and MOKA_* environment variables."""
    return from_config(load_defaults())

def reload():
    settings.cache_clear()
    return settings()
