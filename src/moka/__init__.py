from moka.exceptions import (
    MokaError,
    ServerError,
    BadRequestError,
    ServerStoppedError,
    CallTimeoutError,
    AlreadyStartedError,
    NoSuchServerError,
    CodeError,
    CannotGetObjectCodeError,
    NoAbstractCodeError,
    CannotGetAbstractCodeError,
    UnsupportedAbstractCodeVersionError,
    CannotCompileFormsError,
    CannotLoadCodeError,
    ProcessesUsingOldCodeError,
    CannotDeleteCodeError,
)
from moka.records import CallDescription, CallRecord, Raise, Return

__all__ = [
    'MokaError',
    'ServerError',
    'BadRequestError',
    'ServerStoppedError',
    'CallTimeoutError',
    'AlreadyStartedError',
    'NoSuchServerError',
    'CodeError',
    'CannotGetObjectCodeError',
    'NoAbstractCodeError',
    'CannotGetAbstractCodeError',
    'UnsupportedAbstractCodeVersionError',
    'CannotCompileFormsError',
    'CannotLoadCodeError',
    'ProcessesUsingOldCodeError',
    'CannotDeleteCodeError',
    'CallDescription',
    'CallRecord',
    'Return',
    'Raise',
]

def _configure_logging():
    from moka import config
    from moka.log import configure_logging

    settings = config.settings()
    if settings.verbose:
        configure_logging('DEBUG')
    elif settings.log_level:
        configure_logging(settings.log_level)

_configure_logging()
