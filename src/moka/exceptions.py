"""
Moka exception hierarchy.

All moka-specific exceptions inherit from MokaError. Exceptions raised by
substitute behaviours are never wrapped: callers see them as they were
raised.
"""

class MokaError(Exception):
    """Base exception for all moka errors."""
    pass


# ── services ─────────────────────────────────────────────────

class ServerError(MokaError):
    """Error talking to a history or call handler server."""
    pass


class BadRequestError(ServerError):
    """The server does not understand the request it was sent."""

    def __init__(self, request):
        super().__init__(f"bad call: {request!r}")
        self.request = request


class ServerStoppedError(ServerError):
    """The server has been stopped."""

    def __init__(self, name):
        super().__init__(f"server {name!r} is not running")
        self.name = name


class CallTimeoutError(ServerError):
    """No reply arrived before the call timeout."""

    def __init__(self, name, timeout):
        super().__init__(f"no reply from {name!r} after {timeout}s")
        self.name = name
        self.timeout = timeout


class AlreadyStartedError(ServerError):
    """A live server is already registered under that name."""

    def __init__(self, name):
        super().__init__(f"already started: {name!r}")
        self.name = name


class NoSuchServerError(ServerError):
    """No live server is registered under that name."""

    def __init__(self, name):
        super().__init__(f"no server registered as {name!r}")
        self.name = name


# ── code manipulation ────────────────────────────────────────

class CodeError(MokaError):
    """Error reading, compiling or swapping module code."""

    def __init__(self, module, message=None):
        super().__init__(message or module)
        self.module = module


class CannotGetObjectCodeError(CodeError):
    """The module cannot be found on the search path, or has no code."""
    pass


class NoAbstractCodeError(CodeError):
    """The module has code but no source to rebuild a syntax tree from."""
    pass


class CannotGetAbstractCodeError(CodeError):
    """The module source exists but could not be read or parsed."""

    def __init__(self, module, reason):
        super().__init__(module, f"{module}: {reason}")
        self.reason = reason


class UnsupportedAbstractCodeVersionError(CodeError):
    """The syntax tree was produced for a different interpreter version."""

    def __init__(self, module, version):
        super().__init__(module, f"{module}: unsupported abstract code version {version!r}")
        self.version = version


class CannotCompileFormsError(CodeError):
    """Compiling a rewritten module failed."""

    def __init__(self, module, diagnostics):
        super().__init__(module, f"{module}: " + "; ".join(map(str, diagnostics)))
        self.diagnostics = list(diagnostics)


class CannotLoadCodeError(CodeError):
    """Loading compiled code into a fresh module failed."""

    def __init__(self, module, reason):
        super().__init__(module, f"{module}: {reason!r}")
        self.reason = reason


class ProcessesUsingOldCodeError(CodeError):
    """Some thread is still executing the currently loaded module."""

    def __init__(self, module, threads):
        super().__init__(module, f"{module} still in use by threads {sorted(threads)}")
        self.threads = frozenset(threads)


class CannotDeleteCodeError(CodeError):
    """The loaded module changed under us after it was found unused.

    This is either a bug or a concurrent load outside moka; the module is
    left as it is and nothing should try to recover from it.
    """
    pass
