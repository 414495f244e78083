"""Find threads still executing a loaded module.

A thread uses a module while any frame on its stack runs with that
module's globals. Suspended generators and coroutines are not on a stack
and are not counted.
"""

import sys


def running_in(namespace, frame):
    while frame is not None:
        if frame.f_globals is namespace:
            return True
        frame = frame.f_back
    return False


def threads_using(module):
    """Idents of the threads with a frame running *module*'s code."""
    namespace = module.__dict__
    return {ident for ident, frame in sys._current_frames().items()
            if running_in(namespace, frame)}
