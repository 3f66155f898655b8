"""
Instrumentation decorators for injected primitives (console methods, fetch).

Each wrapper comes with a restore function; restoring is idempotent and puts
back the first callable underneath that is still in service, so wrappers
stacked by several monitors unwind in any order.
"""
import functools
import time

MARKER = "__instrumented__"


def instrument(fn, before=None, after=None, failed=None):
    """
    Wrap `fn`. Hooks get the call arguments; `after` also gets the result and
    the elapsed seconds, `failed` the exception and elapsed seconds (the
    exception is re-raised). Returns (wrapped, restore) where restore hands
    back the original.
    """
    state = {"active": True, "original": fn}

    @functools.wraps(fn)
    def wrapped(*args, **kwargs):
        if not state["active"]:
            return fn(*args, **kwargs)
        if before is not None:
            before(args, kwargs)
        started = time.monotonic()
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            if failed is not None:
                failed(args, kwargs, exc, time.monotonic() - started)
            raise
        if after is not None:
            after(args, kwargs, result, time.monotonic() - started)
        return result

    # functools.wraps copied the inner wrapper's marker; ours replaces it
    setattr(wrapped, MARKER, state)

    def restore():
        state["active"] = False
        return fn

    return wrapped, restore


def _first_live(fn, own_attr: bool):
    """Follow restored wrappers down to the first callable still in service."""
    state = getattr(fn, MARKER, None)
    while isinstance(state, dict) and not state["active"]:
        fn = state["original"]
        own_attr = state.get("own_attr", own_attr)
        state = getattr(fn, MARKER, None)
    return fn, own_attr


def wrap_attribute(owner, name: str, **hooks):
    """
    Replace `owner.<name>` with an instrumented version. Returns a restore
    function; it only touches the attribute while our wrapper is the one
    installed. A wrapper restored underneath another is skipped when the
    outer one is restored later.
    """
    original = getattr(owner, name)
    own_attr = name in getattr(owner, "__dict__", {})
    wrapped, disable = instrument(original, **hooks)
    getattr(wrapped, MARKER)["own_attr"] = own_attr
    setattr(owner, name, wrapped)
    done = {"restored": False}

    def restore():
        if done["restored"]:
            return
        done["restored"] = True
        disable()
        if getattr(owner, name, None) is not wrapped:
            return
        target, target_own = _first_live(original, own_attr)
        if target_own:
            setattr(owner, name, target)
        else:
            # Instance attribute over a method: drop it to expose the method again
            delattr(owner, name)

    return restore
