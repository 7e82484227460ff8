"""Textual integration for midstream. Opt-in — requires textual.

widget_sink(app, fn) wraps a widget-updating callback as a sink, so settled
values (or errors) can be pushed straight into a Textual UI:

    ms = create_source(
        {"email": check_email},
        destination=widget_sink(app, lambda name, v: app.query_one(f"#{name}").update(v)),
        errors=widget_sink(app, show_error),
    )

Guard + NoMatches + thread-marshal are enforced here, not at callsites.
Pause state has a single owner (this module): id present <-> inside pause().
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from midstream.sink import CallbackSink

# Keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Drop sink writes while widgets are being replaced."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


class WidgetSink(CallbackSink):
    """CallbackSink that drops writes while its app is not safe.

    A dropped write is not remembered, so read() only reports values the
    widgets actually received.
    """

    __slots__ = ("_app",)

    def __init__(self, app, deliver) -> None:
        super().__init__(deliver)
        self._app = app

    async def write(self, name, value) -> None:
        if is_safe(self._app):
            await super().write(name, value)

    async def clear(self, name) -> None:
        if is_safe(self._app):
            await super().clear(name)


def widget_sink(app, effect_fn) -> WidgetSink:
    """A sink calling effect_fn(name, value) only while `app` is safe.

    Writes from a thread other than the one that built the sink go through
    app.call_from_thread. NoMatches from widget queries is swallowed; any
    other error propagates to the run that wrote it.
    """
    _main = threading.get_ident()

    def _deliver(name, value):
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, name, value)
        else:
            _safe(name, value)

    def _safe(name, value):
        try:
            effect_fn(name, value)
        except NoMatches:
            pass

    return WidgetSink(app, _deliver)
