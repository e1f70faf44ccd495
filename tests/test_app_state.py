"""Application state — one cache, hub and notifier per app."""

from taskhub.config import Settings
from taskhub.main import create_app, init_state


def test_init_state_is_idempotent():
    app = create_app(Settings(environment="development"))

    hub = init_state(app)
    cache = app.state.cache
    notifier = app.state.notifier

    assert init_state(app) is hub
    assert app.state.hub is hub
    assert app.state.cache is cache
    assert app.state.notifier is notifier
    assert notifier.hub is hub


def test_separate_apps_get_separate_state():
    a = create_app(Settings(environment="development"))
    b = create_app(Settings(environment="development"))

    assert init_state(a) is not init_state(b)
    assert a.state.cache is not b.state.cache
