from __future__ import annotations

from datetime import datetime

import app
from errors import FieldError, NotFoundError, ValidationError

NOW = datetime(2024, 6, 15, 10, 30)


def _capture_errors(monkeypatch) -> list[str]:
    shown: list[str] = []
    monkeypatch.setattr(app.st, "error", shown.append)
    return shown


def test_lookup_failure_is_shown_on_the_page(monkeypatch):
    shown = _capture_errors(monkeypatch)

    def missing(now):
        raise NotFoundError("Subscription", 7)

    monkeypatch.setattr(app, "subscriptions_page", missing)
    app.render_page("Subscriptions", NOW)
    assert shown == ["Subscription 7 not found."]


def test_validation_failure_is_shown_per_field(monkeypatch):
    shown = _capture_errors(monkeypatch)

    def rejected(now):
        raise ValidationError([FieldError("credits_used", "Credits used cannot be negative.")])

    monkeypatch.setattr(app, "dashboard_page", rejected)
    app.render_page("Dashboard", NOW)
    assert shown == ["credits_used: Credits used cannot be negative."]


def test_page_receives_the_given_time(monkeypatch):
    seen = []
    monkeypatch.setattr(app, "renewals_page", seen.append)
    app.render_page("Renewals", NOW)
    assert seen == [NOW]
