from datetime import timedelta

import pytest

from accessory_admin.core import config
from accessory_admin.core.repositories import DEFAULT_SETTINGS, utcnow
from accessory_admin.core.reporting import MOCK_TOP_PRODUCTS


def log(client, user_id, action, **details):
    r = client.post("/api/fraud/activity", json={"userId": user_id, "action": action, "details": details})
    assert r.status_code == 200
    return r.json()


def test_activity_is_stored_with_defaults(client, fake_db):
    result = log(client, "u1", "login", ipAddress="10.0.0.1")
    assert result["alert"] is None
    entry = fake_db.doc("activityLogs", result["id"])
    assert entry["userId"] == "u1"
    assert entry["ipAddress"] == "10.0.0.1"
    assert entry["userAgent"] == "unknown"
    assert entry["details"] == {"ipAddress": "10.0.0.1"}


def test_fifth_failed_login_raises_brute_force_alert(client, fake_db):
    results = [log(client, "u1", "login_failed") for _ in range(5)]
    assert [r["alert"] is None for r in results] == [True, True, True, True, False]
    alert = results[-1]["alert"]
    assert alert["type"] == "brute_force_attempt"
    assert alert["severity"] == "high"
    assert alert["message"].endswith("Count: 5")

    (note,) = fake_db.data["notifications"].values()
    assert note["recipientId"] == "admins"
    assert note["ref"] == {"alertId": alert["id"], "userId": "u1"}


def test_old_failed_logins_do_not_count(client, fake_db):
    for i in range(4):
        fake_db.seed("activityLogs", f"old-{i}", userId="u1", action="login_failed",
                     timestamp=utcnow() - timedelta(minutes=30))
    assert log(client, "u1", "login_failed")["alert"] is None


def test_failed_logins_are_counted_per_user(client, fake_db):
    for i in range(4):
        log(client, f"user-{i}", "login_failed")
    assert log(client, "u1", "login_failed")["alert"] is None


@pytest.mark.parametrize("value,alerted", [(1_000_000, False), (1_500_000, True), (None, False)])
def test_order_value_rule(client, fake_db, value, alerted):
    result = log(client, "u1", "order_modification", orderValue=value)
    assert (result["alert"] is not None) == alerted
    if alerted:
        assert result["alert"]["type"] == "suspicious_order_value"
        assert result["alert"]["message"].endswith("Value: 1500000")


def test_third_ip_change_within_an_hour(client, fake_db):
    assert log(client, "u1", "ip_change")["alert"] is None
    assert log(client, "u1", "ip_change")["alert"] is None
    alert = log(client, "u1", "ip_change")["alert"]
    assert alert["type"] == "frequent_ip_change"
    assert alert["severity"] == "medium"


def test_unknown_actions_never_alert(client, fake_db):
    for _ in range(6):
        assert log(client, "u1", "profile_update")["alert"] is None
    assert "fraudAlerts" not in fake_db.data


def test_recent_alerts_newest_first(client, fake_db):
    now = utcnow()
    for i in range(7):
        fake_db.seed("fraudAlerts", f"a{i}", type="frequent_ip_change", userId="u1",
                     message="m", severity="medium", timestamp=now - timedelta(hours=i))
    body = client.get("/api/fraud/alerts").json()
    assert body["isMock"] is False
    assert [a["id"] for a in body["alerts"]] == ["a0", "a1", "a2", "a3", "a4"]


def test_recent_alerts_fall_back_to_mock(client, fake_db, monkeypatch):
    fake_db.failing.add("fraudAlerts")
    body = client.get("/api/fraud/alerts").json()
    assert body["isMock"] is True
    assert [a["userId"] for a in body["alerts"]] == ["XYZ123", "ABC456"]

    monkeypatch.setattr(config, "ANALYTICS_MOCK_FALLBACK", False)
    r = client.get("/api/fraud/alerts")
    assert r.status_code == 503
    assert r.json()["detail"] == "fraud alerts unavailable"


def test_user_activity_history(client, fake_db):
    now = utcnow()
    for i in range(12):
        fake_db.seed("activityLogs", f"l{i}", userId="u1", action="login", timestamp=now - timedelta(minutes=i))
    fake_db.seed("activityLogs", "other", userId="u2", action="login", timestamp=now)
    rows = client.get("/api/fraud/activity/u1").json()
    assert len(rows) == 10
    assert rows[0]["id"] == "l0"
    assert client.get("/api/fraud/activity/u1", params={"limit": 3}).json()[-1]["id"] == "l2"


def test_settings_default_when_unset(client, fake_db):
    assert client.get("/api/settings").json() == DEFAULT_SETTINGS


def test_settings_partial_update_merges(client, fake_db):
    r = client.put("/api/settings", json={"taxRate": 16, "featureToggles": {"liveChat": True}})
    assert r.status_code == 200
    r = client.put("/api/settings", json={"appName": "Auto Spares"})
    settings = r.json()
    assert settings["appName"] == "Auto Spares"
    assert settings["taxRate"] == 16
    assert settings["shippingCost"] == DEFAULT_SETTINGS["shippingCost"]
    assert settings["featureToggles"]["liveChat"] is True
    assert settings["featureToggles"]["reviews"] is True
    assert fake_db.doc("appConfig", "config")["featureToggles"] == {"liveChat": True}


@pytest.mark.parametrize("body", [{"taxRate": 120}, {"shippingCost": -1}, {"appName": ""}])
def test_settings_validation(client, fake_db, body):
    assert client.put("/api/settings", json=body).status_code == 422
    assert "appConfig" not in fake_db.data


def test_top_products_by_reviews(client, fake_db):
    fake_db.seed("products", "p1", name="Seat Covers", category="Interior", price=5000,
                 totalReviews=10, images=["https://cdn/p1.jpg"])
    fake_db.seed("products", "p2", name="Dash Cam", category="Electronics", price=12000, totalReviews=30)
    fake_db.seed("products", "p3", name="Unreviewed", category="Interior", price=100)
    body = client.get("/api/dashboard/top-products").json()
    assert body["isMock"] is False
    assert body["products"] == [
        {"id": "p2", "name": "Dash Cam", "image": "", "category": "Electronics", "sales": 30, "revenue": 360000.0},
        {"id": "p1", "name": "Seat Covers", "image": "https://cdn/p1.jpg", "category": "Interior",
         "sales": 10, "revenue": 50000.0},
    ]


def test_top_products_fallback(client, fake_db):
    fake_db.failing.add("products")
    body = client.get("/api/dashboard/top-products", params={"limit": 3}).json()
    assert body == {"products": MOCK_TOP_PRODUCTS[:3], "isMock": True}
