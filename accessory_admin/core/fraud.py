# accessory_admin/core/fraud.py
"""
User activity log and the anomaly rules that raise fraud alerts.

Every logged action is checked right away against three rules:
repeated failed logins, an order modified to an unusually high value and
frequent IP changes. A match is stored in ``fraudAlerts`` and pushed to
the admin notification feed.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from .reporting import fallback_to_mock
from .repositories import ActivityLogRepository, FraudAlertRepository, NotificationRepository, utcnow

logger = logging.getLogger(__name__)

ADMIN_FEED = "admins"

FAILED_LOGIN_LIMIT = 5
FAILED_LOGIN_WINDOW = timedelta(minutes=10)
ORDER_VALUE_LIMIT = 1_000_000
IP_CHANGE_LIMIT = 3
IP_CHANGE_WINDOW = timedelta(hours=1)


async def _raise_alert(db, alert: Dict[str, Any]) -> Dict[str, Any]:
    alert_id = await FraudAlertRepository(db).create(alert)
    logger.warning("Fraud alert raised: %s for user %s", alert["type"], alert["userId"])
    await NotificationRepository(db).push(
        ADMIN_FEED, "fraud_alert", "Fraud alert", alert["message"], {"alertId": alert_id, "userId": alert["userId"]}
    )
    return {**alert, "id": alert_id}


async def check_for_anomalies(db, user_id: str, action: str, details: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the alert raised for this action, or None."""
    activity = ActivityLogRepository(db)
    now = utcnow()

    if action == "login_failed":
        count = len(await activity.recent(user_id, action, now - FAILED_LOGIN_WINDOW))
        if count < FAILED_LOGIN_LIMIT:
            return None
        alert = {
            "type": "brute_force_attempt",
            "message": f"Multiple failed login attempts detected for user {user_id}. Count: {count}",
            "severity": "high",
        }
    elif action == "order_modification":
        value = float(details.get("orderValue") or 0)
        if value <= ORDER_VALUE_LIMIT:
            return None
        alert = {
            "type": "suspicious_order_value",
            "message": f"Unusually high order value modification detected for user {user_id}. Value: {value:.0f}",
            "severity": "medium",
        }
    elif action == "ip_change":
        count = len(await activity.recent(user_id, action, now - IP_CHANGE_WINDOW))
        if count < IP_CHANGE_LIMIT:
            return None
        alert = {
            "type": "frequent_ip_change",
            "message": f"Frequent IP changes detected for user {user_id}. Count: {count} in last hour",
            "severity": "medium",
        }
    else:
        return None

    return await _raise_alert(db, {**alert, "userId": user_id, "timestamp": now})


async def log_user_activity(db, user_id: str, action: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Store one activity entry, then run the anomaly rules on it.

    Returns ``{"id": ..., "alert": ...}``; ``alert`` is None when no rule fired.
    """
    details = dict(details or {})
    log_id = await ActivityLogRepository(db).log(user_id, action, details)
    logger.info("Logged activity %s for user %s", action, user_id)
    return {"id": log_id, "alert": await check_for_anomalies(db, user_id, action, details)}


MOCK_FRAUD_ALERTS = [
    {
        "id": "1",
        "type": "brute_force_attempt",
        "message": "Multiple failed login attempts detected for user XYZ123",
        "severity": "high",
        "userId": "XYZ123",
    },
    {
        "id": "2",
        "type": "suspicious_order_value",
        "message": "Unusually high order value modification detected. Value: 2500000",
        "severity": "medium",
        "userId": "ABC456",
    },
]


async def get_recent_fraud_alerts(db, limit: int = 5) -> Dict[str, Any]:
    try:
        alerts = await FraudAlertRepository(db).latest(limit)
    except Exception as e:
        now = utcnow()
        mock = [
            {**a, "timestamp": now - timedelta(days=i)} for i, a in enumerate(MOCK_FRAUD_ALERTS)
        ]
        return fallback_to_mock("fraud alerts", e, {"alerts": mock, "isMock": True})
    return {"alerts": alerts, "isMock": False}


async def get_user_activity(db, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
    return await ActivityLogRepository(db).for_user(user_id, limit)
