"""
Operator alerts: creation, querying, acknowledgement and change listeners
"""

import inspect
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union
from core.exceptions import AlertNotFoundError
from models.base import AlertSeverity, AlertCategory
from schemas.entities import Alert
from storage.base import StateStore, EntityKind

logger = logging.getLogger(__name__)

AlertListener = Callable[[Alert], Any]

# Loose severity spellings accepted from callers
SEVERITY_ALIASES = {
    "low": AlertSeverity.INFO,
    "medium": AlertSeverity.WARNING,
    "high": AlertSeverity.ERROR,
    "critical": AlertSeverity.DESTRUCTIVE,
}

CATEGORY_ALIASES = {
    "job_execution": AlertCategory.JOB,
    "batch_execution": AlertCategory.JOB,
}

DEFAULT_TITLES = {
    AlertSeverity.INFO: "Information",
    AlertSeverity.SUCCESS: "Success",
    AlertSeverity.WARNING: "Warning",
    AlertSeverity.ERROR: "Error",
    AlertSeverity.DESTRUCTIVE: "Critical Error",
}

LOG_LEVELS = {
    AlertSeverity.INFO: logging.INFO,
    AlertSeverity.SUCCESS: logging.INFO,
    AlertSeverity.WARNING: logging.WARNING,
    AlertSeverity.ERROR: logging.ERROR,
    AlertSeverity.DESTRUCTIVE: logging.CRITICAL,
}


def resolve_severity(value: Union[AlertSeverity, str, None]) -> AlertSeverity:
    """Map a severity enum or loose string onto AlertSeverity (unknown -> info)."""
    if isinstance(value, AlertSeverity):
        return value
    key = (value or "").strip().lower()
    try:
        return AlertSeverity(key)
    except ValueError:
        return SEVERITY_ALIASES.get(key, AlertSeverity.INFO)


def resolve_category(value: Union[AlertCategory, str, None]) -> AlertCategory:
    """Map a category enum or loose string onto AlertCategory (unknown -> system)."""
    if isinstance(value, AlertCategory):
        return value
    key = (value or "").strip().lower()
    try:
        return AlertCategory(key)
    except ValueError:
        return CATEGORY_ALIASES.get(key, AlertCategory.SYSTEM)


class AlertService:
    """
    Durable, queryable alert surface.

    Alerts are persisted in the state store; subscribers are notified of each
    new or acknowledged alert. Listener failures are logged and never
    propagate to the component that raised the alert.
    """

    def __init__(self, store: StateStore):
        self.store = store
        self._listeners: List[AlertListener] = []

    async def create_alert(
        self,
        severity: Union[AlertSeverity, str],
        message: str,
        source: str = "system",
        category: Union[AlertCategory, str] = AlertCategory.SYSTEM,
        title: Optional[str] = None,
        details: Union[str, Dict[str, Any], None] = None,
        related_entity_id: Optional[str] = None,
    ) -> Alert:
        severity = resolve_severity(severity)
        category = resolve_category(category)

        if isinstance(details, dict):
            details = json.dumps(details, default=str)

        alert = Alert(
            id=str(uuid.uuid4()),
            title=title or DEFAULT_TITLES[severity],
            message=message,
            severity=severity,
            category=category,
            source=source or "system",
            timestamp=datetime.utcnow(),
            details=details,
            related_entity_id=related_entity_id,
        )
        await self.store.put(EntityKind.ALERTS, alert)

        logger.log(LOG_LEVELS[severity], f"[Alert:{category.value}] {alert.title}: {message}")
        await self._notify(alert)
        return alert

    async def info(self, message: str, source: str, category: Union[AlertCategory, str], **kwargs) -> Alert:
        return await self.create_alert(AlertSeverity.INFO, message, source, category, **kwargs)

    async def success(self, message: str, source: str, category: Union[AlertCategory, str], **kwargs) -> Alert:
        return await self.create_alert(AlertSeverity.SUCCESS, message, source, category, **kwargs)

    async def warning(self, message: str, source: str, category: Union[AlertCategory, str], **kwargs) -> Alert:
        return await self.create_alert(AlertSeverity.WARNING, message, source, category, **kwargs)

    async def error(self, message: str, source: str, category: Union[AlertCategory, str], **kwargs) -> Alert:
        return await self.create_alert(AlertSeverity.ERROR, message, source, category, **kwargs)

    async def list_alerts(
        self,
        category: Union[AlertCategory, str, None] = None,
        severity: Union[AlertSeverity, str, None] = None,
        acknowledged: Optional[bool] = None,
    ) -> List[Alert]:
        """Alerts newest first, optionally filtered."""
        alerts = await self.store.list(EntityKind.ALERTS)
        if category is not None:
            category = resolve_category(category)
            alerts = [a for a in alerts if a.category == category]
        if severity is not None:
            severity = resolve_severity(severity)
            alerts = [a for a in alerts if a.severity == severity]
        if acknowledged is not None:
            alerts = [a for a in alerts if a.acknowledged == acknowledged]

        # stable: alerts created within the same tick keep reverse insertion order
        return sorted(reversed(alerts), key=lambda a: a.timestamp, reverse=True)

    async def get_alert(self, alert_id: str) -> Alert:
        alert = await self.store.get(EntityKind.ALERTS, alert_id)
        if alert is None:
            raise AlertNotFoundError(f"Alert not found: {alert_id}", context={"alert_id": alert_id})
        return alert

    async def acknowledge(self, alert_id: str) -> Alert:
        alert = await self.get_alert(alert_id)
        if not alert.acknowledged:
            alert.acknowledged = True
            await self.store.put(EntityKind.ALERTS, alert)
            await self._notify(alert)
        return alert

    async def delete_alert(self, alert_id: str) -> bool:
        deleted = await self.store.delete(EntityKind.ALERTS, alert_id)
        if not deleted:
            logger.info(f"Alert {alert_id} not found, nothing to delete")
        return deleted

    async def clear(self) -> int:
        alerts = await self.store.list(EntityKind.ALERTS)
        for alert in alerts:
            await self.store.delete(EntityKind.ALERTS, alert.id)
        logger.info(f"Cleared {len(alerts)} alerts")
        return len(alerts)

    def subscribe(self, listener: AlertListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self, alert: Alert) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(alert)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Alert listener {getattr(listener, '__name__', listener)} failed: {str(e)}")
