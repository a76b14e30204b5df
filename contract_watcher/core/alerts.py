"""
Alert Delivery

Operator notifications for watcher-level unrecoverable failures.
Delivery is fire-and-forget; a failing sink never affects ingestion.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import sentry_sdk
from loguru import logger

from contract_watcher.core.config import Settings


class AlertType(str, enum.Enum):
    WATCHER_CRASHED = "watcher_crashed"
    STORE_INCONSISTENCY = "store_inconsistency"
    CONSTRUCTION_FAILED = "construction_failed"


class AlertPriority(str, enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


@dataclass
class Alert:
    """Alert notification"""
    type: AlertType
    message: str
    chain: Optional[str] = None
    priority: AlertPriority = AlertPriority.HIGH
    details: Dict[str, str] = field(default_factory=dict)


class AlertClient(ABC):
    """Base alert sink"""

    @abstractmethod
    def send(self, alert: Alert):
        """Deliver `alert`; must not raise"""


class DummyAlertClient(AlertClient):
    """Logs alerts only (used when alerting is disabled)"""

    def send(self, alert: Alert):
        logger.warning(
            f"ALERT [{alert.priority.value}] {alert.type.value} "
            f"chain={alert.chain}: {alert.message}"
        )


class SentryAlertClient(AlertClient):
    """Deliver alerts as Sentry messages tagged with chain and alert type"""

    _LEVELS = {
        AlertPriority.CRITICAL: "fatal",
        AlertPriority.HIGH: "error",
        AlertPriority.MEDIUM: "warning",
    }

    def __init__(self, dsn: str, environment: str):
        sentry_sdk.init(dsn=dsn, environment=environment)
        logger.info("Sentry alerting initialized")

    def send(self, alert: Alert):
        try:
            with sentry_sdk.new_scope() as scope:
                scope.set_tag("alert_type", alert.type.value)
                if alert.chain:
                    scope.set_tag("chain", alert.chain)
                for key, value in alert.details.items():
                    scope.set_extra(key, value)
                sentry_sdk.capture_message(alert.message, level=self._LEVELS[alert.priority])
        except Exception as e:
            logger.error(f"Failed to deliver alert {alert.type.value}: {e}")


def new_alert_client(settings: Settings) -> AlertClient:
    """Sentry client when alerting is enabled, log-only client otherwise"""
    if not settings.ALERT_ENABLED or not settings.SENTRY_DSN:
        return DummyAlertClient()
    return SentryAlertClient(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT)
