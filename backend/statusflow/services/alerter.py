"""Alerter service - evaluates alert rules and records the audit trail."""
import logging
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError

from ..exceptions import InvalidAlertTransitionError
from ..models import (
    AlertHistory,
    AlertRule,
    AlertStatus,
    AlertType,
    CheckResult,
    Monitor,
)
from ..schemas.alert import AlertChannels, AlertConditions, AlertMetadata
from ..store import Store
from .notifier import NotificationDispatcher, notification_dispatcher

logger = logging.getLogger(__name__)

DEFAULT_CONSECUTIVE_FAILURES = 3
DEFAULT_LATENCY_THRESHOLD_MS = 3000

SYSTEM_ACTOR = "system"


def _conditions(rule: AlertRule) -> AlertConditions:
    return AlertConditions.model_validate(rule.conditions or {})


def failure_threshold(rule: AlertRule) -> int:
    """Downtime window size. Zero, negative or missing values use the default."""
    value = _conditions(rule).consecutive_failures
    return value if value and value > 0 else DEFAULT_CONSECUTIVE_FAILURES


def latency_threshold(rule: AlertRule) -> int:
    value = _conditions(rule).latency_threshold
    return value if value and value > 0 else DEFAULT_LATENCY_THRESHOLD_MS


class AlertEvaluator:
    """Decides whether a rule fires for a check result.

    Stateless: history only enters through `consecutive_failures`.
    Raises pydantic's ValidationError when the stored conditions can't be parsed.
    """

    def evaluate(self, rule: AlertRule, check_result: CheckResult, consecutive_failures: int) -> bool:
        if rule.type == AlertType.DOWNTIME.value:
            return not check_result.is_up and consecutive_failures >= failure_threshold(rule)

        if rule.type == AlertType.LATENCY.value:
            return check_result.is_up and check_result.response_time_ms > latency_threshold(rule)

        if rule.type == AlertType.STATUS_CODE.value:
            return check_result.status_code in _conditions(rule).status_codes

        # ssl_expiry rules are modeled but certificate inspection is not implemented
        return False

    def build_message(
        self,
        rule: AlertRule,
        monitor: Monitor,
        check_result: CheckResult,
        consecutive_failures: int,
    ) -> str:
        if rule.type == AlertType.DOWNTIME.value:
            return f"{monitor.name} is DOWN. Failed {consecutive_failures} consecutive checks."
        if rule.type == AlertType.LATENCY.value:
            return f"{monitor.name} is experiencing high latency: {check_result.response_time_ms}ms"
        if rule.type == AlertType.STATUS_CODE.value:
            return f"{monitor.name} returned status code {check_result.status_code}"
        return f"Alert triggered for {monitor.name}"

    def build_title(self, rule: AlertRule, monitor: Monitor) -> str:
        return f"[{(rule.severity or 'high').upper()}] {rule.name}: {monitor.name}"


def acknowledge(history: AlertHistory, actor: str, now: Optional[datetime] = None) -> AlertHistory:
    """TRIGGERED -> ACKNOWLEDGED."""
    if history.status != AlertStatus.TRIGGERED.value:
        raise InvalidAlertTransitionError(history.status, AlertStatus.ACKNOWLEDGED.value)
    history.status = AlertStatus.ACKNOWLEDGED.value
    history.acknowledged_at = now or datetime.utcnow()
    history.acknowledged_by = actor
    return history


def resolve(history: AlertHistory, actor: str, now: Optional[datetime] = None) -> AlertHistory:
    """TRIGGERED or ACKNOWLEDGED -> RESOLVED.

    Resolving an unacknowledged alert backfills the acknowledgement with the
    resolver and resolve time.
    """
    if history.status == AlertStatus.RESOLVED.value:
        raise InvalidAlertTransitionError(history.status, AlertStatus.RESOLVED.value)
    now = now or datetime.utcnow()
    if history.status == AlertStatus.TRIGGERED.value:
        history.acknowledged_at = now
        history.acknowledged_by = actor
    history.status = AlertStatus.RESOLVED.value
    history.resolved_at = now
    return history


class AlerterService:
    """Runs every applicable rule against a persisted check result.

    Incident policy: one open (triggered or acknowledged) alert per rule and
    monitor. Further firings while it is open are suppressed; it is resolved
    by the system on the next up result for which the rule no longer fires.
    """

    def __init__(
        self,
        evaluator: Optional[AlertEvaluator] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.evaluator = evaluator or AlertEvaluator()
        self.dispatcher = dispatcher or notification_dispatcher
        self.logger = logger or logging.getLogger(__name__)

    async def check_and_send_alerts(
        self,
        store: Store,
        monitor: Monitor,
        check_result: CheckResult,
        consecutive_failures: Optional[int] = None,
    ) -> List[AlertHistory]:
        """Evaluate rules, dispatch notifications and append audit records.

        When `consecutive_failures` is None it is computed fresh for each
        downtime rule, using that rule's threshold as the window size.
        Returns the alert history entries created.
        """
        rules = await store.find_enabled_rules(monitor.id, monitor.user_id)
        created: List[AlertHistory] = []

        for rule in rules:
            try:
                failures = consecutive_failures
                if failures is None:
                    if rule.type == AlertType.DOWNTIME.value:
                        failures = await store.count_recent_failures(monitor.id, failure_threshold(rule))
                    else:
                        failures = 0

                fired = self.evaluator.evaluate(rule, check_result, failures)
            except ValidationError as e:
                self.logger.error(f"Skipping rule {rule.name} ({rule.id}): invalid conditions: {e}")
                continue

            open_incident = await store.find_open_incident(rule.id, monitor.id)

            if not fired:
                if open_incident is not None and check_result.is_up:
                    resolve(open_incident, SYSTEM_ACTOR)
                    self.logger.info(f"Alert {open_incident.id} for {monitor.name} resolved: {rule.name} recovered")
                continue

            if open_incident is not None:
                self.logger.debug(
                    f"Alert suppressed for {monitor.name}: rule {rule.name} already has open alert {open_incident.id}"
                )
                continue

            history = await self._trigger(store, rule, monitor, check_result, failures)
            created.append(history)

        return created

    async def _trigger(
        self,
        store: Store,
        rule: AlertRule,
        monitor: Monitor,
        check_result: CheckResult,
        consecutive_failures: int,
    ) -> AlertHistory:
        message = self.evaluator.build_message(rule, monitor, check_result, consecutive_failures)
        title = self.evaluator.build_title(rule, monitor)
        self.logger.warning(f"Alert triggered: {message}")

        email_channels = []
        try:
            wants_email = AlertChannels.model_validate(rule.channels or {}).email
        except ValidationError:
            wants_email = False
        if wants_email:
            email_channels = await store.find_email_channels(monitor.user_id)

        channels_notified = await self.dispatcher.dispatch(
            rule,
            monitor,
            check_result,
            message,
            email_channels=email_channels,
            title=title,
        )

        metadata = AlertMetadata(
            response_time=check_result.response_time_ms,
            status_code=check_result.status_code,
            error_message=check_result.error_message,
            consecutive_failures=consecutive_failures,
        )
        history = AlertHistory(
            alert_rule_id=rule.id,
            monitor_id=monitor.id,
            status=AlertStatus.TRIGGERED.value,
            title=title,
            message=message,
            alert_metadata=metadata.model_dump(by_alias=True, exclude_none=True),
            channels_notified=channels_notified,
        )
        return await store.save_alert_history(history)

    async def acknowledge_alert(self, store: Store, history_id: int, actor: str) -> Optional[AlertHistory]:
        history = await store.find_alert_history(history_id, actor)
        if history is None:
            return None
        return acknowledge(history, actor)

    async def resolve_alert(self, store: Store, history_id: int, actor: str) -> Optional[AlertHistory]:
        history = await store.find_alert_history(history_id, actor)
        if history is None:
            return None
        return resolve(history, actor)


# Global instance
alerter_service = AlerterService()
