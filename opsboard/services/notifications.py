"""
Notification Hub

Per-user in-memory mailboxes, role broadcasts and the periodic alert scan.

Delivery over the push transport is at-most-once: a user who is not
connected misses the push but the notification stays in their mailbox.
Role broadcasts are push only and are not stored. Mailboxes live for the
lifetime of the process.
"""

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from opsboard import db
from opsboard.errors import InputError
from opsboard.services.insights import PRIORITIES
from opsboard.utils.dates import iso, parse_datetime

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ('alert', 'info', 'warning', 'success')
NOTIFICATION_EVENT = 'notification'

SCAN_LOOKBACK = timedelta(hours=24)
JOB_LOOKBACK = timedelta(hours=4)


def user_room(user_id):
    return f'user-{user_id}'


def role_room(role):
    return f'role-{role}'


@dataclass
class Notification:
    id: str
    type: str
    title: str
    message: str
    priority: str
    timestamp: datetime = field(default_factory=datetime.utcnow)
    user_id: Optional[str] = None
    link: Optional[str] = None
    read: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'priority': self.priority,
            'timestamp': iso(self.timestamp),
            'read': self.read,
        }
        if self.user_id is not None:
            data['userId'] = self.user_id
        if self.link is not None:
            data['link'] = self.link
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Notification':
        return cls(
            id=data['id'],
            type=data['type'],
            title=data['title'],
            message=data['message'],
            priority=data['priority'],
            timestamp=parse_datetime(data['timestamp'], 'timestamp'),
            user_id=data.get('userId'),
            link=data.get('link'),
            read=bool(data.get('read', False)),
        )


class SocketIOTransport:
    """Push transport over Flask-SocketIO rooms"""

    def __init__(self, socketio):
        self.socketio = socketio

    def emit(self, room, payload):
        self.socketio.emit(NOTIFICATION_EVENT, payload, to=room)


class NotificationHub:
    """Owns the userId -> notifications mapping.

    All mailbox access goes through ``send``, ``list_for`` and ``mark_read``.
    """

    def __init__(self, transport=None, mailbox_limit=None,
                 scrap_units_threshold=50, downtime_ratio_threshold=0.20,
                 cycle_overrun_ratio=1.30):
        self.transport = transport
        self.mailbox_limit = mailbox_limit
        self.scrap_units_threshold = scrap_units_threshold
        self.downtime_ratio_threshold = downtime_ratio_threshold
        self.cycle_overrun_ratio = cycle_overrun_ratio

        self._mailboxes: Dict[str, deque] = {}
        self._lock = threading.Lock()
        self._scan_lock = threading.Lock()

    # ---------------------------------------------
    # Mailbox
    # ---------------------------------------------

    def send(self, user_id, payload: Dict[str, Any]) -> Notification:
        """Store a notification for ``user_id`` and push it to their room"""
        user_id = str(user_id)
        notification = self._build(payload, user_id=user_id)

        with self._lock:
            mailbox = self._mailboxes.get(user_id)
            if mailbox is None:
                mailbox = deque(maxlen=self.mailbox_limit)
                self._mailboxes[user_id] = mailbox
            mailbox.append(notification)

        self._push(user_room(user_id), notification)
        return notification

    def list_for(self, user_id, unread_only=False) -> List[Notification]:
        """Snapshot of a user's notifications in insertion order"""
        with self._lock:
            mailbox = list(self._mailboxes.get(str(user_id), ()))
        if unread_only:
            return [n for n in mailbox if not n.read]
        return mailbox

    def mark_read(self, user_id, notification_id) -> bool:
        """Mark one notification read. Unknown ids are ignored."""
        with self._lock:
            for notification in self._mailboxes.get(str(user_id), ()):
                if notification.id == notification_id:
                    notification.read = True
                    return True
        return False

    def unread_count(self, user_id) -> int:
        return len(self.list_for(user_id, unread_only=True))

    # ---------------------------------------------
    # Broadcast
    # ---------------------------------------------

    def broadcast(self, role, payload: Dict[str, Any]) -> Notification:
        """Push to everyone currently in the role's room; nothing is stored"""
        notification = self._build(payload)
        self._push(role_room(role), notification)
        return notification

    def send_insights(self, user_id, insights) -> List[Notification]:
        """Forward high and critical insights as direct notifications"""
        sent = []
        for insight in insights:
            if insight.priority not in ('critical', 'high'):
                continue
            sent.append(self.send(user_id, {
                'type': 'alert' if insight.type == 'alert' else 'info',
                'title': insight.title,
                'message': insight.description,
                'priority': insight.priority,
            }))
        return sent

    # ---------------------------------------------
    # Periodic scan
    # ---------------------------------------------

    def run_periodic_scan(self, now=None) -> Optional[Dict[str, int]]:
        """
        Re-check the last 24h of defects and production samples and the
        last 4h of in-progress jobs. Returns alert counts, or None when the
        scan was skipped because another is running or the read failed.
        """
        if not self._scan_lock.acquire(blocking=False):
            logger.warning('Alert scan already running, skipping this run')
            return None
        try:
            return self._scan(now or datetime.utcnow())
        except SQLAlchemyError:
            logger.exception('Alert scan failed')
            db.session.rollback()
            return None
        finally:
            self._scan_lock.release()

    def _scan(self, now):
        from opsboard.models.oee import ProductionSample
        from opsboard.models.quality import DefectEvent
        from opsboard.models.production import JobCard

        summary = {'scrapAlerts': 0, 'downtimeAlerts': 0, 'cycleTimeAlerts': 0}
        since = now - SCAN_LOOKBACK

        scrap_by_line = {}
        for event in DefectEvent.query.filter(DefectEvent.date >= since).all():
            scrap_by_line[event.line] = scrap_by_line.get(event.line, 0) + event.quantity

        for line, quantity in scrap_by_line.items():
            if quantity > self.scrap_units_threshold:
                self.broadcast('supervisor', {
                    'type': 'warning',
                    'title': f'High Scrap Rate: {line}',
                    'message': f'{quantity} units scrapped in the last 24 hours',
                    'priority': 'high',
                    'link': f'/waste-quality/scrap-overview?line={line}',
                })
                summary['scrapAlerts'] += 1

        for sample in ProductionSample.query.filter(ProductionSample.date >= since).all():
            ratio = sample.downtime_ratio
            if ratio is not None and ratio > self.downtime_ratio_threshold:
                self.broadcast('supervisor', {
                    'type': 'alert',
                    'title': f'High Downtime: {sample.location}',
                    'message': f'{ratio * 100:.1f}% downtime detected',
                    'priority': 'critical',
                    'link': f'/operational-performance/oee?line={sample.line}'
                            + (f'&station={sample.station}' if sample.station else ''),
                })
                summary['downtimeAlerts'] += 1

        jobs = JobCard.query.filter(
            JobCard.status == 'in-progress',
            JobCard.start_time >= now - JOB_LOOKBACK
        ).all()
        for job in jobs:
            if not job.target_cycle_time or job.target_cycle_time <= 0:
                continue
            current = job.current_cycle_time
            if current > job.target_cycle_time * self.cycle_overrun_ratio:
                self.send(job.operator_id, {
                    'type': 'warning',
                    'title': 'Cycle Time Alert',
                    'message': f'Your current cycle time is '
                               f'{(current / job.target_cycle_time - 1) * 100:.1f}% above target',
                    'priority': 'medium',
                    'link': f'/job-cards/{job.id}',
                })
                summary['cycleTimeAlerts'] += 1

        logger.info('Alert scan complete: %s', summary)
        return summary

    # ---------------------------------------------
    # Internals
    # ---------------------------------------------

    def _build(self, payload, user_id=None):
        payload = payload or {}
        kind = payload.get('type')
        if kind not in NOTIFICATION_TYPES:
            raise InputError(f'Notification type must be one of: {", ".join(NOTIFICATION_TYPES)}')
        priority = payload.get('priority') or 'medium'
        if priority not in PRIORITIES:
            raise InputError(f'Priority must be one of: {", ".join(PRIORITIES)}')
        if not payload.get('title') or not payload.get('message'):
            raise InputError('Notification title and message are required')

        return Notification(
            id=uuid.uuid4().hex,
            type=kind,
            title=payload['title'],
            message=payload['message'],
            priority=priority,
            timestamp=datetime.utcnow(),
            user_id=user_id,
            link=payload.get('link'),
        )

    def _push(self, room, notification):
        if self.transport is None:
            return False
        try:
            self.transport.emit(room, notification.to_dict())
        except Exception:
            logger.warning('Push to %s failed for notification %s', room, notification.id,
                           exc_info=True)
            return False
        return True


def get_notification_hub() -> NotificationHub:
    return current_app.extensions['notification_hub']


def monitor_cycle(app, hub):
    """One monitor tick; scan failures are logged, not raised"""
    app.logger.info('Running alert monitoring...')
    with app.app_context():
        try:
            return hub.run_periodic_scan()
        except Exception:
            app.logger.exception('Alert monitoring scan failed')
            return None


def start_alert_monitor(app, socketio):
    """Run the periodic scan every ALERT_MONITOR_INTERVAL seconds in a background task"""
    interval = app.config['ALERT_MONITOR_INTERVAL']
    hub = app.extensions['notification_hub']

    def monitor():
        while True:
            socketio.sleep(interval)
            monitor_cycle(app, hub)

    app.logger.info('Alert monitor started (every %ss)', interval)
    return socketio.start_background_task(monitor)
