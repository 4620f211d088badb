from callhub.models.agent import Agent
from callhub.models.call_record import CallRecord
from callhub.models.webhook_log import WebhookLog

__all__ = ["Agent", "CallRecord", "WebhookLog"]
