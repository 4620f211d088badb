from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy.orm import Session

from callhub.core.timeutils import utc_now
from callhub.models import Agent, CallRecord, WebhookLog


class StorageError(Exception):
    pass


class CallStorage(Protocol):
    async def get_all_agents(self) -> List[Agent]: ...

    async def get_all_calls(self) -> List[CallRecord]: ...

    async def create_call(self, fields: Dict[str, Any]) -> CallRecord: ...

    async def update_call(self, call_id: int, fields: Dict[str, Any]) -> CallRecord: ...

    async def delete_call(self, call_id: int) -> bool: ...

    async def create_webhook_log(self, entry: Dict[str, Any]) -> WebhookLog: ...

    async def update_webhook_log(self, log_id: int, fields: Dict[str, Any]) -> WebhookLog: ...

    async def list_webhook_logs(self, limit: int = 20) -> List[WebhookLog]: ...


class SqlAlchemyStorage:
    """CallStorage backed by a SQLAlchemy session owned by the caller."""

    def __init__(self, db: Session):
        self.db = db

    async def get_all_agents(self) -> List[Agent]:
        return self.db.query(Agent).order_by(Agent.id).all()

    async def get_all_calls(self) -> List[CallRecord]:
        return self.db.query(CallRecord).order_by(CallRecord.id).all()

    async def create_call(self, fields: Dict[str, Any]) -> CallRecord:
        record = CallRecord(**fields)
        self._commit(record)
        return record

    async def update_call(self, call_id: int, fields: Dict[str, Any]) -> CallRecord:
        record = self.db.get(CallRecord, call_id)
        if record is None:
            raise StorageError(f"Call {call_id} not found")
        for key, value in fields.items():
            setattr(record, key, value)
        record.updated_at = utc_now()
        self._commit(record)
        return record

    async def delete_call(self, call_id: int) -> bool:
        record = self.db.get(CallRecord, call_id)
        if record is None:
            return False
        self.db.delete(record)
        self._commit()
        return True

    async def create_webhook_log(self, entry: Dict[str, Any]) -> WebhookLog:
        log_entry = WebhookLog(**entry)
        self._commit(log_entry)
        return log_entry

    async def update_webhook_log(self, log_id: int, fields: Dict[str, Any]) -> WebhookLog:
        log_entry = self.db.get(WebhookLog, log_id)
        if log_entry is None:
            raise StorageError(f"Webhook log {log_id} not found")
        for key, value in fields.items():
            setattr(log_entry, key, value)
        self._commit(log_entry)
        return log_entry

    async def list_webhook_logs(self, limit: int = 20) -> List[WebhookLog]:
        return (
            self.db.query(WebhookLog)
            .order_by(WebhookLog.created_at.desc(), WebhookLog.id.desc())
            .limit(limit)
            .all()
        )

    def _commit(self, instance: Optional[Any] = None) -> None:
        if instance is not None:
            self.db.add(instance)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        if instance is not None:
            self.db.refresh(instance)
