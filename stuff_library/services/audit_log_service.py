from __future__ import annotations

import json
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from stuff_library.extensions import db
from stuff_library.models.audit_log import AuditLog, AuditAction
from stuff_library.repositories.audit_log_repo import AuditLogRepo

ENTITY_BORROW_REQUEST = "BORROW_REQUEST"
ENTITY_ITEM = "ITEM"

# "{previous}-{new}" -> action
STATUS_CHANGE_ACTIONS = {
    "PENDING-APPROVED": AuditAction.BORROW_REQUEST_APPROVED,
    "PENDING-DECLINED": AuditAction.BORROW_REQUEST_DECLINED,
    "PENDING-CANCELLED": AuditAction.BORROW_REQUEST_CANCELLED,
    "APPROVED-ACTIVE": AuditAction.BORROW_REQUEST_ACTIVATED,
    "APPROVED-CANCELLED": AuditAction.BORROW_REQUEST_CANCELLED,
    "APPROVED-RETURNED": AuditAction.BORROW_REQUEST_RETURNED,
    "ACTIVE-RETURNED": AuditAction.BORROW_REQUEST_RETURNED,
    "ACTIVE-CANCELLED": AuditAction.BORROW_REQUEST_CANCELLED,
}


def _status_name(status) -> str:
    return getattr(status, "value", status)


class AuditLogService:
    @staticmethod
    def log_entry(
        action: AuditAction,
        user_id: int,
        entity_type: str,
        entity_id: int,
        details: dict | None = None,
        metadata: dict | None = None,
        commit: bool = False,
    ) -> AuditLog | None:
        """
        Appends one audit row inside a SAVEPOINT. With commit=False the
        caller's commit persists it together with the change it describes.
        Failures are logged and swallowed so that the lifecycle operation
        itself still goes through. Returns the row or None.
        """
        details = details or {}
        metadata = metadata or {}
        action_name = _status_name(action)

        current_app.logger.info(
            "[audit] %s",
            json.dumps({
                "timestamp": datetime.utcnow().isoformat(),
                "action": action_name,
                "user_id": user_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "details": details,
            }, default=str),
        )

        try:
            with db.session.begin_nested():
                row = AuditLogRepo.add(AuditLog(
                    action=action_name,
                    user_id=user_id,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    details=details,
                    meta=metadata,
                    ip_address=metadata.get("ip_address"),
                    user_agent=metadata.get("user_agent"),
                ))
            if commit:
                db.session.commit()
            return row
        except SQLAlchemyError as e:
            if commit:
                db.session.rollback()
            current_app.logger.error(f"[audit] Failed to log audit entry {action_name}: {e}")
            return None

    @staticmethod
    def log_status_change(
        borrow_request_id: int,
        user_id: int,
        previous_status,
        new_status,
        additional_details: dict | None = None,
        commit: bool = False,
    ) -> AuditLog | None:
        previous_status = _status_name(previous_status)
        new_status = _status_name(new_status)
        transition_key = f"{previous_status}-{new_status}"

        action = STATUS_CHANGE_ACTIONS.get(transition_key)
        if not action:
            current_app.logger.warning(f"[audit] Unknown status transition: {transition_key}")
            return None

        details = {"status_change": {"from": previous_status, "to": new_status}}
        details.update(additional_details or {})

        return AuditLogService.log_entry(
            action=action,
            user_id=user_id,
            entity_type=ENTITY_BORROW_REQUEST,
            entity_id=borrow_request_id,
            details=details,
            metadata={
                "previous_state": {"status": previous_status},
                "new_state": {"status": new_status},
            },
            commit=commit,
        )

    @staticmethod
    def log_item_availability_change(
        item_id: int,
        user_id: int,
        borrow_request_id: int,
        new_status,
        was_available: bool,
        is_now_available: bool,
        commit: bool = False,
    ) -> AuditLog | None:
        return AuditLogService.log_entry(
            action=AuditAction.ITEM_AVAILABILITY_UPDATED,
            user_id=user_id,
            entity_type=ENTITY_ITEM,
            entity_id=item_id,
            details={
                "borrow_request_id": borrow_request_id,
                "status_cause": _status_name(new_status),
                "availability_change": {"from": was_available, "to": is_now_available},
            },
            metadata={
                "previous_state": {"available": was_available},
                "new_state": {"available": is_now_available},
            },
            commit=commit,
        )

    @staticmethod
    def list_for_entity(entity_type: str, entity_id: int):
        return AuditLogRepo.list_for_entity(entity_type, entity_id)
