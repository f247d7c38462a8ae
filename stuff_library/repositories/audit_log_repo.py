from stuff_library.models.audit_log import AuditLog
from stuff_library.extensions import db


class AuditLogRepo:
    @staticmethod
    def add(entry: AuditLog):
        db.session.add(entry)
        db.session.flush()
        return entry

    @staticmethod
    def list_for_entity(entity_type: str, entity_id: int):
        return (
            AuditLog.query
            .filter_by(entity_type=entity_type, entity_id=entity_id)
            .order_by(AuditLog.id.asc())
            .all()
        )
