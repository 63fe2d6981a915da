"""Settings repository - key/value rows per tenant"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Setting


class SettingsRepository:
    @staticmethod
    def get_all(db: Session, tenant_id: str) -> dict[str, Optional[str]]:
        rows = db.query(Setting).filter(Setting.tenant_id == tenant_id).all()
        return {row.key: row.value for row in rows}

    @staticmethod
    def list_settings(db: Session, tenant_id: str) -> list[Setting]:
        return (
            db.query(Setting).filter(Setting.tenant_id == tenant_id).order_by(Setting.key).all()
        )

    @staticmethod
    def upsert_many(db: Session, tenant_id: str, values: dict[str, Optional[str]]) -> None:
        existing = {
            row.key: row
            for row in db.query(Setting)
            .filter(Setting.tenant_id == tenant_id, Setting.key.in_(list(values)))
            .all()
        }
        for key, value in values.items():
            if key in existing:
                existing[key].value = value
            else:
                db.add(Setting(tenant_id=tenant_id, key=key, value=value))
        db.commit()

    @staticmethod
    def tenant_ids(db: Session) -> list[str]:
        return [row[0] for row in db.query(Setting.tenant_id).distinct().all()]
