import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from payrelay.models.payment import PaymentRecord

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    try:
        return _UPSERT_INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"payment upsert not supported on dialect: {dialect}")

def upsert_payment(
    db: Session,
    *,
    payment_id: str,
    email: str,
    status: str,
    amount: Decimal | float | int,
    payment_method: str | None,
    user_id: uuid.UUID | None,
) -> PaymentRecord:
    # last writer wins on payment_id
    values = {
        "email": email,
        "status": status,
        "amount": Decimal(str(amount)),
        "payment_method": payment_method,
        "user_id": user_id,
    }

    insert = _insert_for(db)
    stmt = insert(PaymentRecord).values(id=uuid.uuid4(), payment_id=payment_id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["payment_id"],
        set_={**values, "updated_at": func.now()},
    )
    db.execute(stmt)
    db.commit()

    return db.scalars(
        select(PaymentRecord)
        .where(PaymentRecord.payment_id == payment_id)
        .execution_options(populate_existing=True)
    ).one()
