# checkout_engine/repos/discount_repo.py
from datetime import datetime

from sqlalchemy import select, update, case, func, and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from checkout_engine.data.models.discount import DiscountModel
from checkout_engine.data.models.discount_usage import DiscountUsageModel
from checkout_engine.utils.clock import utcnow
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)


def _redeemable_at(now: datetime):
    # status + okno czasowe w tym samym WHERE co inkrementacja
    return and_(
        DiscountModel.status == "active",
        or_(DiscountModel.starts_at.is_(None), DiscountModel.starts_at <= now),
        or_(DiscountModel.expires_at.is_(None), DiscountModel.expires_at >= now),
    )


class DiscountRepo:
    def __init__(self, db: Session):
        self.db = db

    #query
    def get_discount(self, store_id: str, discount_id: str) -> DiscountModel | None:
        return self.db.execute(
            select(DiscountModel).where(
                DiscountModel.id == discount_id,
                DiscountModel.store_id == store_id,
            )
        ).scalar_one_or_none()

    def get_by_code(self, store_id: str, code: str) -> DiscountModel | None:
        return self.db.execute(
            select(DiscountModel).where(
                DiscountModel.code == code,
                DiscountModel.store_id == store_id,
            )
        ).scalar_one_or_none()

    def list_discounts(self, store_id: str) -> list[DiscountModel]:
        return list(
            self.db.execute(
                select(DiscountModel)
                .where(DiscountModel.store_id == store_id)
                .order_by(DiscountModel.created_at.desc())
            ).scalars().all()
        )

    def count_customer_usage(self, discount_id: str, customer_email: str) -> int:
        return self.db.execute(
            select(func.count(DiscountUsageModel.id)).where(
                DiscountUsageModel.discount_id == discount_id,
                DiscountUsageModel.customer_email == customer_email.lower(),
            )
        ).scalar_one()

    #commands (bez liczników)
    def create_discount(self, discount: DiscountModel) -> DiscountModel:
        self.db.add(discount)
        self.db.commit()
        self.db.refresh(discount)
        return discount

    def update_fields(self, store_id: str, discount_id: str, fields: dict) -> int:
        if "usage_count" in fields:
            raise ValueError("usage_count can only change through reserve/release")
        stmt = (
            update(DiscountModel)
            .where(DiscountModel.id == discount_id, DiscountModel.store_id == store_id)
            .values(**fields, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        rowcount = self.db.execute(stmt).rowcount
        self.db.commit()
        return rowcount

    def record_usage(self, discount_id: str, customer_email: str, cart_id: str) -> bool:
        """Zapis użycia przy finalizacji. False gdy ten koszyk już był zapisany."""
        self.db.add(
            DiscountUsageModel(
                discount_id=discount_id,
                customer_email=customer_email.lower(),
                cart_id=cart_id,
            )
        )
        try:
            self.db.commit()
        except IntegrityError:
            # unique (discount_id, cart_id)
            self.db.rollback()
            return False
        return True

    #ledger użyć - compare and swap jak w inventory
    def reserve_usage(
        self, discount: DiscountModel, now: datetime | None = None
    ) -> tuple[bool, bool]:
        """
        Zwraca (reserved, counted).
        Limit czytany z bazy w tym samym UPDATE, nie z obiektu w pamięci:
        bez limitu tylko "touch", który dalej pada dla nieważnego rabatu.
        """
        now = now or utcnow()
        stmt = (
            update(DiscountModel)
            .where(
                DiscountModel.id == discount.id,
                _redeemable_at(now),
                or_(
                    DiscountModel.usage_limit.is_(None),
                    DiscountModel.usage_count < DiscountModel.usage_limit,
                ),
            )
            .values(
                usage_count=case(
                    (DiscountModel.usage_limit.is_(None), DiscountModel.usage_count),
                    else_=DiscountModel.usage_count + 1,
                ),
                updated_at=now,
            )
            .returning(DiscountModel.usage_limit)
            .execution_options(synchronize_session=False)
        )
        try:
            row = self.db.execute(stmt).first()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if row is None:
            logger.info(f"reserve discount {discount.id} -> rejected")
            return False, False
        counted = row.usage_limit is not None
        logger.info(f"reserve discount {discount.id} (limit={row.usage_limit}) -> counted={counted}")
        return True, counted

    def release_usage(self, discount_id: str) -> bool:
        stmt = (
            update(DiscountModel)
            .where(DiscountModel.id == discount_id)
            .values(
                usage_count=case(
                    (DiscountModel.usage_count > 0, DiscountModel.usage_count - 1),
                    else_=0,
                ),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        ok = self._apply(stmt)
        logger.info(f"release discount {discount_id} -> {ok}")
        return ok

    def _apply(self, stmt) -> bool:
        try:
            rowcount = self.db.execute(stmt).rowcount
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return rowcount == 1
