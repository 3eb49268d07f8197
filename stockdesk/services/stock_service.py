"""
Stock Service - Ledger bookkeeping for product stock

Every change to Product.stock_quantity goes together with a StockMovement row
in the same transaction. Movement rows are never deleted; corrections are
appended as new rows.
"""
import enum
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, or_, case
from sqlalchemy.orm import Session, joinedload

from stockdesk.core.errors import AppError
from stockdesk.core.timeutils import utcnow
from stockdesk.models import Product, StockMovement, User, MovementType, ReferenceType
from stockdesk.schemas.common import ListParams

logger = logging.getLogger(__name__)

# Sign applied to the caller's positive magnitude
MOVEMENT_SIGNS = {
    MovementType.IN.value: 1,
    MovementType.RELEASE.value: 1,
    MovementType.OUT.value: -1,
    MovementType.RESERVE.value: -1,
}
DIRECTION_SIGNS = {"increase": 1, "decrease": -1}

# Movements tied to orders, deliveries or purchases are owned by those records
EDITABLE_REFERENCE_TYPES = (None, ReferenceType.ADJUSTMENT.value, ReferenceType.TRANSFER.value)

MOVEMENT_SORT_FIELDS = ("created_at", "quantity", "movement_type", "product_code")

QUANTITY_REASON = "must be a positive whole number"


def _value(member: Any) -> Any:
    return member.value if isinstance(member, enum.Enum) else member


def parse_quantity(value: Any, field: str = "quantity") -> int:
    """Positive integer-like magnitude, or VALIDATION_ERROR for that field"""
    if value is None or isinstance(value, bool):
        raise AppError.validation(**{field: QUANTITY_REASON})
    try:
        number = Decimal(value.strip()) if isinstance(value, str) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise AppError.validation(**{field: QUANTITY_REASON})
    if not number.is_finite() or number <= 0 or number != number.to_integral_value():
        raise AppError.validation(**{field: QUANTITY_REASON})
    return int(number)


class StockService:
    """Stock ledger business logic"""

    # ===================== LOCKING & BOOKING =====================

    @staticmethod
    def lock_product(db: Session, product_id: UUID) -> Product:
        product = db.query(Product).filter(
            Product.id == product_id,
            Product.deleted_at.is_(None)
        ).with_for_update().first()
        if not product:
            raise AppError("PRODUCT_NOT_FOUND", details={"product_id": str(product_id)})
        return product

    @staticmethod
    def lock_products(db: Session, product_ids: Sequence[UUID]) -> Dict[UUID, Product]:
        """Lock several products in ascending id order"""
        locked = {}
        for product_id in sorted(set(product_ids), key=str):
            locked[product_id] = StockService.lock_product(db, product_id)
        return locked

    @staticmethod
    def book_movement(
        db: Session,
        product: Product,
        delta: int,
        movement_type: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        created_by: Optional[UUID] = None,
        created_at: Optional[datetime] = None,
    ) -> StockMovement:
        """Insert one ledger row and move the cached stock. Caller commits."""
        new_quantity = (product.stock_quantity or 0) + delta
        if new_quantity < 0:
            raise AppError(
                "INSUFFICIENT_STOCK",
                details={
                    "product_id": str(product.id),
                    "available": product.stock_quantity or 0,
                    "requested": -delta,
                },
            )
        movement = StockMovement(
            product_id=product.id,
            movement_type=movement_type,
            quantity=delta,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_by=created_by,
        )
        if created_at is not None:
            movement.created_at = created_at
        product.stock_quantity = new_quantity
        db.add(movement)
        db.flush()
        return movement

    @staticmethod
    def _rewrite(db: Session, movement: StockMovement, product: Product, new_quantity: int, notes: Optional[str]) -> None:
        diff = new_quantity - movement.quantity
        if (product.stock_quantity or 0) + diff < 0:
            raise AppError(
                "INSUFFICIENT_STOCK",
                details={
                    "product_id": str(product.id),
                    "available": product.stock_quantity or 0,
                    "requested": -diff,
                },
            )
        product.stock_quantity = (product.stock_quantity or 0) + diff
        movement.quantity = new_quantity
        if notes is not None:
            movement.notes = notes

    @staticmethod
    def _find_transfer_pair(db: Session, movement: StockMovement) -> Optional[StockMovement]:
        """The other leg: same timestamp, pointing back at this product, opposite sign"""
        return db.query(StockMovement).filter(
            StockMovement.id != movement.id,
            StockMovement.movement_type == MovementType.TRANSFER.value,
            StockMovement.reference_type == ReferenceType.TRANSFER.value,
            StockMovement.product_id == movement.reference_id,
            StockMovement.reference_id == movement.product_id,
            StockMovement.created_at == movement.created_at,
            StockMovement.quantity == -movement.quantity,
        ).with_for_update().first()

    # ===================== MOVEMENTS =====================

    @staticmethod
    def create_stock_movement(
        db: Session,
        product_id: UUID,
        quantity: Any,
        movement_type: Any,
        reference_type: Any = None,
        reference_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        direction: Optional[str] = None,
        created_by: Optional[UUID] = None,
    ) -> StockMovement:
        """
        Book a positive magnitude as a signed ledger row.

        IN/RELEASE add stock, OUT/RESERVE remove it, ADJUSTMENT follows
        `direction` (increase/decrease). Transfers have their own operation.
        """
        qty = parse_quantity(quantity)
        movement_type = _value(movement_type)
        reference_type = _value(reference_type)

        if movement_type == MovementType.TRANSFER.value:
            raise AppError.validation(movement_type="use a stock transfer")
        if movement_type == MovementType.ADJUSTMENT.value:
            if direction not in DIRECTION_SIGNS:
                raise AppError.validation(direction="select increase or decrease")
            sign = DIRECTION_SIGNS[direction]
        elif movement_type in MOVEMENT_SIGNS:
            sign = MOVEMENT_SIGNS[movement_type]
        else:
            raise AppError.validation(movement_type="unknown movement type")

        if (reference_type is None) != (reference_id is None):
            raise AppError("INVALID_REFERENCE")
        if reference_type is not None and reference_type not in {r.value for r in ReferenceType}:
            raise AppError.validation(reference_type="unknown reference type")

        try:
            product = StockService.lock_product(db, product_id)
            movement = StockService.book_movement(
                db, product, sign * qty, movement_type,
                reference_type=reference_type,
                reference_id=reference_id,
                notes=notes,
                created_by=created_by,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(movement)
        logger.info(f"Stock {movement_type} {movement.quantity:+d} on product {product_id}")
        return movement

    @staticmethod
    def adjust_product_stock(
        db: Session,
        product_id: UUID,
        delta: Any,
        notes: Optional[str] = None,
        created_by: Optional[UUID] = None,
    ) -> StockMovement:
        """Signed correction booked as an ADJUSTMENT"""
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise AppError.validation(delta="must be a non-zero whole number")
        return StockService.create_stock_movement(
            db,
            product_id,
            abs(delta),
            MovementType.ADJUSTMENT,
            reference_type=ReferenceType.ADJUSTMENT,
            reference_id=product_id,
            notes=notes,
            direction="increase" if delta > 0 else "decrease",
            created_by=created_by,
        )

    @staticmethod
    def create_stock_transfer(
        db: Session,
        from_product_id: UUID,
        to_product_id: Optional[UUID],
        quantity: Any,
        notes: Optional[str] = None,
        created_by: Optional[UUID] = None,
    ) -> dict:
        """
        Move stock between two products: a -q TRANSFER row on the source and a
        +q TRANSFER row on the target, written in one transaction.
        """
        qty = parse_quantity(quantity)
        if not to_product_id or to_product_id == from_product_id:
            raise AppError.validation(to_product_id="select target product")
        target_exists = db.query(Product.id).filter(
            Product.id == to_product_id,
            Product.deleted_at.is_(None)
        ).first()
        if not target_exists:
            raise AppError.validation(to_product_id="select target product")

        try:
            locked = StockService.lock_products(db, [from_product_id, to_product_id])
            source, target = locked[from_product_id], locked[to_product_id]
            created_at = utcnow()
            StockService.book_movement(
                db, source, -qty, MovementType.TRANSFER.value,
                reference_type=ReferenceType.TRANSFER.value,
                reference_id=target.id,
                notes=notes,
                created_by=created_by,
                created_at=created_at,
            )
            StockService.book_movement(
                db, target, qty, MovementType.TRANSFER.value,
                reference_type=ReferenceType.TRANSFER.value,
                reference_id=source.id,
                notes=notes,
                created_by=created_by,
                created_at=created_at,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Stock transfer {qty} from {from_product_id} to {to_product_id}")
        return {"ok": True}

    @staticmethod
    def update_stock_movement(
        db: Session,
        movement_id: UUID,
        quantity: Any,
        notes: Optional[str] = None,
    ) -> StockMovement:
        """
        Rewrite quantity/notes of an existing movement. The new magnitude keeps
        the original sign; editing one transfer leg mirrors the other.
        """
        qty = parse_quantity(quantity)

        try:
            movement = db.query(StockMovement).filter(
                StockMovement.id == movement_id
            ).with_for_update().first()
            if not movement:
                raise AppError("STOCK_MOVEMENT_NOT_FOUND", details={"id": str(movement_id)})
            if movement.reference_type not in EDITABLE_REFERENCE_TYPES:
                raise AppError(
                    "RESTRICTED_STOCK_MOVEMENT",
                    details={"reference_type": movement.reference_type},
                )

            new_quantity = qty if movement.quantity >= 0 else -qty

            pair = None
            if movement.reference_type == ReferenceType.TRANSFER.value:
                pair = StockService._find_transfer_pair(db, movement)
                if pair is None:
                    raise AppError(
                        "STOCK_MOVEMENT_NOT_FOUND",
                        message="The other side of this transfer was not found.",
                        details={"id": str(movement_id)},
                    )

            product_ids = [movement.product_id] + ([pair.product_id] if pair else [])
            locked = StockService.lock_products(db, product_ids)

            if pair:
                StockService._rewrite(db, pair, locked[pair.product_id], -new_quantity, notes)
            StockService._rewrite(db, movement, locked[movement.product_id], new_quantity, notes)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(movement)
        logger.info(f"Stock movement {movement_id} rewritten to {movement.quantity:+d}")
        return movement

    @staticmethod
    def reverse_reference_movements(
        db: Session,
        reference_type: Any,
        reference_id: UUID,
        notes: Optional[str] = None,
        created_by: Optional[UUID] = None,
    ) -> List[StockMovement]:
        """
        Append ADJUSTMENT rows that cancel the net effect of every movement
        linked to a reference. Running it twice adds nothing. Caller commits.
        """
        reference_type = _value(reference_type)
        nets = db.query(
            StockMovement.product_id,
            func.sum(StockMovement.quantity).label("net")
        ).filter(
            StockMovement.reference_type == reference_type,
            StockMovement.reference_id == reference_id
        ).group_by(StockMovement.product_id).all()

        pending = {row.product_id: int(row.net or 0) for row in nets if row.net}
        if not pending:
            return []

        locked = StockService.lock_products(db, list(pending))
        reversals = []
        for product_id, net in pending.items():
            reversals.append(StockService.book_movement(
                db, locked[product_id], -net, MovementType.ADJUSTMENT.value,
                reference_type=reference_type,
                reference_id=reference_id,
                notes=notes or f"Reversal of {reference_type} {reference_id}",
                created_by=created_by,
            ))
        logger.info(f"Reversed {len(reversals)} product balances for {reference_type} {reference_id}")
        return reversals

    # ===================== QUERIES =====================

    @staticmethod
    def get_movement(db: Session, movement_id: UUID) -> Optional[StockMovement]:
        return db.query(StockMovement).filter(StockMovement.id == movement_id).first()

    @staticmethod
    def get_product_movements(db: Session, product_id: UUID, limit: int = 100) -> List[StockMovement]:
        """Most recent movements of one product"""
        return db.query(StockMovement).filter(
            StockMovement.product_id == product_id
        ).order_by(StockMovement.created_at.desc()).limit(limit).all()

    @staticmethod
    def list_stock_movements(
        db: Session,
        params: ListParams,
        movement_types: Optional[List[str]] = None,
        product_id: Optional[UUID] = None,
    ) -> Tuple[List[StockMovement], int, Dict[str, int]]:
        """Paginated ledger with in/out counts over the filtered set"""
        query = db.query(StockMovement).join(Product, StockMovement.product_id == Product.id)\
            .outerjoin(User, StockMovement.created_by == User.id)

        if product_id:
            query = query.filter(StockMovement.product_id == product_id)

        if movement_types:
            query = query.filter(StockMovement.movement_type.in_(movement_types))

        if params.q:
            search_term = f"%{params.q}%"
            query = query.filter(
                or_(
                    StockMovement.notes.ilike(search_term),
                    StockMovement.reference_type.ilike(search_term),
                    StockMovement.movement_type.ilike(search_term),
                    Product.code.ilike(search_term),
                    Product.name.ilike(search_term),
                    User.username.ilike(search_term)
                )
            )

        counts = query.with_entities(
            func.count(StockMovement.id),
            func.sum(case((StockMovement.quantity > 0, 1), else_=0)),
            func.sum(case((StockMovement.quantity < 0, 1), else_=0)),
        ).one()
        total = int(counts[0] or 0)
        stats = {"in_count": int(counts[1] or 0), "out_count": int(counts[2] or 0)}

        sort_column = {
            "created_at": StockMovement.created_at,
            "quantity": StockMovement.quantity,
            "movement_type": StockMovement.movement_type,
            "product_code": Product.code,
        }[params.sort_by]
        order = sort_column.desc() if params.descending else sort_column.asc()

        movements = query.options(joinedload(StockMovement.product), joinedload(StockMovement.creator))\
            .order_by(order, StockMovement.id)\
            .offset(params.offset)\
            .limit(params.page_size)\
            .all()

        return movements, total, stats

    # ===================== INTEGRITY =====================

    @staticmethod
    def _ledger_sums(db: Session):
        return db.query(
            StockMovement.product_id.label("product_id"),
            func.sum(StockMovement.quantity).label("ledger_quantity")
        ).group_by(StockMovement.product_id).subquery()

    @staticmethod
    def stock_integrity_report(db: Session) -> List[Dict]:
        """Products whose cached stock differs from their ledger sum"""
        sums = StockService._ledger_sums(db)
        ledger_quantity = func.coalesce(sums.c.ledger_quantity, 0)
        rows = db.query(Product, ledger_quantity.label("ledger_quantity"))\
            .outerjoin(sums, sums.c.product_id == Product.id)\
            .filter(Product.deleted_at.is_(None))\
            .filter(Product.stock_quantity != ledger_quantity)\
            .order_by(Product.code)\
            .all()

        return [
            {
                "product_id": product.id,
                "code": product.code,
                "name": product.name,
                "stock_quantity": product.stock_quantity,
                "ledger_quantity": int(ledger),
                "difference": product.stock_quantity - int(ledger),
            }
            for product, ledger in rows
        ]

    @staticmethod
    def _reconcile(db: Session, product: Product) -> int:
        ledger = db.query(func.coalesce(func.sum(StockMovement.quantity), 0))\
            .filter(StockMovement.product_id == product.id).scalar()
        ledger = int(ledger or 0)
        if ledger < 0:
            raise AppError(
                "INSUFFICIENT_STOCK",
                message="Ledger sum is negative; fix the movements first.",
                details={"product_id": str(product.id), "ledger_quantity": ledger},
            )
        if product.stock_quantity != ledger:
            logger.warning(f"Reconciling {product.code}: cached {product.stock_quantity}, ledger {ledger}")
            product.stock_quantity = ledger
        return ledger

    @staticmethod
    def reconcile_product_stock(db: Session, product_id: UUID) -> Product:
        """Set cached stock to the ledger sum"""
        try:
            product = StockService.lock_product(db, product_id)
            StockService._reconcile(db, product)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(product)
        return product

    @staticmethod
    def reconcile_all_stock(db: Session) -> int:
        """Reconcile every drifted product; returns how many were fixed"""
        drifted = StockService.stock_integrity_report(db)
        if not drifted:
            return 0
        try:
            locked = StockService.lock_products(db, [row["product_id"] for row in drifted])
            for product in locked.values():
                StockService._reconcile(db, product)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"Reconciled stock for {len(drifted)} products")
        return len(drifted)
