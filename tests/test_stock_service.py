"""Stock ledger: signed movements, transfers, edits and reconciliation."""

import uuid

import pytest

from stockdesk.core.errors import AppError
from stockdesk.core.timeutils import utcnow
from stockdesk.models import MovementType, ReferenceType, StockMovement
from stockdesk.services import StockService
from stockdesk.schemas.common import ListParams
from stockdesk.services.stock_service import MOVEMENT_SORT_FIELDS, parse_quantity
from tests.helpers import make_customer, make_delivery, make_order, make_product

INVALID_QUANTITIES = [0, -5, float("nan"), "abc", 2.5]


def _movements(db, product=None, movement_type=None):
    query = db.query(StockMovement)
    if product is not None:
        query = query.filter(StockMovement.product_id == product.id)
    if movement_type is not None:
        query = query.filter(StockMovement.movement_type == movement_type)
    return query.all()


class TestParseQuantity:

    @pytest.mark.parametrize("value, expected", [(5, 5), ("7", 7), (" 12 ", 12), (3.0, 3)])
    def test_accepts_positive_whole_numbers(self, value, expected):
        assert parse_quantity(value) == expected

    @pytest.mark.parametrize("value", [0, -3, float("nan"), float("inf"), "abc", "", 2.5, None, True])
    def test_rejects_everything_else(self, value):
        with pytest.raises(AppError) as exc:
            parse_quantity(value)
        assert exc.value.code == "VALIDATION_ERROR"
        assert "quantity" in exc.value.field_errors


class TestCreateStockMovement:

    def test_in_adds_and_out_subtracts(self, db):
        product = make_product(db)
        StockService.create_stock_movement(db, product.id, 10, MovementType.IN)
        out = StockService.create_stock_movement(db, product.id, 4, "OUT")

        assert out.quantity == -4
        db.refresh(product)
        assert product.stock_quantity == 6

    def test_reserve_and_release(self, db):
        product = make_product(db, stock=10)
        StockService.create_stock_movement(db, product.id, 3, MovementType.RESERVE)
        StockService.create_stock_movement(db, product.id, 1, MovementType.RELEASE)
        db.refresh(product)
        assert product.stock_quantity == 8

    def test_in_out_adjustment_sequence_matches_ledger(self, db):
        product = make_product(db)
        StockService.create_stock_movement(db, product.id, 100, MovementType.IN)
        StockService.create_stock_movement(db, product.id, 30, MovementType.OUT)
        StockService.create_stock_movement(db, product.id, 5, MovementType.ADJUSTMENT, direction="decrease")

        db.refresh(product)
        rows = _movements(db, product)
        assert product.stock_quantity == 65
        assert len(rows) == 3
        assert sum(r.quantity for r in rows) == 65

    @pytest.mark.parametrize("quantity", [0, -5, float("nan"), "abc"])
    def test_invalid_quantity_writes_nothing(self, db, quantity):
        product = make_product(db, stock=10)
        with pytest.raises(AppError) as exc:
            StockService.create_stock_movement(db, product.id, quantity, MovementType.OUT)
        assert exc.value.code == "VALIDATION_ERROR"
        db.refresh(product)
        assert product.stock_quantity == 10
        assert len(_movements(db, product)) == 1  # initial stock only

    def test_out_beyond_stock_is_rejected(self, db):
        product = make_product(db, stock=2)
        with pytest.raises(AppError) as exc:
            StockService.create_stock_movement(db, product.id, 5, MovementType.OUT)
        assert exc.value.code == "INSUFFICIENT_STOCK"
        assert exc.value.details["available"] == 2
        db.refresh(product)
        assert product.stock_quantity == 2
        assert _movements(db, product, MovementType.OUT.value) == []

    def test_adjustment_needs_direction(self, db):
        product = make_product(db)
        with pytest.raises(AppError) as exc:
            StockService.create_stock_movement(db, product.id, 1, MovementType.ADJUSTMENT)
        assert "direction" in exc.value.field_errors

    def test_transfer_type_goes_through_transfer_operation(self, db):
        product = make_product(db, stock=5)
        with pytest.raises(AppError) as exc:
            StockService.create_stock_movement(db, product.id, 1, MovementType.TRANSFER)
        assert "movement_type" in exc.value.field_errors

    def test_reference_must_be_complete(self, db):
        product = make_product(db)
        with pytest.raises(AppError) as exc:
            StockService.create_stock_movement(
                db, product.id, 1, MovementType.IN, reference_type=ReferenceType.PURCHASE
            )
        assert exc.value.code == "INVALID_REFERENCE"

    def test_unknown_product(self, db):
        with pytest.raises(AppError) as exc:
            StockService.create_stock_movement(db, uuid.uuid4(), 1, MovementType.IN)
        assert exc.value.code == "PRODUCT_NOT_FOUND"
        assert exc.value.status == 404

    def test_adjust_product_stock_uses_signed_delta(self, db):
        product = make_product(db, stock=10)
        movement = StockService.adjust_product_stock(db, product.id, -4, notes="Sayım farkı")
        assert movement.movement_type == MovementType.ADJUSTMENT.value
        assert movement.quantity == -4
        assert movement.reference_type == ReferenceType.ADJUSTMENT.value
        db.refresh(product)
        assert product.stock_quantity == 6

    def test_adjust_product_stock_rejects_zero(self, db):
        product = make_product(db, stock=10)
        with pytest.raises(AppError) as exc:
            StockService.adjust_product_stock(db, product.id, 0)
        assert "delta" in exc.value.field_errors


class TestStockTransfer:

    def test_moves_quantity_between_products(self, db):
        source = make_product(db, code="A", stock=10)
        target = make_product(db, code="B")

        assert StockService.create_stock_transfer(db, source.id, target.id, 4) == {"ok": True}

        db.refresh(source)
        db.refresh(target)
        assert (source.stock_quantity, target.stock_quantity) == (6, 4)

        legs = _movements(db, movement_type=MovementType.TRANSFER.value)
        by_product = {leg.product_id: leg for leg in legs}
        assert by_product[source.id].quantity == -4
        assert by_product[source.id].reference_id == target.id
        assert by_product[target.id].quantity == 4
        assert by_product[target.id].reference_id == source.id
        assert by_product[source.id].created_at == by_product[target.id].created_at

    @pytest.mark.parametrize("same_target", [True, False])
    def test_target_is_required_and_distinct(self, db, same_target):
        source = make_product(db, stock=10)
        target_id = source.id if same_target else None

        with pytest.raises(AppError) as exc:
            StockService.create_stock_transfer(db, source.id, target_id, 3)
        assert exc.value.field_errors == {"to_product_id": "select target product"}
        assert _movements(db, movement_type=MovementType.TRANSFER.value) == []

    def test_insufficient_source_writes_no_leg(self, db):
        source = make_product(db, code="A", stock=2)
        target = make_product(db, code="B")

        with pytest.raises(AppError) as exc:
            StockService.create_stock_transfer(db, source.id, target.id, 5)
        assert exc.value.code == "INSUFFICIENT_STOCK"

        db.refresh(source)
        db.refresh(target)
        assert (source.stock_quantity, target.stock_quantity) == (2, 0)
        assert _movements(db, movement_type=MovementType.TRANSFER.value) == []

    @pytest.mark.parametrize("deleted", [False, True])
    def test_unknown_or_deleted_target_is_a_validation_error(self, db, deleted):
        source = make_product(db, code="A", stock=10)
        if deleted:
            target = make_product(db, code="B")
            target.deleted_at = utcnow()
            db.commit()
            target_id = target.id
        else:
            target_id = uuid.uuid4()

        with pytest.raises(AppError) as exc:
            StockService.create_stock_transfer(db, source.id, target_id, 3)
        assert exc.value.code == "VALIDATION_ERROR"
        assert exc.value.field_errors == {"to_product_id": "select target product"}
        db.refresh(source)
        assert source.stock_quantity == 10
        assert _movements(db, movement_type=MovementType.TRANSFER.value) == []

    def test_unknown_source_is_not_found(self, db):
        target = make_product(db, code="B")
        with pytest.raises(AppError) as exc:
            StockService.create_stock_transfer(db, uuid.uuid4(), target.id, 3)
        assert exc.value.code == "PRODUCT_NOT_FOUND"

    @pytest.mark.parametrize("quantity", INVALID_QUANTITIES)
    def test_invalid_quantity_writes_nothing(self, db, quantity):
        source = make_product(db, code="A", stock=10)
        target = make_product(db, code="B", stock=2)

        with pytest.raises(AppError) as exc:
            StockService.create_stock_transfer(db, source.id, target.id, quantity)
        assert exc.value.code == "VALIDATION_ERROR"

        db.refresh(source)
        db.refresh(target)
        assert (source.stock_quantity, target.stock_quantity) == (10, 2)
        assert len(_movements(db, source)) == 1
        assert len(_movements(db, target)) == 1


class TestUpdateStockMovement:

    def test_in_keeps_positive_sign(self, db):
        product = make_product(db)
        movement = StockService.create_stock_movement(db, product.id, 5, MovementType.IN)

        updated = StockService.update_stock_movement(db, movement.id, 8)

        assert updated.quantity == 8
        db.refresh(product)
        assert product.stock_quantity == 8

    def test_out_keeps_negative_sign(self, db):
        product = make_product(db, stock=20)
        movement = StockService.create_stock_movement(db, product.id, 5, MovementType.OUT)

        updated = StockService.update_stock_movement(db, movement.id, 8, notes="düzeltme")

        assert updated.quantity == -8
        assert updated.notes == "düzeltme"
        db.refresh(product)
        assert product.stock_quantity == 12

    def test_editing_one_transfer_leg_mirrors_the_other(self, db):
        source = make_product(db, code="A", stock=10)
        target = make_product(db, code="B")
        StockService.create_stock_transfer(db, source.id, target.id, 4)
        leg = _movements(db, source, MovementType.TRANSFER.value)[0]

        StockService.update_stock_movement(db, leg.id, 6)

        db.refresh(source)
        db.refresh(target)
        assert (source.stock_quantity, target.stock_quantity) == (4, 6)
        quantities = sorted(m.quantity for m in _movements(db, movement_type=MovementType.TRANSFER.value))
        assert quantities == [-6, 6]

    def test_edit_that_would_go_negative_is_rejected(self, db):
        product = make_product(db, stock=10)
        movement = StockService.create_stock_movement(db, product.id, 5, MovementType.OUT)

        with pytest.raises(AppError) as exc:
            StockService.update_stock_movement(db, movement.id, 11)
        assert exc.value.code == "INSUFFICIENT_STOCK"
        db.refresh(movement)
        assert movement.quantity == -5

    def test_delivery_movements_are_restricted(self, db):
        customer = make_customer(db)
        product = make_product(db, stock=10)
        order = make_order(db, customer, lines=[(product, 3, 1000)])
        make_delivery(db, customer, [(order.items[0], 3)])
        movement = _movements(db, product, MovementType.OUT.value)[0]

        with pytest.raises(AppError) as exc:
            StockService.update_stock_movement(db, movement.id, 1)
        assert exc.value.code == "RESTRICTED_STOCK_MOVEMENT"

    def test_unknown_movement(self, db):
        with pytest.raises(AppError) as exc:
            StockService.update_stock_movement(db, uuid.uuid4(), 1)
        assert exc.value.code == "STOCK_MOVEMENT_NOT_FOUND"

    @pytest.mark.parametrize("quantity", INVALID_QUANTITIES)
    def test_invalid_quantity_writes_nothing(self, db, quantity):
        source = make_product(db, code="A", stock=10)
        target = make_product(db, code="B")
        StockService.create_stock_transfer(db, source.id, target.id, 4)
        leg = _movements(db, source, MovementType.TRANSFER.value)[0]

        with pytest.raises(AppError) as exc:
            StockService.update_stock_movement(db, leg.id, quantity)
        assert exc.value.code == "VALIDATION_ERROR"

        db.refresh(source)
        db.refresh(target)
        assert (source.stock_quantity, target.stock_quantity) == (6, 4)
        assert len(_movements(db, source)) == 2
        assert len(_movements(db, target)) == 1
        quantities = sorted(m.quantity for m in _movements(db, movement_type=MovementType.TRANSFER.value))
        assert quantities == [-4, 4]

    def test_transfer_leg_without_its_pair_is_not_rewritten(self, db):
        source = make_product(db, code="A", stock=10)
        target = make_product(db, code="B")
        StockService.create_stock_transfer(db, source.id, target.id, 4)
        leg = _movements(db, source, MovementType.TRANSFER.value)[0]
        db.delete(_movements(db, target, MovementType.TRANSFER.value)[0])
        db.commit()

        with pytest.raises(AppError) as exc:
            StockService.update_stock_movement(db, leg.id, 6)
        assert exc.value.code == "STOCK_MOVEMENT_NOT_FOUND"

        db.refresh(leg)
        db.refresh(source)
        assert leg.quantity == -4
        assert source.stock_quantity == 6


class TestReverseReferenceMovements:

    def test_reversal_cancels_net_and_is_idempotent(self, db):
        product = make_product(db, stock=10)
        reference = product.id
        StockService.create_stock_movement(
            db, product.id, 4, MovementType.OUT,
            reference_type=ReferenceType.PURCHASE, reference_id=reference
        )

        first = StockService.reverse_reference_movements(db, ReferenceType.PURCHASE, reference)
        db.commit()
        second = StockService.reverse_reference_movements(db, ReferenceType.PURCHASE, reference)

        assert [m.quantity for m in first] == [4]
        assert second == []
        db.refresh(product)
        assert product.stock_quantity == 10

    def test_reversal_nets_per_product_and_stays_linked(self, db):
        product = make_product(db, stock=10)
        other = make_product(db, code="OTHER", stock=5)
        reference = uuid.uuid4()
        for target, qty, movement_type in [
            (product, 6, MovementType.OUT),
            (product, 2, MovementType.IN),
            (other, 3, MovementType.IN),
        ]:
            StockService.create_stock_movement(
                db, target.id, qty, movement_type,
                reference_type=ReferenceType.PURCHASE, reference_id=reference
            )

        reversals = StockService.reverse_reference_movements(db, ReferenceType.PURCHASE, reference)
        db.commit()

        assert sorted(m.quantity for m in reversals) == [-3, 4]
        assert all(m.reference_id == reference for m in reversals)
        db.refresh(product)
        db.refresh(other)
        assert (product.stock_quantity, other.stock_quantity) == (10, 5)

        with pytest.raises(AppError) as exc:
            StockService.update_stock_movement(db, reversals[0].id, 1)
        assert exc.value.code == "RESTRICTED_STOCK_MOVEMENT"


class TestIntegrity:

    def test_report_and_reconcile_drifted_stock(self, db):
        product = make_product(db, stock=7)
        healthy = make_product(db, code="OK", stock=3)
        product.stock_quantity = 99
        db.commit()

        report = StockService.stock_integrity_report(db)
        assert [row["code"] for row in report] == [product.code]
        assert report[0]["ledger_quantity"] == 7
        assert report[0]["difference"] == 92

        assert StockService.reconcile_all_stock(db) == 1
        db.refresh(product)
        db.refresh(healthy)
        assert product.stock_quantity == 7
        assert healthy.stock_quantity == 3
        assert StockService.stock_integrity_report(db) == []

    def test_reconcile_single_product(self, db):
        product = make_product(db, stock=4)
        product.stock_quantity = 0
        db.commit()

        reconciled = StockService.reconcile_product_stock(db, product.id)
        assert reconciled.stock_quantity == 4


class TestListStockMovements:

    def test_counts_in_and_out_over_filtered_set(self, db):
        product = make_product(db, stock=10)
        other = make_product(db, code="OTHER", stock=5)
        StockService.create_stock_movement(db, product.id, 3, MovementType.OUT)
        StockService.create_stock_movement(db, product.id, 2, MovementType.OUT)

        params = ListParams.build(MOVEMENT_SORT_FIELDS, "created_at", "desc")
        movements, total, stats = StockService.list_stock_movements(db, params, product_id=product.id)

        assert total == 3
        assert stats == {"in_count": 1, "out_count": 2}
        assert all(m.product_id == product.id for m in movements)
        assert other.id not in {m.product_id for m in movements}
