# tests/test_engine.py
"""Tests for the transaction engine: creation, purchase, reviews and fees."""

import threading

import pytest

from artledger import (
    AlreadyExists,
    AlreadyRated,
    BalanceLedger,
    InsufficientPayment,
    InvalidArgument,
    NotForSale,
    NotFound,
    TransactionEngine,
    TransferFailed,
    Unauthorized,
)
from artledger.events import ASSET_SOLD, ROYALTY_PAID

ETH = 10**18
ADMIN = "admin"
CREATOR = "artist"
BUYER1 = "buyer1"
BUYER2 = "buyer2"
GALLERY = "g1"


@pytest.fixture
def payments():
    return BalanceLedger()


@pytest.fixture
def engine(payments):
    engine = TransactionEngine(ADMIN, payments)
    engine.create_gallery(GALLERY, "Test Gallery", "A gallery for testing", caller=ADMIN)
    return engine


@pytest.fixture
def asset_id(engine):
    return engine.create_asset("Test Art", "ipfs://QmTest", ETH, GALLERY, 10, caller=CREATOR)


class TestGalleryOperations:
    """Tests for gallery creation and lookup."""

    def test_create_gallery(self, engine):
        gallery = engine.create_gallery("new-gallery", "New Gallery", "Description", caller=CREATOR)

        assert gallery.curator == CREATOR
        assert gallery.is_active
        assert engine.get_artworks("new-gallery") == []
        assert engine.get_user_galleries(CREATOR) == ["new-gallery"]

    def test_duplicate_gallery_key(self, engine):
        with pytest.raises(AlreadyExists):
            engine.create_gallery(GALLERY, "Duplicate", "Test", caller=CREATOR)

    def test_empty_key_or_name(self, engine):
        with pytest.raises(InvalidArgument):
            engine.create_gallery("", "Name", "", caller=CREATOR)
        with pytest.raises(InvalidArgument):
            engine.create_gallery("key", "", "", caller=CREATOR)

    def test_unknown_gallery_artworks(self, engine):
        with pytest.raises(NotFound):
            engine.get_artworks("missing")

    def test_user_galleries(self, engine):
        assert engine.get_user_galleries(ADMIN) == [GALLERY]


class TestAssetCreation:
    """Tests for asset creation and queries."""

    def test_create_asset(self, engine, asset_id):
        asset = engine.get_asset(asset_id)

        assert asset.title == "Test Art"
        assert asset.creator == CREATOR
        assert asset.owner == CREATOR
        assert asset.price == ETH
        assert asset.for_sale
        assert asset.gallery_key == GALLERY
        assert asset.royalty_pct == 10
        assert asset.average_rating == 0

    def test_indexes_updated(self, engine, asset_id):
        assert engine.get_artworks(GALLERY) == [asset_id]
        assert engine.get_by_gallery(GALLERY) == [asset_id]
        assert engine.get_by_owner(CREATOR) == [asset_id]
        assert engine.content_ref(asset_id) == "ipfs://QmTest"

    def test_ids_are_monotonic(self, engine):
        ids = [
            engine.create_asset(f"Art {i}", "ipfs://x", ETH, GALLERY, 5, caller=CREATOR)
            for i in range(5)
        ]
        assert ids == sorted(ids)
        assert len(set(ids)) == 5

    def test_ids_increase_across_failed_attempts(self, engine):
        first = engine.create_asset("A", "ipfs://a", ETH, GALLERY, 5, caller=CREATOR)
        with pytest.raises(InvalidArgument):
            engine.create_asset("B", "ipfs://b", 0, GALLERY, 5, caller=CREATOR)
        with pytest.raises(NotFound):
            engine.create_asset("C", "ipfs://c", ETH, "missing", 5, caller=CREATOR)
        second = engine.create_asset("D", "ipfs://d", ETH, GALLERY, 5, caller=CREATOR)

        assert second > first

    @pytest.mark.parametrize("title,price,royalty", [
        ("", ETH, 10),
        ("Art", 0, 10),
        ("Art", -1, 10),
        ("Art", ETH, -1),
        ("Art", ETH, 101),
    ])
    def test_invalid_arguments(self, engine, title, price, royalty):
        with pytest.raises(InvalidArgument):
            engine.create_asset(title, "ipfs://x", price, GALLERY, royalty, caller=CREATOR)

    def test_royalty_bounds_accepted(self, engine):
        zero = engine.create_asset("Zero", "ipfs://x", ETH, GALLERY, 0, caller=CREATOR)
        full = engine.create_asset("Full", "ipfs://x", ETH, GALLERY, 100, caller=CREATOR)

        assert engine.get_asset(zero).royalty_pct == 0
        assert engine.get_asset(full).royalty_pct == 100

    def test_get_unknown_asset(self, engine):
        with pytest.raises(NotFound):
            engine.get_asset(999)

    def test_snapshot_is_a_copy(self, engine, asset_id):
        asset = engine.get_asset(asset_id)
        asset.owner = "mallory"

        assert engine.owner_of(asset_id) == CREATOR


class TestUpdatePrice:
    """Tests for repricing."""

    def test_owner_can_update(self, engine, asset_id):
        engine.update_price(asset_id, 2 * ETH, caller=CREATOR)
        assert engine.get_asset(asset_id).price == 2 * ETH

    def test_relists_after_sale(self, engine, asset_id):
        engine.purchase(asset_id, ETH, caller=BUYER1)
        assert not engine.get_asset(asset_id).for_sale

        engine.update_price(asset_id, 3 * ETH, caller=BUYER1)
        asset = engine.get_asset(asset_id)
        assert asset.for_sale
        assert asset.price == 3 * ETH

    def test_non_owner_rejected(self, engine, asset_id):
        with pytest.raises(Unauthorized):
            engine.update_price(asset_id, 2 * ETH, caller=BUYER1)

    def test_previous_owner_rejected(self, engine, asset_id):
        engine.purchase(asset_id, ETH, caller=BUYER1)
        with pytest.raises(Unauthorized):
            engine.update_price(asset_id, 2 * ETH, caller=CREATOR)

    def test_invalid_price(self, engine, asset_id):
        with pytest.raises(InvalidArgument):
            engine.update_price(asset_id, 0, caller=CREATOR)
        assert engine.get_asset(asset_id).price == ETH

    def test_unknown_asset(self, engine):
        with pytest.raises(NotFound):
            engine.update_price(42, ETH, caller=CREATOR)


class TestPurchase:
    """Tests for the purchase protocol."""

    def test_primary_sale(self, engine, payments, asset_id):
        receipt = engine.purchase(asset_id, ETH, caller=BUYER1)

        assert receipt.primary_sale
        assert receipt.split.royalty == 0
        assert receipt.split.platform_fee == ETH * 25 // 1000
        assert receipt.split.seller_proceeds == ETH - ETH * 25 // 1000

        assert engine.owner_of(asset_id) == BUYER1
        assert not engine.get_asset(asset_id).for_sale
        assert payments.balance_of(CREATOR) == receipt.split.seller_proceeds
        assert payments.balance_of(ADMIN) == receipt.split.platform_fee

    def test_insufficient_payment(self, engine, asset_id):
        with pytest.raises(InsufficientPayment):
            engine.purchase(asset_id, ETH // 2, caller=BUYER1)
        assert engine.owner_of(asset_id) == CREATOR

    def test_not_for_sale_regardless_of_payment(self, engine, asset_id):
        engine.purchase(asset_id, ETH, caller=BUYER1)
        for payment in (1, ETH, 100 * ETH):
            with pytest.raises(NotForSale):
                engine.purchase(asset_id, payment, caller=BUYER2)

    def test_unknown_asset(self, engine):
        with pytest.raises(NotFound):
            engine.purchase(7, ETH, caller=BUYER1)

    def test_overpayment_is_split_in_full(self, engine, payments, asset_id):
        receipt = engine.purchase(asset_id, 2 * ETH, caller=BUYER1)

        assert receipt.split.payment == 2 * ETH
        assert payments.balance_of(CREATOR) + payments.balance_of(ADMIN) == 2 * ETH

    def test_owner_index_is_historical(self, engine, asset_id):
        engine.purchase(asset_id, ETH, caller=BUYER1)

        assert engine.get_by_owner(BUYER1) == [asset_id]
        assert engine.get_by_owner(CREATOR) == [asset_id]

    def test_full_scenario(self, engine, payments, asset_id):
        """Primary sale, relist, then a secondary sale paying royalty."""
        with pytest.raises(InsufficientPayment):
            engine.purchase(asset_id, ETH // 2, caller=BUYER1)

        first = engine.purchase(asset_id, ETH, caller=BUYER1)
        assert engine.owner_of(asset_id) == BUYER1
        assert first.split.royalty == 0

        engine.update_price(asset_id, ETH, caller=BUYER1)
        second = engine.purchase(asset_id, ETH, caller=BUYER2)

        assert engine.owner_of(asset_id) == BUYER2
        assert second.seller == BUYER1
        assert second.split.royalty == ETH // 10
        assert second.split.platform_fee == 25 * ETH // 1000
        assert second.split.seller_proceeds == 875 * ETH // 1000

        assert payments.balance_of(BUYER1) == 875 * ETH // 1000
        assert payments.balance_of(CREATOR) == first.split.seller_proceeds + ETH // 10
        assert payments.balance_of(ADMIN) == 2 * (25 * ETH // 1000)

    def test_transfer_order(self, engine, payments, asset_id):
        engine.purchase(asset_id, ETH, caller=BUYER1)
        engine.update_price(asset_id, ETH, caller=BUYER1)
        payments.history.clear()

        engine.purchase(asset_id, ETH, caller=BUYER2)

        assert [to for to, _ in payments.history] == [CREATOR, ADMIN, BUYER1]

    def test_events_recorded(self, engine, asset_id):
        engine.purchase(asset_id, ETH, caller=BUYER1)
        engine.update_price(asset_id, ETH, caller=BUYER1)
        engine.purchase(asset_id, ETH, caller=BUYER2)

        sold = [e for e in engine.events if e.event_type == ASSET_SOLD]
        royalties = [e for e in engine.events if e.event_type == ROYALTY_PAID]

        assert [e.payload["buyer"] for e in sold] == [BUYER1, BUYER2]
        assert sold[1].payload["seller"] == BUYER1
        assert sold[1].payload["payment"] == ETH
        assert len(royalties) == 1
        assert royalties[0].payload["creator"] == CREATOR
        assert royalties[0].payload["amount"] == ETH // 10

    def test_cuts_exceeding_payment_rejected(self, engine, payments):
        aid = engine.create_asset("All royalty", "ipfs://x", ETH, GALLERY, 100, caller=CREATOR)
        engine.purchase(aid, ETH, caller=BUYER1)
        engine.update_price(aid, ETH, caller=BUYER1)
        balances = payments.balances()

        with pytest.raises(InvalidArgument):
            engine.purchase(aid, ETH, caller=BUYER2)

        assert engine.owner_of(aid) == BUYER1
        assert payments.balances() == balances

    def test_zero_royalty_emits_no_royalty_event(self, engine):
        aid = engine.create_asset("Free", "ipfs://x", ETH, GALLERY, 0, caller=CREATOR)
        engine.purchase(aid, ETH, caller=BUYER1)
        engine.update_price(aid, ETH, caller=BUYER1)
        engine.purchase(aid, ETH, caller=BUYER2)

        assert not [e for e in engine.events if e.event_type == ROYALTY_PAID]


class TestPurchaseAtomicity:
    """A rejected payout rolls the whole purchase back."""

    def _secondary_setup(self, engine, asset_id):
        engine.purchase(asset_id, ETH, caller=BUYER1)
        engine.update_price(asset_id, ETH, caller=BUYER1)

    def test_rejected_seller_transfer_rolls_back(self, engine, payments, asset_id):
        self._secondary_setup(engine, asset_id)
        balances_before = payments.balances()
        events_before = len(engine.events)

        payments.rejecting.add(BUYER1)
        with pytest.raises(TransferFailed):
            engine.purchase(asset_id, ETH, caller=BUYER2)

        asset = engine.get_asset(asset_id)
        assert asset.owner == BUYER1
        assert asset.for_sale
        assert engine.get_by_owner(BUYER2) == []
        assert len(engine.events) == events_before
        assert payments.balances() == balances_before

    def test_rejected_fee_transfer_rolls_back(self, engine, payments, asset_id):
        payments.rejecting.add(ADMIN)
        with pytest.raises(TransferFailed):
            engine.purchase(asset_id, ETH, caller=BUYER1)

        assert engine.owner_of(asset_id) == CREATOR
        assert engine.get_asset(asset_id).for_sale
        assert payments.balance_of(CREATOR) == 0

    def test_retry_after_failure_succeeds(self, engine, payments, asset_id):
        payments.rejecting.add(CREATOR)
        with pytest.raises(TransferFailed):
            engine.purchase(asset_id, ETH, caller=BUYER1)

        payments.rejecting.clear()
        receipt = engine.purchase(asset_id, ETH, caller=BUYER1)
        assert receipt.buyer == BUYER1

    def test_raising_substrate_rolls_back(self, engine, asset_id):
        engine.purchase(asset_id, ETH, caller=BUYER1)
        engine.update_price(asset_id, ETH, caller=BUYER1)

        class ExplodingLedger(BalanceLedger):
            def transfer(self, to_identity, amount):
                if to_identity == ADMIN:
                    raise ConnectionError("payment rail down")
                return super().transfer(to_identity, amount)

        engine.payments = ExplodingLedger()
        with pytest.raises(TransferFailed) as exc_info:
            engine.purchase(asset_id, ETH, caller=BUYER2)

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert engine.owner_of(asset_id) == BUYER1
        # The royalty went out before the fee transfer raised
        assert engine.payments.history == [(CREATOR, ETH // 10), (CREATOR, -(ETH // 10))]
        assert engine.payments.balance_of(CREATOR) == 0


class TestReentrancy:
    """Calls made from inside a payout see the already-updated state."""

    def test_reentrant_purchase_sees_not_for_sale(self, engine, payments, asset_id):
        seen = []

        def hook(to_identity, amount):
            if seen:
                return
            try:
                engine.purchase(asset_id, ETH, caller="attacker")
            except NotForSale as e:
                seen.append(e)

        payments.on_transfer = hook
        receipt = engine.purchase(asset_id, ETH, caller=BUYER1)

        assert len(seen) == 1
        assert receipt.buyer == BUYER1
        assert engine.owner_of(asset_id) == BUYER1
        assert len([e for e in engine.events if e.event_type == ASSET_SOLD]) == 1

    def test_failed_nested_call_is_undone(self, engine, payments, asset_id):
        other = engine.create_asset("Other", "ipfs://o", ETH, GALLERY, 10, caller=CREATOR)
        seen = []

        def hook(to_identity, amount):
            if seen:
                return
            try:
                # Nested purchase of another asset whose payouts fail
                payments.rejecting.add(ADMIN)
                engine.purchase(other, ETH, caller="nested")
            except TransferFailed as e:
                seen.append(e)
            finally:
                payments.rejecting.discard(ADMIN)

        payments.on_transfer = hook
        engine.purchase(asset_id, ETH, caller=BUYER1)

        assert len(seen) == 1
        assert engine.owner_of(asset_id) == BUYER1
        assert engine.owner_of(other) == CREATOR
        assert engine.get_asset(other).for_sale

    def test_outer_rollback_reverses_nested_payouts(self, engine, payments, asset_id):
        engine.purchase(asset_id, ETH, caller=BUYER1)
        engine.update_price(asset_id, ETH, caller=BUYER1)
        other = engine.create_asset("Other", "ipfs://o", ETH, GALLERY, 0, caller="carol")
        identities = [CREATOR, ADMIN, BUYER1, BUYER2, "carol"]
        before = {name: payments.balance_of(name) for name in identities}
        nested = []

        def hook(to_identity, amount):
            if to_identity == ADMIN and not nested:
                nested.append(None)
                nested[0] = engine.purchase(other, ETH, caller=BUYER2)

        payments.on_transfer = hook
        payments.rejecting.add(BUYER1)
        with pytest.raises(TransferFailed):
            engine.purchase(asset_id, ETH, caller="collector")

        assert nested[0].buyer == BUYER2
        assert engine.owner_of(asset_id) == BUYER1
        assert engine.owner_of(other) == "carol"
        assert engine.get_asset(other).for_sale
        assert {name: payments.balance_of(name) for name in identities} == before
        assert [e.event_type for e in engine.events].count(ASSET_SOLD) == 1



class TestConcurrency:
    """Mutations are serialized through a single writer."""

    def test_concurrent_purchases_single_winner(self, engine, payments, asset_id):
        results = []
        lock = threading.Lock()

        def buy(name):
            try:
                engine.purchase(asset_id, ETH, caller=name)
                outcome = "ok"
            except NotForSale:
                outcome = "not-for-sale"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=buy, args=(f"buyer{i}",)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("not-for-sale") == 9

    def test_concurrent_creation_unique_ids(self, engine):
        ids = []
        lock = threading.Lock()

        def create(i):
            aid = engine.create_asset(f"Art {i}", "ipfs://x", ETH, GALLERY, 5, caller=CREATOR)
            with lock:
                ids.append(aid)

        threads = [threading.Thread(target=create, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(ids)) == 20
        assert engine.get_artworks(GALLERY) == sorted(ids)

    def test_readers_see_committed_state_during_payout(self, engine, payments, asset_id):
        observed = {}

        def hook(to_identity, amount):
            if observed:
                return

            def read():
                observed["owner"] = engine.owner_of(asset_id)

            reader = threading.Thread(target=read)
            reader.start()
            reader.join()

        payments.on_transfer = hook
        engine.purchase(asset_id, ETH, caller=BUYER1)

        assert observed["owner"] == CREATOR
        assert engine.owner_of(asset_id) == BUYER1


class TestReviews:
    """Tests for reviews and ratings."""

    def test_add_review(self, engine, asset_id):
        review = engine.add_review(asset_id, "Great artwork!", 5, caller=BUYER1)

        assert review.rating == 5
        asset = engine.get_asset(asset_id)
        assert asset.rating_count == 1
        assert asset.rating_sum == 5
        assert engine.get_reviews(asset_id)[0].comment == "Great artwork!"

    def test_duplicate_rating_rejected(self, engine, asset_id):
        engine.add_review(asset_id, "First review", 4, caller=BUYER1)
        with pytest.raises(AlreadyRated):
            engine.add_review(asset_id, "Second review", 5, caller=BUYER1)

        asset = engine.get_asset(asset_id)
        assert asset.rating_count == 1
        assert asset.rating_sum == 4
        assert len(engine.get_reviews(asset_id)) == 1

    def test_average_is_truncated(self, engine, asset_id):
        engine.add_review(asset_id, "Review 1", 4, caller=BUYER1)
        engine.add_review(asset_id, "Review 2", 2, caller=BUYER2)
        assert engine.get_asset(asset_id).average_rating == 3

        engine.add_review(asset_id, "Review 3", 2, caller="third")
        # 8 / 3 = 2.67, truncated
        assert engine.get_asset(asset_id).average_rating == 2

    @pytest.mark.parametrize("rating", [0, 6, -1])
    def test_rating_out_of_range(self, engine, asset_id, rating):
        with pytest.raises(InvalidArgument):
            engine.add_review(asset_id, "bad", rating, caller=BUYER1)
        assert engine.get_asset(asset_id).rating_count == 0

    def test_review_unknown_asset(self, engine):
        with pytest.raises(NotFound):
            engine.add_review(99, "?", 3, caller=BUYER1)

    def test_same_reviewer_different_assets(self, engine, asset_id):
        other = engine.create_asset("Other", "ipfs://o", ETH, GALLERY, 0, caller=CREATOR)
        engine.add_review(asset_id, "a", 3, caller=BUYER1)
        engine.add_review(other, "b", 5, caller=BUYER1)

        assert engine.get_asset(other).average_rating == 5


class TestFees:
    """Tests for platform fee administration."""

    def test_default_rate(self, engine):
        assert engine.platform_fee_rate == 25

    def test_update_fee(self, engine):
        engine.update_fee(30, caller=ADMIN)
        assert engine.platform_fee_rate == 30

    def test_non_admin_rejected(self, engine):
        with pytest.raises(Unauthorized):
            engine.update_fee(30, caller=CREATOR)
        assert engine.platform_fee_rate == 25

    def test_fee_above_ten_percent(self, engine):
        with pytest.raises(InvalidArgument):
            engine.update_fee(101, caller=ADMIN)

    def test_new_rate_applies_to_purchases(self, engine, payments, asset_id):
        engine.update_fee(30, caller=ADMIN)
        receipt = engine.purchase(asset_id, ETH, caller=BUYER1)

        assert receipt.split.platform_fee == 30 * ETH // 1000
        assert payments.balance_of(ADMIN) == 30 * ETH // 1000

    def test_zero_fee_skips_admin_transfer(self, engine, payments, asset_id):
        engine.update_fee(0, caller=ADMIN)
        engine.purchase(asset_id, ETH, caller=BUYER1)

        assert payments.balance_of(ADMIN) == 0
        assert payments.balance_of(CREATOR) == ETH
