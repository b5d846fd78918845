"""Tests for reputation records and updater entry points"""

import pytest

from governance.exceptions import AuthorizationError, DuplicateError, StateError, ValidationError
from governance.reputation import DEFAULT_REPUTATION, MAX_REPUTATION, MIN_REPUTATION

from conftest import ADMIN, ALICE, BOB, CAROL, DAY


class TestInitialization:

    def test_admin_initializes(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE, 300)
        record = reputation.get_record(ALICE)
        assert record.score == 300
        assert record.active
        assert reputation.get_score(ALICE) == 300

    def test_default_score(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE)
        assert reputation.get_score(ALICE) == DEFAULT_REPUTATION

    def test_double_initialize(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE)
        with pytest.raises(DuplicateError):
            reputation.initialize_reputation(ADMIN, ALICE)

    @pytest.mark.parametrize("score", [MIN_REPUTATION - 1, MAX_REPUTATION + 1, -5, True])
    def test_score_bounds(self, reputation, score):
        with pytest.raises(ValidationError):
            reputation.initialize_reputation(ADMIN, ALICE, score)
        assert reputation.get_record(ALICE) is None

    def test_non_updater_rejected(self, reputation):
        with pytest.raises(AuthorizationError):
            reputation.initialize_reputation(BOB, ALICE)

    def test_absent_subject_reads(self, reputation):
        assert reputation.get_score(ALICE) == 0
        assert not reputation.has_active_reputation(ALICE)
        assert reputation.get_reputation_weight_bps(ALICE) == 0


class TestUpdaters:

    def test_added_updater_can_update(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE)
        reputation.add_updater(ADMIN, BOB)
        assert reputation.is_updater(BOB)

        reputation.update_reputation(BOB, ALICE, 900)
        assert reputation.get_score(ALICE) == 900

    def test_removed_updater_loses_access(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE)
        reputation.add_updater(ADMIN, BOB)
        reputation.remove_updater(ADMIN, BOB)
        with pytest.raises(AuthorizationError):
            reputation.update_reputation(BOB, ALICE, 10)

    def test_only_admin_manages_updaters(self, reputation):
        reputation.add_updater(ADMIN, BOB)
        with pytest.raises(AuthorizationError):
            reputation.add_updater(BOB, CAROL)

    def test_updater_bookkeeping_errors(self, reputation):
        reputation.add_updater(ADMIN, BOB)
        with pytest.raises(DuplicateError):
            reputation.add_updater(ADMIN, BOB)
        with pytest.raises(StateError):
            reputation.remove_updater(ADMIN, CAROL)


class TestUpdates:

    def test_update_uninitialized(self, reputation):
        with pytest.raises(StateError, match="not initialized"):
            reputation.update_reputation(ADMIN, ALICE, 10)

    def test_update_records_timestamp(self, reputation, clock):
        reputation.initialize_reputation(ADMIN, ALICE)
        clock.advance(DAY)
        reputation.update_reputation(ADMIN, ALICE, 75)
        assert reputation.get_record(ALICE).last_updated == clock.now()

    def test_batch_update(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE)
        reputation.initialize_reputation(ADMIN, BOB)
        reputation.batch_update_reputation(ADMIN, [ALICE, BOB], [10, 20])
        assert reputation.get_score(ALICE) == 10
        assert reputation.get_score(BOB) == 20

    def test_batch_length_mismatch(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE)
        with pytest.raises(ValidationError, match="length mismatch"):
            reputation.batch_update_reputation(ADMIN, [ALICE], [10, 20])

    def test_batch_is_all_or_nothing(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE)
        reputation.initialize_reputation(ADMIN, BOB)
        with pytest.raises(ValidationError):
            reputation.batch_update_reputation(ADMIN, [ALICE, BOB], [10, MAX_REPUTATION + 1])
        assert reputation.get_score(ALICE) == DEFAULT_REPUTATION

    def test_returned_record_is_a_copy(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE)
        record = reputation.get_record(ALICE)
        record.score = 999
        assert reputation.get_score(ALICE) == DEFAULT_REPUTATION


class TestActivation:

    def test_deactivate_zeroes_score(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE, 500)
        reputation.deactivate_user(ADMIN, ALICE)
        assert reputation.get_score(ALICE) == 0
        assert not reputation.has_active_reputation(ALICE)
        assert reputation.get_record(ALICE).score == 500

    def test_deactivate_twice(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE)
        reputation.deactivate_user(ADMIN, ALICE)
        with pytest.raises(StateError):
            reputation.deactivate_user(ADMIN, ALICE)

    def test_reactivate(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE, 500)
        with pytest.raises(StateError):
            reputation.reactivate_user(ADMIN, ALICE)
        reputation.deactivate_user(ADMIN, ALICE)
        reputation.reactivate_user(ADMIN, ALICE)
        assert reputation.get_score(ALICE) == 500


class TestWeightBps:

    def test_linear_mapping(self, reputation):
        reputation.initialize_reputation(ADMIN, ALICE, MIN_REPUTATION)
        reputation.initialize_reputation(ADMIN, BOB, MAX_REPUTATION)
        assert reputation.get_reputation_weight_bps(ALICE) == 100
        assert reputation.get_reputation_weight_bps(BOB) == 10_000

    def test_events_emitted(self, reputation, events):
        reputation.initialize_reputation(ADMIN, ALICE, 100)
        reputation.update_reputation(ADMIN, ALICE, 200)
        names = [e.name for e in events.events()]
        assert names == ["ReputationInitialized", "ReputationUpdated"]
        assert events.events("ReputationUpdated")[0].data["new_score"] == 200
