"""Tests for public token + reputation weighted governance"""

import pytest

from governance.exceptions import (
    AuthorizationError,
    DuplicateError,
    ParameterError,
    StateError,
    ValidationError,
)
from governance.ledger import AllowListEligibility
from governance.proposals import ProposalState, QuorumBasis, VotingParameters
from governance.public_voting import PublicGovernance
from governance.tally import Support

from conftest import ADMIN, ALICE, BOB, CAROL, DAVE, HOUR, TOKEN, WEEK

ALICE_WEIGHT = 700 * TOKEN + 15 * TOKEN
BOB_WEIGHT = 350 * TOKEN + 15 * TOKEN
CAROL_WEIGHT = 15 * TOKEN


def open_proposal(gov, proposer=ALICE, **thresholds):
    proposal_id = gov.submit_proposal(proposer, "Fund grants", "Allocate Q3 budget", **thresholds)
    gov.clock.advance(HOUR)
    gov.start_voting(proposer, proposal_id)
    return proposal_id


def end_voting(gov):
    gov.clock.advance(WEEK)


class TestRegistration:

    def test_admin_registers(self, public_gov, reputation):
        assert public_gov.register_voter(ADMIN, ALICE) == ALICE
        assert public_gov.is_voter_registered(ALICE)
        assert reputation.get_score(ALICE) == 50

    def test_non_admin_rejected(self, public_gov):
        with pytest.raises(AuthorizationError):
            public_gov.register_voter(BOB, ALICE)
        assert not public_gov.is_voter_registered(ALICE)

    def test_duplicate_registration(self, registered_public):
        with pytest.raises(DuplicateError):
            registered_public.register_voter(ADMIN, ALICE)

    def test_batch_is_all_or_nothing(self, public_gov, events):
        with pytest.raises(DuplicateError):
            public_gov.batch_register_voters(ADMIN, [ALICE, BOB, ALICE])
        assert not public_gov.is_voter_registered(ALICE)
        assert events.events("VoterRegistered") == []

    def test_empty_batch(self, public_gov):
        with pytest.raises(ValidationError):
            public_gov.batch_register_voters(ADMIN, [])

    def test_existing_reputation_kept(self, public_gov, reputation):
        reputation.initialize_reputation(ADMIN, ALICE, 700)
        public_gov.register_voter(ADMIN, ALICE)
        assert reputation.get_score(ALICE) == 700

    def test_ineligible_address_rejected(self, ledger, reputation, policy, clock, events):
        gov = PublicGovernance(ledger, reputation, policy, clock, events,
                               eligibility=AllowListEligibility([ALICE]))
        assert gov.register_voter(ADMIN, ALICE) == ALICE
        with pytest.raises(AuthorizationError, match="not eligible"):
            gov.register_voter(ADMIN, BOB)
        assert not gov.is_voter_registered(BOB)

    def test_ineligible_address_fails_whole_batch(self, ledger, reputation, policy, clock, events):
        gov = PublicGovernance(ledger, reputation, policy, clock, events,
                               eligibility=AllowListEligibility([ALICE, BOB]))
        with pytest.raises(AuthorizationError):
            gov.batch_register_voters(ADMIN, [ALICE, BOB, CAROL])
        assert not gov.is_voter_registered(ALICE)
        assert reputation.get_record(ALICE) is None
        assert events.events("VoterRegistered") == []


class TestVotingPower:

    def test_blended_weight(self, registered_public):
        assert registered_public.get_voting_power_of(ALICE) == ALICE_WEIGHT
        assert registered_public.get_voting_power_of(BOB) == BOB_WEIGHT
        assert registered_public.get_voting_power_of(CAROL) == CAROL_WEIGHT

    def test_update_weight_parameters(self, registered_public):
        registered_public.update_weight_parameters(ADMIN, 10_000, 0)
        assert registered_public.get_voting_power_of(ALICE) == 1000 * TOKEN
        assert registered_public.get_voting_power_of(CAROL) == 0

    def test_invalid_weight_parameters_unchanged(self, registered_public):
        with pytest.raises(ParameterError):
            registered_public.update_weight_parameters(ADMIN, 7000, 2000)
        assert registered_public.weight_params.token_weight_bps == 7000

    def test_weight_parameters_admin_only(self, registered_public):
        with pytest.raises(AuthorizationError):
            registered_public.update_weight_parameters(ALICE, 8000, 2000)

    def test_eligible_weight_registered_basis(self, registered_public):
        assert registered_public.eligible_weight() == ALICE_WEIGHT + BOB_WEIGHT + CAROL_WEIGHT

    def test_eligible_weight_total_supply_basis(self, ledger, reputation, policy, clock, events):
        gov = PublicGovernance(
            ledger, reputation, policy, clock, events,
            voting_params=VotingParameters(quorum_basis=QuorumBasis.TOTAL_SUPPLY),
        )
        assert gov.eligible_weight() == 1500 * TOKEN


class TestProposals:

    def test_ids_start_at_one(self, registered_public, clock):
        first = registered_public.submit_proposal(ALICE, "One", "First")
        second = registered_public.submit_proposal(BOB, "Two", "Second")
        assert (first, second) == (1, 2)

        proposal = registered_public.get_proposal(first)
        assert proposal.state is ProposalState.PENDING
        assert proposal.voting_start == clock.now() + HOUR
        assert proposal.voting_deadline == proposal.voting_start + WEEK
        assert proposal.eligible_weight == ALICE_WEIGHT + BOB_WEIGHT + CAROL_WEIGHT

    def test_unregistered_proposer(self, registered_public):
        with pytest.raises(AuthorizationError, match="Only registered voters"):
            registered_public.submit_proposal(DAVE, "Title", "Body")

    def test_below_proposal_threshold(self, registered_public):
        with pytest.raises(AuthorizationError, match="Insufficient tokens to create proposal"):
            registered_public.submit_proposal(CAROL, "Title", "Body")
        assert registered_public.proposal_count == 0

    @pytest.mark.parametrize("title,description", [("", "Body"), ("   ", "Body"), ("Title", "")])
    def test_empty_text(self, registered_public, title, description):
        with pytest.raises(ValidationError):
            registered_public.submit_proposal(ALICE, title, description)

    def test_negative_threshold(self, registered_public):
        with pytest.raises(ValidationError):
            registered_public.submit_proposal(ALICE, "Title", "Body", min_token_threshold=-1)

    def test_unknown_proposal(self, registered_public):
        with pytest.raises(ValidationError, match="Invalid proposal ID"):
            registered_public.get_proposal(99)
        with pytest.raises(ValidationError):
            registered_public.start_voting(ALICE, 0)

    def test_start_before_delay(self, registered_public):
        proposal_id = registered_public.submit_proposal(ALICE, "Title", "Body")
        with pytest.raises(StateError):
            registered_public.start_voting(ALICE, proposal_id)

    def test_parameter_change_applies_to_new_proposals_only(self, registered_public):
        first = registered_public.submit_proposal(ALICE, "One", "First")
        registered_public.update_voting_parameters(ADMIN, 0, 2 * WEEK, 100 * TOKEN, 10)
        second = registered_public.submit_proposal(ALICE, "Two", "Second")

        assert registered_public.get_proposal(first).quorum_percentage == 40
        assert registered_public.get_proposal(second).quorum_percentage == 10
        assert registered_public.get_proposal(second).voting_deadline == \
            registered_public.get_proposal(second).created_at + 2 * WEEK

    def test_invalid_parameter_change_rejected(self, registered_public, events):
        with pytest.raises(ValidationError):
            registered_public.update_voting_parameters(ADMIN, HOUR, WEEK, 0, 0)
        assert registered_public.voting_params.quorum_percentage == 40
        assert events.events("VotingParametersUpdated") == []

    def test_parameter_change_admin_only(self, registered_public):
        with pytest.raises(AuthorizationError):
            registered_public.update_voting_parameters(ALICE, HOUR, WEEK, 0, 50)


class TestVoting:

    def test_weighted_vote_recorded(self, registered_public, events):
        proposal_id = open_proposal(registered_public)
        weight = registered_public.cast_vote(BOB, proposal_id, "yes")

        assert weight == BOB_WEIGHT
        assert registered_public.has_voted(proposal_id, BOB)
        assert registered_public.get_vote(proposal_id, BOB).support is Support.YES
        assert registered_public.get_proposal(proposal_id).yes_weight == BOB_WEIGHT
        vote_event = events.events("VoteCast")[-1]
        assert vote_event.data == {"proposal_id": proposal_id, "voter": BOB,
                                   "support": "yes", "weight": BOB_WEIGHT}

    def test_double_vote(self, registered_public):
        proposal_id = open_proposal(registered_public)
        registered_public.cast_vote(BOB, proposal_id, True)
        with pytest.raises(DuplicateError, match="Already voted on this proposal"):
            registered_public.cast_vote(BOB, proposal_id, False)
        assert registered_public.get_proposal(proposal_id).total_weight == BOB_WEIGHT

    def test_unregistered_voter(self, registered_public):
        proposal_id = open_proposal(registered_public)
        with pytest.raises(AuthorizationError):
            registered_public.cast_vote(DAVE, proposal_id, 1)

    def test_invalid_support(self, registered_public):
        proposal_id = open_proposal(registered_public)
        with pytest.raises(ValidationError):
            registered_public.cast_vote(BOB, proposal_id, "maybe")

    def test_pending_proposal_rejects_votes(self, registered_public):
        proposal_id = registered_public.submit_proposal(ALICE, "Title", "Body")
        with pytest.raises(StateError, match="Proposal not active"):
            registered_public.cast_vote(BOB, proposal_id, 1)

    def test_vote_after_deadline(self, registered_public):
        proposal_id = open_proposal(registered_public)
        end_voting(registered_public)
        with pytest.raises(StateError, match="Voting period has ended"):
            registered_public.cast_vote(BOB, proposal_id, 1)

    def test_token_threshold(self, registered_public):
        proposal_id = open_proposal(registered_public, min_token_threshold=600 * TOKEN)
        with pytest.raises(AuthorizationError, match="Insufficient tokens to vote"):
            registered_public.cast_vote(BOB, proposal_id, 1)
        assert registered_public.cast_vote(ALICE, proposal_id, 1) == ALICE_WEIGHT

    def test_reputation_threshold(self, registered_public, reputation):
        proposal_id = open_proposal(registered_public, min_reputation_threshold=100)
        with pytest.raises(AuthorizationError, match="Insufficient reputation to vote"):
            registered_public.cast_vote(BOB, proposal_id, 1)
        reputation.update_reputation(ADMIN, BOB, 100)
        registered_public.cast_vote(BOB, proposal_id, 1)

    def test_zero_power_rejected(self, registered_public, reputation):
        reputation.deactivate_user(ADMIN, CAROL)
        proposal_id = open_proposal(registered_public)
        with pytest.raises(AuthorizationError, match="No voting power"):
            registered_public.cast_vote(CAROL, proposal_id, 1)
        assert not registered_public.has_voted(proposal_id, CAROL)

    def test_weight_read_at_vote_time(self, registered_public, ledger):
        proposal_id = open_proposal(registered_public)
        ledger.transfer(ALICE, BOB, 500 * TOKEN)
        assert registered_public.cast_vote(BOB, proposal_id, 1) == 700 * TOKEN + 15 * TOKEN


class TestFinalization:

    def test_majority_without_quorum_defeated(self, registered_public):
        proposal_id = open_proposal(registered_public)
        registered_public.cast_vote(BOB, proposal_id, 1)
        end_voting(registered_public)
        assert registered_public.finalize_proposal(CAROL, proposal_id) is ProposalState.DEFEATED

    def test_majority_with_quorum_succeeds(self, registered_public, events):
        proposal_id = open_proposal(registered_public)
        registered_public.cast_vote(ALICE, proposal_id, 1)
        registered_public.cast_vote(BOB, proposal_id, 0)
        end_voting(registered_public)

        assert registered_public.finalize_proposal(ALICE, proposal_id) is ProposalState.SUCCEEDED
        proposal = registered_public.get_proposal(proposal_id)
        assert proposal.total_weight == proposal.yes_weight + proposal.no_weight + proposal.abstain_weight
        assert events.events("ProposalStateChanged")[-1].data["new_state"] == "succeeded"

    def test_finalize_before_deadline(self, registered_public):
        proposal_id = open_proposal(registered_public)
        with pytest.raises(StateError, match="Voting period not ended"):
            registered_public.finalize_proposal(ALICE, proposal_id)

    def test_finalize_twice(self, registered_public):
        proposal_id = open_proposal(registered_public)
        end_voting(registered_public)
        registered_public.finalize_proposal(ALICE, proposal_id)
        with pytest.raises(StateError):
            registered_public.finalize_proposal(ALICE, proposal_id)

    def test_list_by_state(self, registered_public):
        first = open_proposal(registered_public)
        registered_public.submit_proposal(ALICE, "Later", "Pending one")
        active = registered_public.list_proposals(ProposalState.ACTIVE)
        assert [p.id for p in active] == [first]
        assert len(registered_public.list_proposals()) == 2


class TestCancellation:

    def test_proposer_cancels(self, registered_public):
        proposal_id = registered_public.submit_proposal(ALICE, "Title", "Body")
        registered_public.cancel_proposal(ALICE, proposal_id)
        assert registered_public.get_proposal(proposal_id).state is ProposalState.CANCELLED

    def test_admin_cancels(self, registered_public):
        proposal_id = open_proposal(registered_public)
        registered_public.cancel_proposal(ADMIN, proposal_id)
        with pytest.raises(StateError):
            registered_public.cast_vote(BOB, proposal_id, 1)

    def test_other_voter_cannot_cancel(self, registered_public):
        proposal_id = registered_public.submit_proposal(ALICE, "Title", "Body")
        with pytest.raises(AuthorizationError, match="Only proposer or owner can cancel"):
            registered_public.cancel_proposal(BOB, proposal_id)

    def test_cannot_cancel_finalized(self, registered_public):
        proposal_id = open_proposal(registered_public)
        end_voting(registered_public)
        registered_public.finalize_proposal(ALICE, proposal_id)
        with pytest.raises(StateError):
            registered_public.cancel_proposal(ALICE, proposal_id)


class TestAtomicity:

    def test_failed_operation_emits_nothing(self, registered_public, events):
        proposal_id = open_proposal(registered_public)
        before = len(events)
        with pytest.raises(AuthorizationError):
            registered_public.cast_vote(DAVE, proposal_id, 1)
        assert len(events) == before

    def test_empty_event_log_is_shared(self, public_gov, reputation, events):
        assert len(events) == 0
        assert public_gov.events is events
        assert reputation.events is events

        seen = []
        events.subscribe(lambda event: seen.append(event.name))
        public_gov.register_voter(ADMIN, ALICE)
        assert "VoterRegistered" in seen

    def test_failing_subscriber_does_not_fail_operation(self, registered_public, events):
        proposal_id = open_proposal(registered_public)
        seen = []

        def broken(event):
            raise RuntimeError("subscriber down")

        events.subscribe(broken)
        events.subscribe(lambda event: seen.append(event.name))
        registered_public.cast_vote(BOB, proposal_id, 1)

        assert registered_public.has_voted(proposal_id, BOB)
        assert registered_public.get_proposal(proposal_id).yes_weight == BOB_WEIGHT
        assert seen == ["VoteCast"]
        assert events.events("VoteCast")

    def test_subscriber_reentry_rejected(self, registered_public, events):
        proposal_id = open_proposal(registered_public)
        errors = []

        def reenter(event):
            if event.name == "VoteCast":
                try:
                    registered_public.cast_vote(CAROL, proposal_id, 1)
                except StateError as e:
                    errors.append(e)

        events.subscribe(reenter)
        registered_public.cast_vote(BOB, proposal_id, 1)

        assert len(errors) == 1
        assert errors[0].reason == "Reentrant call rejected"
        assert not registered_public.has_voted(proposal_id, CAROL)

    def test_export_state(self, registered_public):
        proposal_id = open_proposal(registered_public)
        registered_public.cast_vote(ALICE, proposal_id, "abstain")
        state = registered_public.export_state()
        assert state["mode"] == "public"
        assert state["voters"] == [ALICE, BOB, CAROL]
        assert state["votes"][0]["support"] == "abstain"
        assert state["weight_parameters"]["rep_scale"] == 10 ** 18
