"""Shared fixtures for the governance voting test suite"""

import sys
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from governance.authorization import RoleBasedPolicy  # noqa: E402
from governance.events import EventLog  # noqa: E402
from governance.ledger import InMemoryTokenLedger, ManualClock  # noqa: E402
from governance.private_voting import PrivateGovernance  # noqa: E402
from governance.proposals import VotingParameters  # noqa: E402
from governance.public_voting import PublicGovernance  # noqa: E402
from governance.reputation import ReputationManager  # noqa: E402
from zk.commitments import VoterCredential  # noqa: E402
from zk.merkle import TreeEpoch  # noqa: E402
from zk.prover import WitnessProver  # noqa: E402
from zk.verifier import WitnessProofVerifier  # noqa: E402

TOKEN = 10 ** 18
HOUR = 3600
DAY = 24 * HOUR
WEEK = 7 * DAY

ADMIN = "0x" + "a" * 40
ALICE = "0x" + "1" * 40
BOB = "0x" + "2" * 40
CAROL = "0x" + "3" * 40
DAVE = "0x" + "4" * 40


@pytest.fixture
def clock():
    return ManualClock(start=1_700_000_000)


@pytest.fixture
def policy():
    return RoleBasedPolicy([ADMIN])


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def ledger():
    return InMemoryTokenLedger({
        ALICE: 1000 * TOKEN,
        BOB: 500 * TOKEN,
    })


@pytest.fixture
def reputation(policy, events, clock):
    return ReputationManager(policy, events, clock)


@pytest.fixture
def voting_params():
    return VotingParameters(proposal_threshold=100 * TOKEN)


@pytest.fixture
def public_gov(ledger, reputation, policy, clock, events, voting_params):
    return PublicGovernance(
        ledger=ledger,
        reputation=reputation,
        policy=policy,
        clock=clock,
        events=events,
        voting_params=voting_params,
    )


@pytest.fixture
def registered_public(public_gov):
    """Public governance with ALICE, BOB and CAROL registered"""
    public_gov.batch_register_voters(ADMIN, [ALICE, BOB, CAROL])
    return public_gov


@pytest.fixture
def private_gov(policy, clock, events, voting_params):
    return PrivateGovernance(
        verifier=WitnessProofVerifier(),
        policy=policy,
        clock=clock,
        events=events,
        voting_params=voting_params,
        epoch=TreeEpoch(number=0, depth=4),
    )


@pytest.fixture
def credentials():
    return [VoterCredential.from_secret(s) for s in (11111, 22222, 33333, 44444)]


@pytest.fixture
def prover():
    return WitnessProver()
