import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from config.config import SystemConfig, load_config
from governance.exceptions import GovernanceError
from governance.ledger import ManualClock
from governance_voting_system import GovernanceVotingSystem
from utils.utils import create_performance_report, save_results, setup_logging
from zk.commitments import VoterCredential, compute_nullifier
from zk.merkle import MerkleTree
from zk.poseidon import parse_field_element, to_field_hex
from zk.prover import SnarkjsProver
from zk.verifier import ZKError

logger = logging.getLogger(__name__)

DEMO_ADMIN = "0x" + "a" * 40
DEMO_VOTERS = [f"0x{i:040x}" for i in range(1, 6)]
TOKEN = 10 ** 18

# ============================================================================
# OFF-CHAIN TOOLING
# ============================================================================


def cmd_commitment(args) -> Dict[str, Any]:
    if args.secret is None:
        credential = VoterCredential.generate()
    else:
        credential = VoterCredential.from_secret(args.secret)
    return {
        "secret": str(credential.secret),
        "commitment": str(credential.commitment),
        "commitmentHex": to_field_hex(credential.commitment),
    }


def cmd_nullifier(args) -> Dict[str, Any]:
    nullifier = compute_nullifier(args.secret, args.proposal_id)
    return {
        "proposalId": args.proposal_id,
        "nullifier": str(nullifier),
        "nullifierHex": to_field_hex(nullifier),
    }


def _load_commitments(args) -> List[int]:
    values = list(args.commitments)
    if args.file:
        values.extend(json.loads(Path(args.file).read_text()))
    if not values:
        raise ValueError("No commitments given")
    return [parse_field_element(v) for v in values]


def cmd_build_root(args) -> Dict[str, Any]:
    tree = MerkleTree.build(_load_commitments(args), args.depth)
    return {"depth": tree.depth, "leaves": len(tree), "root": str(tree.root),
            "rootHex": to_field_hex(tree.root)}


def cmd_merkle_proof(args) -> Dict[str, Any]:
    tree = MerkleTree.build(_load_commitments(args), args.depth)
    return tree.get_proof(args.index).to_dict()


# ============================================================================
# DEMONSTRATIONS
# ============================================================================


def run_public_demo(config: SystemConfig) -> Tuple[Dict[str, Any], GovernanceVotingSystem]:
    clock = ManualClock()
    system = GovernanceVotingSystem(config, [DEMO_ADMIN], clock=clock)

    for i, voter in enumerate(DEMO_VOTERS):
        system.ledger.mint(voter, (i + 1) * 2000 * TOKEN)
    system.public.batch_register_voters(DEMO_ADMIN, DEMO_VOTERS)
    system.reputation.update_reputation(DEMO_ADMIN, DEMO_VOTERS[0], 400)

    proposal_id = system.public.submit_proposal(
        DEMO_VOTERS[0], "Fund audit", "Allocate treasury funds for an external audit")
    clock.advance(config.voting_config.voting_delay)
    system.public.start_voting(DEMO_VOTERS[0], proposal_id)

    choices = [True, True, False, True, "abstain"]
    for voter, choice in zip(DEMO_VOTERS, choices):
        with system.performance_monitor.start_operation("cast_vote"):
            system.public.cast_vote(voter, proposal_id, choice)

    clock.advance(config.voting_config.voting_period)
    outcome = system.public.finalize_proposal(DEMO_VOTERS[0], proposal_id)
    logger.info(f"Public demo proposal {proposal_id} finished as {outcome.value}")

    return {
        "proposal": system.public.get_proposal(proposal_id).to_dict(),
        "voting_power": {v: system.public.get_voting_power_of(v) for v in DEMO_VOTERS},
        "metrics": system.get_system_metrics(),
    }, system


def run_private_demo(config: SystemConfig) -> Tuple[Dict[str, Any], GovernanceVotingSystem]:
    clock = ManualClock()
    system = GovernanceVotingSystem(config, [DEMO_ADMIN], clock=clock)
    prover = system.create_prover()

    credentials = [VoterCredential.generate() for _ in DEMO_VOTERS]
    for voter, credential in zip(DEMO_VOTERS, credentials):
        system.private.register_voter(voter, credential.commitment)
    system.rotate_voter_set_root(DEMO_ADMIN)

    proposal_id = system.private.submit_proposal(
        DEMO_ADMIN, "Enable private voting", "Adopt anonymous voting for treasury decisions")
    clock.advance(config.voting_config.voting_delay)
    system.private.start_voting(DEMO_ADMIN, proposal_id)

    # Voters build proofs against the tree snapshotted by the proposal
    tree = system.private.commitments.build_tree()
    choices = [1, 1, 0, 1, 1]
    for credential, choice in zip(credentials, choices):
        with system.performance_monitor.start_operation("prove_vote"):
            if isinstance(prover, SnarkjsProver):
                bundle = asyncio.run(prover.prove(credential, tree, proposal_id, choice))
            else:
                bundle = prover.prove(credential, tree, proposal_id, choice)
        with system.performance_monitor.start_operation("cast_private_vote"):
            system.private.cast_private_vote(
                DEMO_ADMIN, proposal_id, bool(choice), bundle.nullifier,
                bundle.proof, bundle.public_signals)

    clock.advance(config.voting_config.voting_period)
    outcome = system.private.finalize_proposal(DEMO_ADMIN, proposal_id)
    logger.info(f"Private demo proposal {proposal_id} finished as {outcome.value}")

    return {
        "proposal": system.private.get_proposal(proposal_id).to_dict(),
        "metrics": system.get_system_metrics(),
    }, system


def run_demo(kind: str, config: SystemConfig, save: bool) -> Dict[str, Any]:
    demo = run_public_demo if kind == "public" else run_private_demo
    results, system = demo(config)
    if save:
        report_path = config.results_dir / f"{kind}_demo_report.json"
        save_results(results, report_path)
        if config.enable_benchmarking:
            perf_path = config.results_dir / f"{kind}_performance_report.txt"
            perf_path.write_text(create_performance_report(system.performance_monitor))
        results["report_path"] = str(report_path)
    return results


# ============================================================================
# CLI
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Weighted and private governance voting system')
    parser.add_argument('--config', type=str, default='config.yaml',
                        help='Config file path')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Override the configured log level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    commitment = subparsers.add_parser('commitment', help='Derive a commitment from a secret')
    commitment.add_argument('--secret', type=str, default=None,
                            help='Secret (decimal or 0x hex); random when omitted')

    nullifier = subparsers.add_parser('nullifier', help='Derive a per-proposal nullifier')
    nullifier.add_argument('--secret', type=str, required=True)
    nullifier.add_argument('--proposal-id', type=int, required=True)

    for name, help_text in (('build-root', 'Compute the Merkle root of commitments'),
                            ('merkle-proof', 'Inclusion proof for one commitment')):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('commitments', nargs='*', help='Commitments in registration order')
        sub.add_argument('--file', type=str, default=None,
                         help='JSON list of commitments')
        sub.add_argument('--depth', type=int, default=None,
                         help='Tree depth; defaults to merkle.depth from the config')
        if name == 'merkle-proof':
            sub.add_argument('--index', type=int, required=True)

    for name in ('demo-public', 'demo-private'):
        sub = subparsers.add_parser(name, help=f'Run the {name[5:]} voting demonstration')
        sub.add_argument('--save', action='store_true', help='Write results to results_dir')

    return parser


COMMANDS = {
    'commitment': cmd_commitment,
    'nullifier': cmd_nullifier,
    'build-root': cmd_build_root,
    'merkle-proof': cmd_merkle_proof,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(Path(args.config))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if getattr(args, 'depth', None) is None:
        args.depth = config.merkle_config.depth

    try:
        if args.command.startswith('demo-'):
            setup_logging(args.log_level or config.log_level,
                          config.log_dir / f"{args.command}.log")
            result = run_demo(args.command[5:], config, args.save)
        else:
            result = COMMANDS[args.command](args)
    except (GovernanceError, ZKError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
