"""
Consensus Engine - yes/no majority voting over image response tallies.

The evaluation is a pure function of the counts. Persisting the result and
keeping consensus one-way (undecided -> decided, never back) is done by
latch_consensus() and the Response Store.

With the default threshold of 0.6 only one side can qualify at a time. A
threshold below 0.5 would let both sides qualify; the yes side is checked
first in that case.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from shared.config import config
from shared.models import ConsensusStatus


def round_confidence(fraction: float) -> float:
    """Round a fraction to two decimals, halves away from zero."""
    return float(Decimal(str(fraction)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def evaluate_consensus(
    yes_count: int,
    no_count: int,
    min_responses: Optional[int] = None,
    consensus_threshold: Optional[float] = None
) -> dict:
    """
    Decide whether an image has a ground truth yet.

    Preconditions (not checked): both counts are non-negative integers and
    reflect one response per distinct worker.

    Args:
        yes_count: Number of "yes" answers
        no_count: Number of "no" answers
        min_responses: Responses required before any decision (default from config)
        consensus_threshold: Fraction one side needs, inclusive (default from config)

    Returns:
        dict: {
            'groundTruth': True | False | None (undecided),
            'consensusReached': bool,
            'confidenceLevel': float in [0, 1], 0 below the minimum-responses gate
        }
    """
    if min_responses is None:
        min_responses = config.MIN_RESPONSES_FOR_CONSENSUS
    if consensus_threshold is None:
        consensus_threshold = config.CONSENSUS_THRESHOLD

    total = yes_count + no_count

    # total == 0 always lands here unless min_responses is 0
    if total < min_responses or total == 0:
        return {
            'groundTruth': None,
            'consensusReached': False,
            'confidenceLevel': 0.0
        }

    yes_fraction = yes_count / total
    no_fraction = no_count / total

    ground_truth = None
    if yes_fraction >= consensus_threshold:
        ground_truth = True
    elif no_fraction >= consensus_threshold:
        ground_truth = False

    return {
        'groundTruth': ground_truth,
        'consensusReached': ground_truth is not None,
        'confidenceLevel': round_confidence(max(yes_fraction, no_fraction))
    }


def latch_consensus(current: dict, evaluation: dict) -> dict:
    """
    Merge a fresh evaluation into an image's stored consensus state.

    Once an image has reached consensus its ground truth is frozen: later
    evaluations only refresh the confidence level, even if dilution means the
    counts alone would no longer qualify.

    Args:
        current: Stored image state (needs 'consensusReached' and 'groundTruth')
        evaluation: Result of evaluate_consensus() for the latest counts

    Returns:
        The consensus state to persist, with a 'changed' flag set when this
        evaluation is the one that moved the image from undecided to decided.
    """
    if current.get('consensusReached'):
        return {
            'groundTruth': current.get('groundTruth'),
            'consensusReached': True,
            'confidenceLevel': evaluation['confidenceLevel'],
            'changed': False
        }

    return {
        'groundTruth': evaluation['groundTruth'],
        'consensusReached': evaluation['consensusReached'],
        'confidenceLevel': evaluation['confidenceLevel'],
        'changed': evaluation['consensusReached']
    }


def replay_consensus(
    answers: Iterable[bool],
    latched: bool = True,
    min_responses: Optional[int] = None,
    consensus_threshold: Optional[float] = None
) -> dict:
    """
    Feed answers one at a time through re-evaluation, as the Response Store
    does on each submission. Useful for audits and for checking that the
    stored state matches what the recorded responses imply.

    Returns:
        Final consensus state plus the accumulated 'yesCount'/'noCount'.
    """
    yes_count = 0
    no_count = 0
    state = {'groundTruth': None, 'consensusReached': False, 'confidenceLevel': 0.0}

    for answer in answers:
        if answer:
            yes_count += 1
        else:
            no_count += 1

        evaluation = evaluate_consensus(yes_count, no_count, min_responses, consensus_threshold)
        if latched:
            merged = latch_consensus(state, evaluation)
            state = {k: merged[k] for k in ('groundTruth', 'consensusReached', 'confidenceLevel')}
        else:
            state = evaluation

    state = dict(state)
    state['yesCount'] = yes_count
    state['noCount'] = no_count
    return state


def consensus_status(image: dict, min_responses: Optional[int] = None) -> str:
    """Classify an image record for the reporting layer."""
    if min_responses is None:
        min_responses = config.MIN_RESPONSES_FOR_CONSENSUS

    if image.get('consensusReached'):
        return ConsensusStatus.REACHED
    if int(image.get('totalResponses', 0)) < min_responses:
        return ConsensusStatus.AWAITING_RESPONSES
    return ConsensusStatus.UNDECIDED
