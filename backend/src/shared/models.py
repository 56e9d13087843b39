"""
Data models and status constants for the Digital Public Works platform.
Image lifecycle: Provisioned → Collecting responses → Consensus reached (never reverts)
"""


class Role:
    """User roles."""
    WORKER = 'WORKER'
    ADMIN = 'ADMIN'


class ConsensusStatus:
    """Image consensus states exposed to the reporting layer."""
    AWAITING_RESPONSES = 'AwaitingResponses'  # Below the minimum-responses gate
    UNDECIDED = 'Undecided'                    # Enough responses, no qualifying majority
    REACHED = 'Reached'


class BonusSource:
    """Which tier field the quality bonus is paid from."""
    FIXED_AMOUNT = 'fixedAmount'
    PERCENTAGE = 'percentage'


class DailyReportMode:
    """How daily reports behave after first materialization."""
    CREATE_ONCE = 'create-once'  # First computed figure is cached for the day
    REFRESH = 'refresh'          # Recomputed on every read until closed


class EventType:
    """EventBridge detail types emitted by the platform."""
    CONSENSUS_REACHED = 'ImageConsensusReached'
    DAILY_REPORT_CLOSED = 'DailyReportClosed'
