"""
FireChain - Rewards
Reporter reward balances.
"""

from src.rewards.reward_ledger import RewardCredit, RewardLedger, RewardTransfer

__all__ = ["RewardLedger", "RewardCredit", "RewardTransfer"]
