"""
FireChain - Emergency Funds
Fund requests, approvals and disbursements from the shared pool.
"""

from src.funds.fund_workflow import EmergencyFundWorkflow
from src.funds.models import FundRequest, FundRequestState

__all__ = [
    "EmergencyFundWorkflow",
    "FundRequest",
    "FundRequestState",
]
