from dealcall.models.banker import Banker
from dealcall.models.campaign import Campaign
from dealcall.models.seller_company import SellerCompany
from dealcall.models.call import Call, CallOutcome, AnalysisStatus
from dealcall.models.message import Message, MessageRole
from dealcall.models.action import Action

__all__ = [
    "Banker",
    "Campaign",
    "SellerCompany",
    "Call",
    "CallOutcome",
    "AnalysisStatus",
    "Message",
    "MessageRole",
    "Action",
]
