from .sale import SaleRound, RoundAccount, SaleState
from .allocation import AllocationGroup, AllocationParticipant, AllocationState
from .ledger import TokenBalance, TokenSupply, PaymentBalance, DistributionEvent
from .security import SecurityEvent

__all__ = [
    'SaleRound', 'RoundAccount', 'SaleState',
    'AllocationGroup', 'AllocationParticipant', 'AllocationState',
    'TokenBalance', 'TokenSupply', 'PaymentBalance', 'DistributionEvent',
    'SecurityEvent',
]
