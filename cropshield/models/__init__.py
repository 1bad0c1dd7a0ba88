from cropshield.models.account import Account, Sequence
from cropshield.models.observation import WeatherObservation
from cropshield.models.oracle import OracleRegistration
from cropshield.models.policy import Policy, PolicyStatus
from cropshield.models.risk_pool import RiskPool
from cropshield.models.settlement import SettlementKind, SettlementRecord

__all__ = [
    "Account",
    "OracleRegistration",
    "Policy",
    "PolicyStatus",
    "RiskPool",
    "Sequence",
    "SettlementKind",
    "SettlementRecord",
    "WeatherObservation",
]
