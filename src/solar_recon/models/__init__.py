from solar_recon.models.admin_session import AdminSession
from solar_recon.models.base import Base
from solar_recon.models.installation import Installation
from solar_recon.models.interconnection import Interconnection
from solar_recon.models.match_result import MatchResult

__all__ = [
    "AdminSession",
    "Base",
    "Installation",
    "Interconnection",
    "MatchResult",
]
