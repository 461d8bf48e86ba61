from .config_manager import ConfigManager
from .policy import ScanPolicy
from .service import GemGuardService

__all__ = ["ConfigManager", "GemGuardService", "ScanPolicy"]
