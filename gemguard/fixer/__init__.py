from .auto_fixer import AutoFixer, extract_target_version
from .bundler import BundlerPackageManager
from .confirm import ConsoleConfirmer, severity_marker

__all__ = [
    "AutoFixer",
    "BundlerPackageManager",
    "ConsoleConfirmer",
    "extract_target_version",
    "severity_marker",
]
