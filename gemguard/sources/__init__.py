from .http import create_http_session
from .osv import OSVAdvisorySource
from .rubygems import RubyGemsPopularitySource

__all__ = ["create_http_session", "OSVAdvisorySource", "RubyGemsPopularitySource"]
