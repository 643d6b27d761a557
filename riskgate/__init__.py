"""
riskgate: merge governance and autonomous test generation for pull requests

riskgate turns an analysis of a pull request into:
- A 0-100 risk score and a merge recommendation
- Generated tests that follow the repository's own conventions
- A companion PR carrying those tests, with CI watched and auto-fixed once

Usage:
    from riskgate import GovernancePipeline, compute_governance_decision

    # Or use CLI:
    $ riskgate score findings.json
"""

__version__ = "0.3.0"

# Core functionality
from .config import get_settings
from .logging import get_logger

from .orchestrator.governance import compute_governance_decision
from .orchestrator.pipeline import GovernancePipeline

__all__ = ["GovernancePipeline", "compute_governance_decision", "get_settings", "get_logger", "__version__"]
