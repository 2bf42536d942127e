"""lambdapromote: change detection and versioned artifact promotion.

Reads a manifest of independently deployable Lambda units, works out which
of them changed between two revisions, builds each changed unit into a
deterministic archive, and publishes it to a content store under a
write-once versioned key and a mutable ``latest`` key. The per-unit records
are folded into the parameter list a deployment step consumes.
"""

__version__ = "0.1.0"
__description__ = "Change detection and versioned artifact promotion for Lambda units"

from lambdapromote.core.orchestrator import PromotionOrchestrator
from lambdapromote.cli.app import app as cli

__all__ = ["PromotionOrchestrator", "cli", "__version__"]
