"""
depdoctor: dependency conflict diagnosis for JavaScript package graphs.

depdoctor inspects a snapshot of an installed npm / pnpm / yarn dependency
graph and explains what is wrong with it:

    • Duplicate resolved versions of the same package
    • Missing or mismatched peer dependencies
    • Installed versions outside the range their parent declared
    • Divergent requirements across workspace members
    • Forced-version overrides and the requirements they silence
    • Runtime engine mismatches and deprecated releases

For every problem it proposes remediation candidates and ranks them by a
deterministic risk / effort / score model. depdoctor is advisory: it never
modifies a manifest or lock file itself.
"""

from __future__ import annotations

from depdoctor.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "depdoctor Contributors"
__license__ = "Apache-2.0"
__description__ = "Conflict diagnosis and ranked remediation for npm, pnpm and yarn projects."

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "__version__",
]
