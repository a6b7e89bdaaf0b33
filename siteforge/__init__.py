"""Siteforge: incremental static-site deployment.

Diffs a local site against its published on-chain manifest, uploads and
certifies only the changed file bodies on the blob network, then applies
the changes to the site object in a single ledger transaction.
"""

__version__ = "0.1.0"
__description__ = "Incremental static-site deployment to a blob network and ledger"

from siteforge.core.deploy_flow import DeploymentFlow
from siteforge.core.diff_engine import compute_site_diff, has_update
from siteforge.core.manifest_builder import build_site_manifest

__all__ = [
    "DeploymentFlow",
    "build_site_manifest",
    "compute_site_diff",
    "has_update",
    "__version__",
]
