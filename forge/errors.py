"""
Exception taxonomy for the design-tree compiler.

Only fatal conditions are exceptions. Recoverable approximations go through
``forge.audit.ApproximationLog`` and never interrupt a run.
"""

from typing import Optional


class ForgeError(Exception):
    """Base class for every fatal compiler error."""


class ManifestError(ForgeError):
    """The input manifest is malformed (missing root, invalid node tree)."""


class ConfigurationError(ForgeError):
    """A required setting is missing (e.g. upload credentials)."""


class MissingContentError(ForgeError):
    """A content hash needs uploading but no raw pixel data was exported for it."""

    def __init__(self, content_hash: str, node_id: Optional[str] = None):
        self.content_hash = content_hash
        self.node_id = node_id
        where = f" (node {node_id})" if node_id else ""
        super().__init__(
            f"No raw content supplied for hash '{content_hash}'{where}. "
            "Re-run the extraction step so the image is exported."
        )


class AssetUploadError(ForgeError):
    """The asset store rejected or failed an upload."""

    def __init__(self, message: str, content_hash: Optional[str] = None, status_code: Optional[int] = None):
        self.content_hash = content_hash
        self.status_code = status_code
        super().__init__(message)


class UploadTimeoutError(AssetUploadError):
    """A long-running upload operation never reported completion."""
