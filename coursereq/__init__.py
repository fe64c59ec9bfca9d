"""
Requirement & scoring engine for course task groups.

The top-level package stays lightweight; import the subpackages
(``coursereq.formula``, ``coursereq.store``, ``coursereq.scoring``) or the
``RequirementService`` facade for the host-facing surface.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("coursereq")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
