"""Central versioning and schema constants for the product crawler."""

__all__ = ["__version__", "CONFIG_SCHEMA_VERSION"]

#: Semantic version of this codebase (bump using SemVer).
__version__ = "0.2.0"

#: Configuration schema version (2 renamed the legacy ``domains`` key to ``start_urls``).
CONFIG_SCHEMA_VERSION = 2
