"""Clients for external metadata sources."""

from .metaplex import MetadataDecodeError, MetaplexMetadataClient, find_metadata_pda

__all__ = ["MetadataDecodeError", "MetaplexMetadataClient", "find_metadata_pda"]
