"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: upstream/__init__.py.
"""

from .aggregator import UpstreamAggregator
from .contracts import RetryPolicy, TimeoutPolicy
from .credentials import (
    BearerHeaderCredentialProvider,
    CookieCredentialProvider,
    CredentialChain,
    CredentialContext,
    CredentialProvider,
    LoginCredentialProvider,
    ResolvedCredential,
    ServiceTokenCredentialProvider,
    build_credential_chain,
)
from .decoding import (
    DecodedCollection,
    decode_collection,
    extract_entity_ids,
    filter_by_name,
    normalize_sector_list,
)

__all__ = [
    "UpstreamAggregator",
    "RetryPolicy",
    "TimeoutPolicy",
    "CredentialProvider",
    "CredentialContext",
    "CredentialChain",
    "ResolvedCredential",
    "CookieCredentialProvider",
    "BearerHeaderCredentialProvider",
    "ServiceTokenCredentialProvider",
    "LoginCredentialProvider",
    "build_credential_chain",
    "DecodedCollection",
    "decode_collection",
    "extract_entity_ids",
    "filter_by_name",
    "normalize_sector_list",
]
