"""Client module for calling the MT service from external applications."""

from romance_mt.client.mt_client import MTClient, MTClientError

__all__ = ["MTClient", "MTClientError"]
