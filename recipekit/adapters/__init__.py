"""
Adapters — pluggable backends for artifact retrieval.

Every backend implements one of the capabilities in ``base``.
The fetcher receives them by injection, never by global lookup.
"""
