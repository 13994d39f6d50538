"""
HTTP API Layer

Exposes reconstruction over HTTP. Holds no logic of its own beyond
request decoding and DTO mapping.
"""
