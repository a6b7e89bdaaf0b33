"""Clients for the external systems a deployment talks to.

``protocols`` defines what the pipeline needs from a ledger, a blob
network, a signer and a sponsor. ``aggregator`` and ``keypair_signer``
are concrete implementations shipped with the package.
"""
