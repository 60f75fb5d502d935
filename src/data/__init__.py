"""External collaborators for the lending ledger (custody, prices, transfers).

Use ``src.data.provider_factory.create_collaborators`` to build them.
"""
