# artledger/registry/__init__.py
"""
Art ledger asset registry.

Holds canonical asset records, who owns them, whether they are for
sale, and their royalty terms.

Example:
    registry = AssetRegistry()
    asset = registry.create("Dawn", "ipfs://Qm...", 10**18, "main", 10, "alice")
    registry.transfer(asset.asset_id, "bob")
"""

from .registry import Asset, AssetRegistry, IdSequence

__all__ = ["Asset", "AssetRegistry", "IdSequence"]
