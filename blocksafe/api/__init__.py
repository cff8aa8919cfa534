"""HTTP surface of the BlockSafe service."""
