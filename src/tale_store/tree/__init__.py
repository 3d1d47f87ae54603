"""Bracket-notation codec for family cluster trees."""

from tale_store.tree.newick import decode, encode, extract_leaf_ids, format_distance, simple_tree

__all__ = ["decode", "encode", "extract_leaf_ids", "format_distance", "simple_tree"]
