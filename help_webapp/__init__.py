"""
Help webapp core package.

This package currently focuses on working-set persistence. It exposes
dataclasses for tocs, topics and working sets, a resource tree repository,
a byte-safe URL codec, and a slot store that spreads the serialized working
sets over a bounded number of bounded-size cookies.
"""
