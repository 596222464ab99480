"""
Depot registry retention tooling.

Lists registry images per project, applies an age and exclusion policy, and
deletes old tags together with the digests no remaining tag references.
"""

__version__ = "0.1.0"
