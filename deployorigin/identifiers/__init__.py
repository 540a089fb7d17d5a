"""Identifier grammars consumed by the origin descriptor.

- refspec: classify a content-source string (branch, pinned commit, container image)
- nevra: decompose package NEVRA and SHA-256-prefixed NEVRA strings
"""
