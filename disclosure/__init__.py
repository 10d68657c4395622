# ============================================================================
# disclosure/__init__.py
# Package Marker for the Transcript Disclosure Pipeline
# ============================================================================
#
# PURPOSE:
# Parses the HTTP transcripts of an MPC-TLS session and works out which byte
# ranges to reveal to the verifier.
#
# LAYOUT:
# - grammar/: recursive-descent HTTP/1.1 + JSON parser producing a syntax tree
# - ast/: typed Request / Response documents built from that tree
# - resolver.py, ranges.py: keypaths to canonical byte ranges
# - orchestrator.py, service.py: the per-session pipeline and its loop
#
# ============================================================================
