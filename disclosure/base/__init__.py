"""Module __init__: foundational settings shared by the disclosure pipeline."""
#
# WHAT'S IN THIS MODULE:
# - config.py: byte ceilings, parser bounds, default policy, logging setup
#
