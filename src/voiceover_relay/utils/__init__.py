"""
Utility Modules for voiceover-relay.

    - timeit.py: Performance measurement
"""
