"""
Utility modules for ssml-studio.

    - timeit.py: Performance measurement helpers
"""
