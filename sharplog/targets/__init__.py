"""
SharpLog Targets — mapping validation and progress updates.
"""
