"""
Core types and errors shared by planning, execution and rollback.
"""
