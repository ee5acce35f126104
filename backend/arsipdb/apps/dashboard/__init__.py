"""
Dashboard module. Read-only summaries; owns no tables.
"""
