"""
Setup orchestration and maintenance flows.
"""
