"""Sheet -> Jira hierarchical sync.
"""
