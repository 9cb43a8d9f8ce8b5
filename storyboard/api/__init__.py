"""
HTTP API for the storyboard workflow.
"""
