"""
HTTP API для Rail Planner
"""
