"""
Tracking package — session plans, runtime state and outcome recording.
"""
