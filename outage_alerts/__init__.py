"""Slack alerts for long-running service outages.

Each run replays the full health-check log, finds the services that are down
right now, and posts one Slack message for outages that have lasted past the
threshold and were not reported yet.
"""
