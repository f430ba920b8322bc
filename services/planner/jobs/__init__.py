"""
Scheduled jobs for the planner core.

These run as standalone Python scripts via cron, not inside the calling
application's process.

Usage:
    python -m services.planner.jobs.cache_reaper

Schedule (UTC):
    03:00  cache_reaper  delete itinerary cache entries past their TTL
"""
