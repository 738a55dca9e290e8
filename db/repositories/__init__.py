"""Repository layer for the outreach engine.

Async query and mutation helpers over the three ledgers:
- activity: increment_activity_count, get_daily_count, get_weekly_count,
            get_counts_for_day, prune_old_activity
- leads: create_lead, get_by_id, get_active_leads, record_initial_email,
         record_followup_email, record_email_open, update_status, snooze, ...
- meetings: is_meeting_surfaced, has_meeting_been_processed,
            mark_meeting_surfaced, update_meeting_status, get_surfaced_meeting_stats
"""
