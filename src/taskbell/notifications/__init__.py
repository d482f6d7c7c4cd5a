"""
Notification subsystem.

Components:
- models.py: alert kinds, weekly triggers, payloads, history records
- registry.py: per-process table of platform handles
- scheduler.py: expands a task into weekly alerts and registers/cancels them
- delivery.py: delivered-set + de-duplicated recording of delivered alerts
- history.py: durable notification history
- platform.py: APScheduler-backed local notification platform
"""
