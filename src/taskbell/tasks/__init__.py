"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus) and legacy record migration
- task_store.py: JSON document-backed storage + CRUD
- status_reconciler.py: status rules (overdue / next-occurrence reset)
- sweeper.py: periodic sweep + resume handling
- task_api.py: the functions the UI shell calls
"""
