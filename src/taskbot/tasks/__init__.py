"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Reminder, TaskStatus, ...)
- task_store.py: SQLite-backed storage for users/projects/tasks/reminders
- tags.py / dates.py / title.py: message interpretation
- intake.py: message -> stored task + reminder
- reminders.py: reminder time computation
- dispatcher.py: polling sweep that delivers due reminders
- actions.py: done / in_progress / snooze reactions
"""
