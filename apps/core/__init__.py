"""
Core app - shared plumbing for every other app.

Provides:
- The error envelope (exceptions, handlers) and request correlation ids
- Pagination, cache-aside helpers, rate limiting, dates and input validation
- Background job dispatch (TaskService) over a local or Celery backend
- The health endpoint and the seed/send_reminders management commands
"""
