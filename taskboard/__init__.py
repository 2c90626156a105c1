# Task board: shared tasks, real-time sync, activity history.
#
# Components:
#   schema.py   - Data model (Task, TaskStatus, TaskPriority, User)
#   events.py   - Intents (client -> hub) and canonical events (hub -> clients)
#   store.py    - SQLite persistence layer
#   hub.py      - Synchronization hub (single-writer apply + broadcast)
#   session.py  - Client-side projection and derived views
#   activity.py - Bounded activity log
#   cache.py    - Best-effort local cache of the last known board
#   client.py   - HTTP/SSE client for remote sessions
#   config.py   - YAML configuration and user roster
