"""Task API - the server side of the task core

Components:
    backend/main.py: FastAPI application factory
    backend/database.py: User-scoped SQLite row store
    backend/routes/: API route handlers

The client layer (adhder.tasks) talks to these endpoints. They apply
the server-side task rules: status timestamps, recurring next
occurrences, renegotiation records and delete conflict checks.
"""
