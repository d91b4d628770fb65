"""
Transaction helpers for the service functions in `database.core`.

Contents
--------
- transactionManagement
    `@transactional` opens a session, commits on return and rolls back on
    error. The active session is kept in a context variable, so nested calls
    (e.g. `cancel_session` calling `advance_session_status`) share one
    transaction.
"""
