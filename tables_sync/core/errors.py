"""
Errors surfaced to the caller of a coordinator operation. Each carries a
human-readable message suitable for display as-is.
"""


class TablesError(Exception):
    message = "Something went wrong."

    def __init__(self, message: str = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NotAuthenticated(TablesError):
    message = "You must be signed in to perform this action."


class UserNotFound(TablesError):
    message = "User not found. Make sure they have an account."


class TableNotFound(TablesError):
    message = "Table not found."


class NotTableOwner(TablesError):
    message = "Only the table owner can archive or delete this table."


class CannotLeaveOwnTable(TablesError):
    message = "You cannot leave a table you own. Archive or delete it instead."


class MemberUpdateFailed(TablesError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to add member: {reason}")


class ReminderNotAuthorized(TablesError):
    message = "Notifications are not enabled. Please enable them in Settings."
