class ReportError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidReportError(ReportError):
    status_code = 400


class ReportNotFoundError(ReportError):
    status_code = 404


class StorageUploadError(ReportError):
    status_code = 500


class PersistenceError(ReportError):
    status_code = 500


class DuplicateTicketError(PersistenceError):
    """Raised by a report store when the ticket ID is already taken."""


class AuthenticationError(ReportError):
    status_code = 401
