class QuizError(Exception):
    """Base class for quiz engine errors."""


class UnknownRegionError(QuizError, LookupError):
    def __init__(self, code):
        self.code = code
        super().__init__(f'Unknown region code: {code}')


class PersistenceUnavailable(QuizError):
    """The durable statistics store cannot be read or written."""


class InvalidSessionState(QuizError):
    """An operation that needs an active session was called without one."""


class InvalidResetToken(QuizError):
    pass
