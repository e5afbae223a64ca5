# errors.py
# Typed errors raised by the assignment, scoring and aggregation services.
# The HTTP layer turns them into JSON responses (see app.register_error_handlers).


class JudgingError(Exception):
    """Base class for every error the services raise on purpose."""

    status_code = 500

    def __init__(self, message=None):
        self.message = message or self.default_message()
        super().__init__(self.message)

    def default_message(self):
        return 'Internal Server Error'


# --- 404 ---

class NotFoundError(JudgingError):
    status_code = 404
    entity = 'Resource'

    def __init__(self, entity_id=None, message=None):
        self.entity_id = entity_id
        super().__init__(message)

    def default_message(self):
        if self.entity_id is None:
            return f'{self.entity} not found'
        return f'{self.entity} {self.entity_id} not found'


class RoundNotFoundError(NotFoundError):
    entity = 'Round'


class TeamNotFoundError(NotFoundError):
    entity = 'Team'


class JudgeNotFoundError(NotFoundError):
    entity = 'Judge'


class UserNotFoundError(NotFoundError):
    entity = 'User'


class CriterionNotFoundError(NotFoundError):
    entity = 'Criterion'


class ScoreNotFoundError(NotFoundError):
    entity = 'Score'


# --- 400 ---

class InvalidInputError(JudgingError):
    status_code = 400

    def default_message(self):
        return 'Invalid input'


class NoTeamsError(InvalidInputError):
    def default_message(self):
        return 'No participating teams found'


class NoJudgesError(InvalidInputError):
    def default_message(self):
        return 'No active judges found'


class NoClosedRoundError(InvalidInputError):
    def default_message(self):
        return 'No closed rounds found'


class RoundClosedError(InvalidInputError):
    def default_message(self):
        return 'Round is not open for scoring'


class ConstraintViolationError(JudgingError):
    status_code = 400

    def default_message(self):
        return 'Constraint violated'


# --- 401 / 403 / 409 ---

class AuthError(JudgingError):
    status_code = 401

    def default_message(self):
        return 'Authentication required'


class ForbiddenError(JudgingError):
    status_code = 403

    def default_message(self):
        return 'Access denied'


class ConflictError(JudgingError):
    status_code = 409

    def default_message(self):
        return 'The record was changed by another request'
