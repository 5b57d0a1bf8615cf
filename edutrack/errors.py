class EduTrackError(Exception):
    """Base class for application errors."""


class QuizValidationError(EduTrackError):
    """A quiz draft or a submission failed validation."""


class QuizParseError(EduTrackError):
    """An AI response could not be parsed into quiz questions."""


class StorageError(EduTrackError):
    """A bucket upload, lookup or delete failed."""
