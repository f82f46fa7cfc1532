"""Engine error types.

Every error is a local validation failure: the operation that raised it
has not modified any enrollment or profile state.
"""


class EngineError(Exception):
    """Base class for engine validation failures."""


class UnknownCourse(EngineError):
    def __init__(self, course_id: str):
        super().__init__(f"Unknown course: {course_id}")
        self.course_id = course_id


class UnknownEnrollment(EngineError):
    def __init__(self, enrollment_id: str):
        super().__init__(f"Unknown enrollment: {enrollment_id}")
        self.enrollment_id = enrollment_id


class UnknownModule(EngineError):
    def __init__(self, module_id: str):
        super().__init__(f"Unknown module: {module_id}")
        self.module_id = module_id


class UnknownContent(EngineError):
    def __init__(self, module_id: str, content_id: str):
        super().__init__(f"Unknown content {content_id} in module {module_id}")
        self.module_id = module_id
        self.content_id = content_id


class UnknownAssessment(EngineError):
    def __init__(self, assessment_id: str):
        super().__init__(f"Unknown assessment: {assessment_id}")
        self.assessment_id = assessment_id


class ModuleLocked(EngineError):
    def __init__(self, module_id: str, prerequisite_id: str):
        super().__init__(f"Module {module_id} is locked until {prerequisite_id} is completed")
        self.module_id = module_id
        self.prerequisite_id = prerequisite_id


class ExceededMaxAttempts(EngineError):
    def __init__(self, assessment_id: str, max_attempts: int):
        super().__init__(f"Assessment {assessment_id} allows at most {max_attempts} attempts")
        self.assessment_id = assessment_id
        self.max_attempts = max_attempts


class InvalidAnswerShape(EngineError):
    def __init__(self, question_id: str, expected: str):
        super().__init__(f"Answer to {question_id} must be {expected}")
        self.question_id = question_id
        self.expected = expected


class CatalogError(EngineError):
    """Raised when a course or badge definition is malformed."""
