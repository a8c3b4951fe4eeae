from .intake import FormState, IntakeForm, SubmissionThrottle, SubmitResult

__all__ = [
    "FormState",
    "IntakeForm",
    "SubmissionThrottle",
    "SubmitResult",
]
