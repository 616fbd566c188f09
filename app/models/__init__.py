from app.models.interviewer import Interviewer
from app.models.session import InterviewSession
from app.models.template import InterviewTemplate

__all__ = [
    "Interviewer",
    "InterviewTemplate",
    "InterviewSession",
]
