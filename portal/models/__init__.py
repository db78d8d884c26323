from portal.models.lead import Lead, LeadStatus, Form
from portal.models.user import User, Student, UserRole, AccountStatus
from portal.models.curriculum import Exam, Subject, Unit, Chapter, Topic, SubTopic, Definition
from portal.models.curriculum import ContentDetails, ContentStatus, DetailsStatus
from portal.models.practice import PracticeCategory, PracticeSubCategory, PracticeQuestion, StudentTestResult
from portal.models.progress import ChapterProgress, UnitProgress, SubjectProgress

__all__ = [
    "Lead", "LeadStatus", "Form", "User", "Student", "UserRole", "AccountStatus",
    "Exam", "Subject", "Unit", "Chapter", "Topic", "SubTopic", "Definition",
    "ContentDetails", "ContentStatus", "DetailsStatus",
    "PracticeCategory", "PracticeSubCategory", "PracticeQuestion", "StudentTestResult",
    "ChapterProgress", "UnitProgress", "SubjectProgress"
]
