# ============================================================================
# Main API Router
# ============================================================================
from fastapi import APIRouter

from portal.api.v1 import auth, users, content, tree, practice, leads, students

api_router = APIRouter()

# Staff accounts
api_router.include_router(auth.router)
api_router.include_router(users.router)

# Exams, subjects, units, chapters, topics, subtopics, definitions
for content_router in content.routers:
    api_router.include_router(content_router)

# Public navigation tree and page browser
api_router.include_router(tree.router)

# Practice tests
api_router.include_router(practice.router)

# Leads and lead-capture forms
api_router.include_router(leads.router)
api_router.include_router(leads.forms_router)

# Student accounts, progress and results
api_router.include_router(students.router)
