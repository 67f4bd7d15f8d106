# FastAPI Application Redirect
# This file redirects to the actual app in the hr_approvals package

from hr_approvals.main import app  # noqa: F401

# Lets uvicorn find the app when run from the repository root:
# uvicorn main:app --host 0.0.0.0 --port 8001
