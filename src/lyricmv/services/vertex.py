"""Shared helpers for Vertex AI REST calls."""

import google.auth
import google.auth.transport.requests

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


def auth_headers() -> dict:
    """Build bearer auth headers from application default credentials."""
    credentials, _ = google.auth.default(scopes=SCOPES)
    credentials.refresh(google.auth.transport.requests.Request())
    return {
        "Authorization": f"Bearer {credentials.token}",
        "Content-Type": "application/json",
    }


def model_url(project_id: str, location: str, model: str, method: str) -> str:
    """URL of a publisher model method, e.g. ``predict``."""
    return (
        f"https://{location}-aiplatform.googleapis.com/v1/"
        f"projects/{project_id}/locations/{location}/"
        f"publishers/google/models/{model}:{method}"
    )
