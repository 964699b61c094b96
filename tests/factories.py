# Test data builders shared by the service and API tests.
import uuid
from datetime import timedelta

from elevatehub.core.security import create_access_token
from elevatehub.models.application import Application, ApplicationStatusEnum
from elevatehub.models.job import Job, JobStatusEnum
from elevatehub.models.user import User, UserRoleEnum
from elevatehub.utils.time import utcnow

COVER_LETTER = (
    "I have shipped several similar projects and can start right away. "
    "Happy to share references on request."
)
JOB_DESCRIPTION = (
    "We need a responsive marketing site with a blog, contact form and "
    "basic analytics. Design files are ready."
)


async def create_user(db, role=UserRoleEnum.freelancer, **overrides) -> User:
    tag = uuid.uuid4().hex[:10]
    values = dict(
        external_id=f"idp|{tag}",
        email=f"{role.value}-{tag}@example.com",
        first_name=role.value.title(),
        last_name=tag,
        role=role,
        skills=[],
    )
    values.update(overrides)
    user = User(**values)
    db.add(user)
    await db.commit()
    return user


async def create_job(db, client: User, **overrides) -> Job:
    values = dict(
        client_id=client.user_id,
        title="Build a marketing website",
        description=JOB_DESCRIPTION,
        category="Web Development",
        budget_amount=50000,
        currency="KES",
        deadline=utcnow() + timedelta(days=30),
        skills=["python", "fastapi"],
        status=JobStatusEnum.open,
        max_revisions=3,
    )
    values.update(overrides)
    job = Job(**values)
    db.add(job)
    await db.commit()
    return job


async def create_application(db, job: Job, freelancer: User, **overrides) -> Application:
    values = dict(
        job_id=job.job_id,
        freelancer_id=freelancer.user_id,
        cover_letter=COVER_LETTER,
        proposed_rate=45000,
        status=ApplicationStatusEnum.pending,
    )
    values.update(overrides)
    application = Application(**values)
    db.add(application)
    await db.commit()
    return application


# --- API helpers ---

def new_identity(prefix: str = "user") -> dict:
    tag = uuid.uuid4().hex[:10]
    return {
        "sub": f"idp|{prefix}-{tag}",
        "email": f"{prefix}-{tag}@example.com",
        "given_name": prefix.title(),
        "family_name": tag,
    }


def auth_headers(identity: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token(identity)}"}


def sign_in(client, role: str = "freelancer", prefix: str = None):
    """Provision a user through the API and return (headers, user_json, identity)."""
    identity = new_identity(prefix or role)
    headers = auth_headers(identity)
    response = client.get("/users/me", headers=headers)
    assert response.status_code == 200, response.text
    user = response.json()["data"]
    if role != "freelancer":
        response = client.put("/users/me", json={"role": role}, headers=headers)
        assert response.status_code == 200, response.text
        user = response.json()["data"]
    return headers, user, identity


def job_payload(**overrides) -> dict:
    payload = {
        "title": "Build a marketing website",
        "description": JOB_DESCRIPTION,
        "category": "Web Development",
        "budget_amount": 50000,
        "deadline": (utcnow() + timedelta(days=30)).isoformat(),
        "skills": ["python", "fastapi"],
    }
    payload.update(overrides)
    return payload


class FakeWebSocket:
    """Stands in for a Starlette WebSocket in ConnectionManager tests."""

    def __init__(self, fail=False):
        self.accepted = False
        self.closed_with = None
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, payload):
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(payload)

    async def close(self, code=1000):
        self.closed_with = code

    def events(self, name=None):
        return [p for p in self.sent if name is None or p["event"] == name]
