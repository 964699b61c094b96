# models/registry.py
# Importing this module registers every model on Base.metadata.
from elevatehub.models.user import User  # noqa: F401
from elevatehub.models.job import Job, JobSubmission  # noqa: F401
from elevatehub.models.application import Application  # noqa: F401
from elevatehub.models.transaction import Transaction  # noqa: F401
from elevatehub.models.message import Conversation, Message  # noqa: F401
