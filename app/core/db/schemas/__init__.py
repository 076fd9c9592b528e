# Import models so Alembic and Base metadata are aware of them
from .auth import User  # noqa: F401
from .quiz import QuizRecord, QuizAttemptRecord  # noqa: F401
from .room import RoomRecord, RoomMemberRecord, RoomParticipantRecord  # noqa: F401
