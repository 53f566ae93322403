# Import every model module so all tables are registered on Base.metadata
from society.auth.models import Session, User  # noqa: F401
from society.events.models import Event, EventAttendee  # noqa: F401
from society.friends.models import Block, Follow, Friendship  # noqa: F401
from society.messaging.models import Conversation, ConversationParticipant, Message  # noqa: F401
from society.notifications.models import Notification  # noqa: F401
from society.posts.models import Comment, Hashtag, Like, Post, PostHashtag, SavedPost, Share  # noqa: F401
from society.reports.models import Report  # noqa: F401
