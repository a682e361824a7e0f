"""Status, role and notification-type enumerations."""
import enum
from typing import NamedTuple


class Role(str, enum.Enum):
    """User roles, totally ordered by authority: USER < MODERATOR < ADMIN."""

    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"

    @property
    def level(self) -> int:
        return _ROLE_LEVELS[self]

    def __lt__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.level < other.level

    def __le__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.level <= other.level

    def __gt__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.level > other.level

    def __ge__(self, other):
        if not isinstance(other, Role):
            return NotImplemented
        return self.level >= other.level

    def has_authority_level(self, required: "Role") -> bool:
        return self >= required

    @property
    def can_moderate_content(self) -> bool:
        return self >= Role.MODERATOR

    @property
    def can_manage_users(self) -> bool:
        return self is Role.ADMIN


_ROLE_LEVELS = {Role.USER: 0, Role.MODERATOR: 1, Role.ADMIN: 2}


class BlogStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    SCHEDULED = "SCHEDULED"
    ARCHIVED = "ARCHIVED"

    @property
    def is_publicly_visible(self) -> bool:
        return self is BlogStatus.PUBLISHED

    @property
    def can_be_edited(self) -> bool:
        return self in (BlogStatus.DRAFT, BlogStatus.SCHEDULED)

    @property
    def can_receive_interactions(self) -> bool:
        return self is BlogStatus.PUBLISHED

    def can_transition_to(self, target: "BlogStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    BlogStatus.DRAFT: {BlogStatus.PUBLISHED, BlogStatus.SCHEDULED, BlogStatus.ARCHIVED},
    BlogStatus.SCHEDULED: {BlogStatus.PUBLISHED, BlogStatus.DRAFT, BlogStatus.SCHEDULED},
    BlogStatus.PUBLISHED: {BlogStatus.ARCHIVED, BlogStatus.DRAFT},
    BlogStatus.ARCHIVED: {BlogStatus.DRAFT},
}


class NotificationMeta(NamedTuple):
    display_name: str
    default_message: str
    icon: str
    color: str
    priority: int
    requires_email: bool


class NotificationType(str, enum.Enum):
    BLOG_LIKED = "BLOG_LIKED"
    BLOG_COMMENTED = "BLOG_COMMENTED"
    COMMENT_REPLIED = "COMMENT_REPLIED"
    COMMENT_LIKED = "COMMENT_LIKED"
    USER_FOLLOWED = "USER_FOLLOWED"
    USER_UNFOLLOWED = "USER_UNFOLLOWED"
    BLOG_PUBLISHED = "BLOG_PUBLISHED"
    BLOG_FEATURED = "BLOG_FEATURED"
    COMMENT_APPROVED = "COMMENT_APPROVED"
    COMMENT_REJECTED = "COMMENT_REJECTED"
    COMMENT_FLAGGED = "COMMENT_FLAGGED"
    WELCOME = "WELCOME"
    ACCOUNT_VERIFIED = "ACCOUNT_VERIFIED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    SECURITY_ALERT = "SECURITY_ALERT"
    MILESTONE_REACHED = "MILESTONE_REACHED"
    TRENDING_BLOG = "TRENDING_BLOG"

    @property
    def meta(self) -> NotificationMeta:
        return NOTIFICATION_META[self]

    @property
    def priority(self) -> int:
        return self.meta.priority

    @property
    def requires_email(self) -> bool:
        return self.meta.requires_email

    @property
    def is_high_priority(self) -> bool:
        return self.meta.priority >= 4

    @property
    def is_social_interaction(self) -> bool:
        return self in _SOCIAL_TYPES

    @property
    def can_be_disabled(self) -> bool:
        return self not in (
            NotificationType.SECURITY_ALERT,
            NotificationType.PASSWORD_CHANGED,
            NotificationType.ACCOUNT_VERIFIED,
        )


NOTIFICATION_META = {
    NotificationType.BLOG_LIKED: NotificationMeta("Blog Liked", "Someone liked your blog post", "👍", "#10B981", 3, True),
    NotificationType.BLOG_COMMENTED: NotificationMeta("Blog Commented", "Someone commented on your blog post", "💬", "#3B82F6", 4, True),
    NotificationType.COMMENT_REPLIED: NotificationMeta("Comment Replied", "Someone replied to your comment", "↩️", "#6366F1", 4, True),
    NotificationType.COMMENT_LIKED: NotificationMeta("Comment Liked", "Someone liked your comment", "❤️", "#EF4444", 2, False),
    NotificationType.USER_FOLLOWED: NotificationMeta("New Follower", "Someone started following you", "👥", "#8B5CF6", 3, True),
    NotificationType.USER_UNFOLLOWED: NotificationMeta("Unfollowed", "Someone unfollowed you", "👥", "#6B7280", 1, False),
    NotificationType.BLOG_PUBLISHED: NotificationMeta("Blog Published", "Your blog post has been published", "🚀", "#059669", 4, False),
    NotificationType.BLOG_FEATURED: NotificationMeta("Blog Featured", "Your blog post has been featured", "⭐", "#F59E0B", 5, True),
    NotificationType.COMMENT_APPROVED: NotificationMeta("Comment Approved", "Your comment has been approved", "✅", "#10B981", 2, False),
    NotificationType.COMMENT_REJECTED: NotificationMeta("Comment Rejected", "Your comment was rejected", "❌", "#EF4444", 3, True),
    NotificationType.COMMENT_FLAGGED: NotificationMeta("Comment Flagged", "Your comment has been flagged", "🚩", "#F97316", 4, True),
    NotificationType.WELCOME: NotificationMeta("Welcome", "Welcome to Inkwell!", "🎉", "#8B5CF6", 3, True),
    NotificationType.ACCOUNT_VERIFIED: NotificationMeta("Account Verified", "Your account has been verified", "✅", "#10B981", 4, True),
    NotificationType.PASSWORD_CHANGED: NotificationMeta("Password Changed", "Your password has been changed", "🔒", "#F59E0B", 4, True),
    NotificationType.SECURITY_ALERT: NotificationMeta("Security Alert", "Security alert for your account", "🚨", "#EF4444", 5, True),
    NotificationType.MILESTONE_REACHED: NotificationMeta("Milestone Reached", "You've reached a new milestone", "🎯", "#10B981", 4, True),
    NotificationType.TRENDING_BLOG: NotificationMeta("Trending Blog", "Your blog is trending", "🔥", "#EF4444", 4, True),
}

_SOCIAL_TYPES = frozenset({
    NotificationType.BLOG_LIKED,
    NotificationType.BLOG_COMMENTED,
    NotificationType.COMMENT_REPLIED,
    NotificationType.COMMENT_LIKED,
    NotificationType.USER_FOLLOWED,
})
