# Import every model so relationships resolve and Base.metadata is complete
from babydiary.models.user import User
from babydiary.models.family import Family, FamilyMember, FamilyRole
from babydiary.models.post import Comment, Like, MediaType, Post, PostTag
from babydiary.models.media_asset import MediaAsset

__all__ = [
    "User",
    "Family",
    "FamilyMember",
    "FamilyRole",
    "Post",
    "PostTag",
    "Comment",
    "Like",
    "MediaType",
    "MediaAsset",
]
