# Services package init
"""
Baby Diary Backend — Services Layer
=====================================

Service Inventory:
    - security:        token issue/verify, password hash/verify
    - access:          family membership and post ownership checks
    - AuthService:     register, login, me
    - PostService:     posts, feed listing, like toggle
    - CommentService:  comments with membership/authorship checks
    - FileService:     upload validation, image transform, storage
    - storage:         local-disk and S3-compatible backends

Services are stateless singletons. Each method receives the request's
AsyncSession explicitly and only flushes; the session dependency owns
commit and rollback.
"""
