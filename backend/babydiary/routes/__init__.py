# Routes package init
"""
Baby Diary Backend — API Routes Package
=========================================

Route Inventory:
    - auth.py:      POST /api/auth/register, /login, /logout; GET /api/auth/me
    - posts.py:     GET/POST /api/posts; GET/PUT/DELETE /api/posts/{id};
                    POST /api/posts/{id}/like
    - comments.py:  GET/POST /api/posts/{id}/comments;
                    PUT/DELETE /api/comments/{id}
    - upload.py:    POST/DELETE /api/upload/files
    - health.py:    GET /health

Routes stay thin: read the request, let the dependency chain authorize,
call one service method, wrap the result in ApiResponse.
"""
