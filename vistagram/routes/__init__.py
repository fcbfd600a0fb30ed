"""
Vistagram Backend — API Routes Package
=========================================

Route Inventory:
    - auth.py:    POST /api/auth/register | login | refresh | logout
    - posts.py:   POST/GET /api/posts, GET /api/posts/{id},
                  POST /api/posts/{id}/like, GET /api/posts/{id}/likes,
                  POST /api/posts/{id}/share
    - users.py:   GET /api/users/{id}, GET /api/users/{id}/posts
    - cron.py:    GET /api/cron/status, POST /api/cron/trigger
    - files.py:   GET /api/files/{path}
    - health.py:  GET /, GET /health

Routes stay thin: parse the request, call a service, shape the response.
"""
