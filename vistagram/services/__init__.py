"""
Vistagram Backend — Services Layer
====================================

What:  Business logic between routes (HTTP) and the database.
How:   Each module exposes a class plus a module-level instance that routes
       import directly; the scheduler is the exception and lives on
       app.state so tests can inject their own.

Service Inventory:
    - TokenService:     access/refresh token issuing and verification
    - SessionStore:     the single refresh-token slot per user
    - AuthService:      register / login / refresh / logout
    - PostService:      posts, likes, shares
    - UserService:      public profiles
    - MediaService:     image validation, storage, re-hosting, serving
    - LLMService:       interface for username/caption generation
    - GeminiService:    LLMService backed by Google Gemini
    - SeedingService:   tops the database up with synthetic content
    - SchedulerService: cron registration and the population overlap guard
"""
