"""
FastAPI layer for ssml-studio.

    - routes.py: Health, voices, stateless SSML compile, synthesis
    - sessions.py: Pro editor session endpoints
    - schemas.py: Request models
    - dependencies.py: Settings, service and membership providers
"""
