"""
ssml-studio services layer.

Sits between the API and the SSML core and talks to the outside world.

Components:
    - validators.py: Input validation
    - membership.py: Plan tiers and feature gating
    - azure.py: Azure Speech backend and credential pool
    - audio_store.py: Writes synthesized audio and builds its URL
    - synthesis.py: Synthesis Invoker (markup -> audio URL result)
    - voices.py: Voice catalog with caching
"""
