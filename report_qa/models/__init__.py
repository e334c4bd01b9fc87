# =============================================================================
# Models Package
# =============================================================================
# domain.py    → dataclasses used by the services and the pipeline
# requests.py  → Pydantic V2 request bodies for the API
# responses.py → Pydantic V2 response bodies for the API
#
# API schemas are kept apart from the domain types so the public contract
# can change without touching the core.
# =============================================================================
