"""HTTP API for the redesign engine (``uvicorn api.analyze:app``)."""
