"""Chat relay - streaming bridge between chat clients and a generative-AI model.

Combines FastAPI for the server-sent event relay, the Gemini SDK for model
calls, httpx for consuming the stream, and Pydantic for data validation.

Components:
    - gateway: single provider call exposed as a fragment stream
    - api: HTTP relay that re-emits fragments as server-sent events
    - sync: client-side conversation synchronizer (send, edit, delete, watch)
    - storage: message log and blob store interfaces
    - models: request/response schemas and conversation records
"""

__version__ = "0.1.0"
