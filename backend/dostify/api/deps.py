from fastapi import Request

from dostify.services.orchestrator import ChatOrchestrator


def get_orchestrator(request: Request) -> ChatOrchestrator:
    """The process-wide orchestrator built in the app lifespan."""
    return request.app.state.orchestrator
