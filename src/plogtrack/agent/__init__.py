"""Machine-readable response envelope for --json output."""

from plogtrack.agent.response import CommandResponse, create_response, error_response

__all__ = ["CommandResponse", "create_response", "error_response"]
