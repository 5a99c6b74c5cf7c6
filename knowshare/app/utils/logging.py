"""Logging setup and structured access-request logging."""

import logging
from typing import Any
from uuid import UUID

logger = logging.getLogger("knowshare.access")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at application start-up."""
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)


class StructuredAccessLogger:
    """Structured logger for access request transitions and deliveries."""

    def log_transition(
        self,
        *,
        request_id: int,
        transition: str,
        requester_id: UUID,
        owner_id: UUID,
        chunk_id: int | None,
    ) -> None:
        """Log an access request state change."""
        log_data: dict[str, Any] = {
            "request_id": request_id,
            "transition": transition,
            "requester_id": str(requester_id),
            "owner_id": str(owner_id),
            "chunk_id": chunk_id,
        }
        logger.info(f"Access request {request_id}: {transition}", extra={"structured": log_data})

    def log_rejection(self, *, reason: str, requester_id: UUID, chunk_id: int) -> None:
        """Log a create() call refused by a precondition."""
        log_data: dict[str, Any] = {
            "reason": reason,
            "requester_id": str(requester_id),
            "chunk_id": chunk_id,
        }
        logger.info(f"Access request rejected: {reason}", extra={"structured": log_data})

    def log_delivery(
        self,
        *,
        kind: str,
        target_user_id: UUID,
        outcome: str,
        error_reason: str | None = None,
    ) -> None:
        """Log a realtime notification delivery attempt."""
        log_data: dict[str, Any] = {
            "kind": kind,
            "target_user_id": str(target_user_id),
            "outcome": outcome,
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Notification {kind} - {outcome}"

        if outcome == "delivered":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
