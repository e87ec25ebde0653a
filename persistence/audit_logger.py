"""
Adaptive Auth Audit Logger

Fire-and-forget audit log writer that inserts structured
audit log entries into the Supabase `audit_logs` table
after every assessment.

Schema:
    audit_logs (
        event_id TEXT PRIMARY KEY,
        payload  JSONB,
        created_at TIMESTAMPTZ DEFAULT now()
    )
"""

from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import create_client, Client

from adaptive_auth.config import FACTOR_ORDER
from adaptive_auth.schemas.inputs import AuthenticationContext
from adaptive_auth.schemas.outputs import RiskAssessment

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Builds and inserts structured audit log payloads into Supabase.

    All writes are best-effort: errors are logged but never raised
    to avoid disrupting the assessment pipeline.
    """

    TABLE_NAME = "audit_logs"
    POLICY_NAME = "POLICY_ADAPTIVE_RISK"

    def __init__(self, client: Optional[Client] = None) -> None:
        if client is not None:
            self._client: Optional[Client] = client
            return

        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY")
        if not url or not key:
            logger.warning("Supabase credentials missing, audit logging disabled")
            self._client = None
            return
        self._client = create_client(url, key)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def log(
        self,
        context: AuthenticationContext,
        assessment: RiskAssessment,
        session_id: Optional[str] = None,
    ) -> None:
        """
        Build and insert an audit log entry.

        Args:
            context:     The assessed AuthenticationContext.
            assessment:  The RiskAssessment returned to the caller.
            session_id:  Authenticated session, for in-session actions.
        """
        if self._client is None:
            return

        try:
            entry = self.build_entry(context, assessment, session_id)
            self._client.table(self.TABLE_NAME).insert({
                "event_id": entry["event_id"],
                "payload": entry,
            }).execute()
            logger.debug(f"Audit log inserted: {entry['event_id']}")
        except Exception as e:
            logger.error(f"Audit log insertion failed: {e}")

    # ------------------------------------------------------------------
    # Payload Builder
    # ------------------------------------------------------------------

    def build_entry(
        self,
        context: AuthenticationContext,
        assessment: RiskAssessment,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Assemble the full audit log payload."""
        now = datetime.now(timezone.utc)
        location = context.location

        return {
            # Metadata
            "event_id": f"evt_{uuid.uuid4()}",
            "timestamp": now.isoformat(),
            "environment": os.getenv("RISK_ENGINE_ENV", "production"),

            # Actor
            "actor": {
                "identity": context.identity,
                "session_id": session_id,
            },

            # Network
            "network_context": {
                "ip_address": context.ip_address,
                "geo_location": {
                    "resolved": location is not None,
                    "country": location.country if location else None,
                    "city": location.city if location else None,
                    "lat": location.latitude if location else None,
                    "lng": location.longitude if location else None,
                },
                "client_fingerprint": {
                    "device_id": context.device_fingerprint,
                    "browser": context.device.browser_family,
                    "os": context.device.os_family,
                    "device_type": context.device.device_type.value,
                },
            },

            # Action
            "action_context": {
                "action": context.action.value,
                "attempted_at": context.timestamp.isoformat(),
            },

            # Risk Analysis
            "risk_analysis": {
                "score": assessment.score,
                "level": assessment.level.value,
                "decision": assessment.recommendation.action.value,
                "breakdown": {
                    factor: getattr(assessment.breakdown, factor).score
                    for factor in FACTOR_ORDER
                },
                "signals": [
                    name
                    for factor in FACTOR_ORDER
                    for name in getattr(assessment.breakdown, factor).signal_names()
                ],
            },

            # Security Enforcement
            "security_enforcement": {
                "mfa_strength": (
                    assessment.recommendation.mfa_strength.value
                    if assessment.recommendation.mfa_strength else None
                ),
                "step_up_satisfied": assessment.recommendation.step_up_satisfied,
                "policy_applied": self.POLICY_NAME,
            },
        }
