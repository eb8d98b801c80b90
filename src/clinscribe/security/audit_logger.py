"""
Audit trail for encounter processing.

Entries record what happened to an encounter (segments dropped, stages
degraded, medication lines blocked) without any transcript content.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..config.settings import SecurityConfig


class AuditLogger:
    """JSON audit logger for encounter processing events."""

    def __init__(self, config: Optional[SecurityConfig] = None):
        self.config = config or SecurityConfig()
        self.logger = logging.getLogger("audit_logger")

        # Setup audit log file handler
        if self.config.enable_audit_logging and self.config.audit_log_path:
            if not any(isinstance(h, logging.FileHandler) for h in self.logger.handlers):
                audit_handler = logging.FileHandler(self.config.audit_log_path)
                audit_handler.setFormatter(logging.Formatter(
                    '%(asctime)s - AUDIT - %(levelname)s - %(message)s'
                ))
                self.logger.addHandler(audit_handler)
            self.logger.setLevel(logging.INFO)

    def _emit(self, event_type: str, level: int = logging.INFO, **details: Any) -> Dict[str, Any]:
        audit_entry = {
            'event_type': event_type,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            **details,
        }
        if self.config.enable_audit_logging:
            self.logger.log(level, json.dumps(audit_entry, ensure_ascii=False))
        return audit_entry

    def log_encounter_start(self, encounter_id: str, qualification: str, language: str) -> Dict[str, Any]:
        return self._emit(
            'encounter_start',
            encounter_id_hash=self._hash_identifier(encounter_id),
            qualification=qualification,
            language=language,
        )

    def log_encounter_complete(
        self,
        encounter_id: str,
        segments: int,
        dropped_segments: int,
        degraded_stages: list
    ) -> Dict[str, Any]:
        return self._emit(
            'encounter_complete',
            encounter_id_hash=self._hash_identifier(encounter_id),
            segments=segments,
            dropped_segments=dropped_segments,
            degraded_stages=degraded_stages,
        )

    def log_segment_dropped(self, encounter_id: str, sequence: int) -> Dict[str, Any]:
        return self._emit(
            'segment_dropped',
            logging.WARNING,
            encounter_id_hash=self._hash_identifier(encounter_id),
            sequence=sequence,
        )

    def log_stage_degraded(self, stage: str, policy: str, reason: str) -> Dict[str, Any]:
        return self._emit('stage_degraded', logging.WARNING, stage=stage, policy=policy, reason=reason)

    def log_medication_blocked(self, name: str) -> Dict[str, Any]:
        """A medication line without support in the transcript was removed."""
        return self._emit('medication_blocked', logging.WARNING, medication=name)

    @staticmethod
    def _hash_identifier(identifier: str) -> str:
        return hashlib.sha256(identifier.encode('utf-8')).hexdigest()[:16]
