import json
import hashlib
import logging
import os
from typing import Dict, List, Optional
from datetime import datetime, timezone

from deps import config

logger = logging.getLogger(__name__)

_PII_CHECK_TYPES = {"personal_information"}


def _hash_student_id(student_id: str) -> str:
    """Hash student ID with salt."""
    return hashlib.sha256(f"{student_id}{config.HASH_SALT}".encode()).hexdigest()


def _redact_pii_from_moderation(moderation: Optional[Dict]) -> Optional[Dict]:
    """Blank the details of personal-information checks."""
    if not moderation:
        return moderation
    moderation_copy = dict(moderation)
    scrubbed = []
    for check in moderation.get("checks", []):
        check_copy = dict(check)
        if check_copy.get("type") in _PII_CHECK_TYPES and not check_copy.get("passed", True):
            check_copy["details"] = "[REDACTED]"
        scrubbed.append(check_copy)
    moderation_copy["checks"] = scrubbed
    return moderation_copy


def _ensure_log_dir():
    log_dir = os.path.dirname(config.LOG_FILE) or "."
    os.makedirs(log_dir, exist_ok=True)


def log_audit(
    request_id: str,
    student_id: str,
    input_moderation: Dict,
    output_moderation: Optional[Dict],
    escalation: Optional[Dict],
    final_action: str,
    provider: Optional[str],
    cached: bool,
    latencies: Dict
):
    """Append one audit line per coordinated request, pseudonymised and PII-redacted."""
    student_hash = _hash_student_id(student_id) if student_id else "anonymous"
    log_entry = {
        "request_id": request_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "student_hash": student_hash,
        "input_moderation": _redact_pii_from_moderation(input_moderation),
        "output_moderation": _redact_pii_from_moderation(output_moderation),
        "escalation": escalation,
        "final_action": final_action,
        "provider": provider,
        "cached": cached,
        "latencies": latencies
    }
    try:
        _ensure_log_dir()
        with open(config.LOG_FILE, 'a') as f:
            f.write(json.dumps(log_entry, default=str) + '\n')
    except OSError as e:
        logger.error("Failed to write audit log: %s", e)


def read_recent(limit: int = 20) -> Dict:
    if not os.path.exists(config.LOG_FILE):
        return {"logs": [], "count": 0, "total_entries": 0}

    with open(config.LOG_FILE, 'r') as f:
        lines = [line for line in f if line.strip()]

    recent: List[Dict] = [json.loads(line) for line in lines[-limit:]]
    return {
        "logs": recent,
        "count": len(recent),
        "total_entries": len(lines)
    }
