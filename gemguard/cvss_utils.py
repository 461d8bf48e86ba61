"""
CVSS score extraction and severity mapping for OSV advisories.

OSV records for RubyGems usually carry a GitHub-assigned
``database_specific.severity``; when they don't, the severity is derived
from the best CVSS vector in the ``severity`` array.
"""

import logging
from typing import Dict, List, Optional

from cvss import CVSS2, CVSS3, CVSS4

logger = logging.getLogger(__name__)


class CVSSExtractor:
    """
    CVSS score and severity extraction.

    Priority when several vectors are present: CVSS_V4 > CVSS_V3 > CVSS_V2.
    """

    PRIORITY_MAP = {
        "CVSS_V4": 1,
        "CVSS_V3": 2,
        "CVSS_V2": 3,
    }

    PARSER_MAP = {
        "CVSS_V4": CVSS4,
        "CVSS_V3": CVSS3,
        "CVSS_V2": CVSS2,
    }

    # CVSS v3.x qualitative ratings
    SEVERITY_THRESHOLDS = [
        (9.0, "CRITICAL"),
        (7.0, "HIGH"),
        (4.0, "MEDIUM"),
        (0.1, "LOW"),
        (0.0, "NONE"),
    ]

    @classmethod
    def extract_best_cvss_score(cls, severity_array: List[Dict]) -> Optional[float]:
        """
        Extract the highest priority CVSS base score from an OSV severity array.

        Args:
            severity_array: e.g. [{"type": "CVSS_V3", "score": "CVSS:3.1/AV:N/AC:L/..."}]

        Returns:
            Float base score or None if no vector could be parsed
        """
        if not severity_array or not isinstance(severity_array, list):
            return None

        best_score = None
        best_priority = float("inf")

        for item in severity_array:
            if not isinstance(item, dict):
                continue

            cvss_type = item.get("type")
            vector = item.get("score")
            if not cvss_type or not vector:
                continue

            priority = cls.PRIORITY_MAP.get(cvss_type, float("inf"))
            parser_class = cls.PARSER_MAP.get(cvss_type)
            if not parser_class or priority >= best_priority:
                continue

            try:
                score = parser_class(vector).scores()[0]
            except Exception as e:
                logger.debug(f"Failed to parse {cvss_type} vector: {e}")
                continue

            if score is not None:
                best_score = float(score)
                best_priority = priority

        return best_score

    @classmethod
    def score_to_severity(cls, score: Optional[float]) -> str:
        if score is None:
            return "UNKNOWN"
        try:
            score_float = float(score)
        except (ValueError, TypeError):
            return "UNKNOWN"

        for threshold, severity in cls.SEVERITY_THRESHOLDS:
            if score_float >= threshold:
                return severity
        return "NONE"

    @classmethod
    def normalize_severity(cls, severity_str: Optional[str]) -> str:
        """
        Normalize a severity label. GitHub advisories use "MODERATE" for MEDIUM.

        Returns:
            CRITICAL, HIGH, MEDIUM, LOW, NONE or UNKNOWN
        """
        if not severity_str:
            return "UNKNOWN"

        severity_upper = str(severity_str).strip().upper()
        if severity_upper == "MODERATE":
            return "MEDIUM"
        if severity_upper in {"CRITICAL", "HIGH", "MEDIUM", "LOW", "NONE", "UNKNOWN"}:
            return severity_upper
        return "UNKNOWN"

    @classmethod
    def extract_severity_from_osv(cls, vuln: Dict) -> str:
        """
        Severity of a raw OSV record.

        Tries ``database_specific.severity``, then the best CVSS vector, and
        falls back to UNKNOWN.
        """
        db_specific = vuln.get("database_specific") or {}
        normalized = cls.normalize_severity(db_specific.get("severity"))
        if normalized != "UNKNOWN":
            return normalized

        score = cls.extract_best_cvss_score(vuln.get("severity", []))
        if score is not None:
            return cls.score_to_severity(score)

        return "UNKNOWN"
